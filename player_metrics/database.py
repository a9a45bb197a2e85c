"""
SQLAlchemy persistence for metric snapshots.

Provides persistent storage for:
- Metric snapshots (one row per assessment, full payload as JSON)
- Per-metric value rows, so metric-key filtering happens in SQL

SqlSnapshotStore implements the SnapshotStore interface on top of these
tables. Rows are only ever inserted.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from player_metrics.cache import Clock, utc_now
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    AssessmentContext,
    MetricSnapshot,
    SnapshotDraft,
    SnapshotOrdering,
    as_utc,
)
from player_metrics.store import PlayerRaters, SnapshotStore, validate_draft

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///player_metrics.db"


class MetricSnapshotRecord(Base):
    """
    Stored metric snapshot.

    Attributes:
        seq: Insertion sequence (tie-breaker for equal timestamps)
        snapshot_id: Public snapshot identifier
        player_id: Rated player
        coach_id: Rating coach
        center_id / position / age_group / season: Assessment context
        source_context: Assessment event type
        created_at: Assessment time, stored as naive UTC
        payload: Full MetricSnapshot as JSON
    """

    __tablename__ = "metric_snapshots"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    snapshot_id = Column(String, unique=True, nullable=False, index=True)
    player_id = Column(String, nullable=False, index=True)
    coach_id = Column(String, nullable=False, index=True)
    center_id = Column(String, nullable=True, index=True)
    position = Column(String, nullable=True, index=True)
    age_group = Column(String, nullable=True, index=True)
    season = Column(String, nullable=True, index=True)
    source_context = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)
    payload = Column(JSON, nullable=False)

    # Relationships
    values = relationship("MetricSnapshotValue", back_populates="snapshot", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<MetricSnapshotRecord(id='{self.snapshot_id}', player='{self.player_id}', coach='{self.coach_id}')>"


class MetricSnapshotValue(Base):
    """
    One rated metric (value or trait) of a stored snapshot.

    Attributes:
        id: Primary key
        snapshot_seq: Foreign key to metric_snapshots
        metric_key: Registry key
        value: Rating
    """

    __tablename__ = "metric_snapshot_values"

    id = Column(Integer, primary_key=True)
    snapshot_seq = Column(Integer, ForeignKey("metric_snapshots.seq"), nullable=False, index=True)
    metric_key = Column(String, nullable=False, index=True)
    value = Column(Float, nullable=False)

    # Relationships
    snapshot = relationship("MetricSnapshotRecord", back_populates="values")

    def __repr__(self):
        return f"<MetricSnapshotValue(metric='{self.metric_key}', value={self.value})>"


def _to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class SqlSnapshotStore(SnapshotStore):
    """SnapshotStore backed by a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: sessionmaker,
        registry: Optional[MetricRegistry] = None,
        clock: Optional[Clock] = None,
    ):
        self.session_factory = session_factory
        self.registry = registry or MetricRegistry()
        self.clock = clock or utc_now

    @classmethod
    def from_url(
        cls,
        database_url: str = DEFAULT_DATABASE_URL,
        registry: Optional[MetricRegistry] = None,
        clock: Optional[Clock] = None,
    ) -> "SqlSnapshotStore":
        """Create the tables if needed and return a store bound to `database_url`."""
        engine = get_engine(database_url)
        Base.metadata.create_all(engine)
        return cls(get_session_factory(engine), registry=registry, clock=clock)

    def append_snapshot(self, draft: SnapshotDraft) -> MetricSnapshot:
        validate_draft(draft, self.registry)
        created_at = draft.created_at or self.clock()

        snapshot = MetricSnapshot(
            id=uuid.uuid4().hex,
            player_id=draft.player_id,
            coach_id=draft.coach_id,
            created_at=created_at,
            source_context=draft.source_context,
            context=draft.context,
            values=tuple(draft.values),
            positional=tuple(draft.positional),
            traits=tuple(draft.traits),
            notes=draft.notes,
        )

        context = snapshot.context
        record = MetricSnapshotRecord(
            snapshot_id=snapshot.id,
            player_id=snapshot.player_id,
            coach_id=snapshot.coach_id,
            center_id=context.center_id,
            position=context.position.value if context.position else None,
            age_group=context.age_group,
            season=context.season,
            source_context=snapshot.source_context.value,
            created_at=_to_naive_utc(snapshot.created_at),
            payload=snapshot.model_dump(mode="json"),
            values=[
                MetricSnapshotValue(metric_key=key, value=value)
                for key, value in snapshot.scored_items()
            ],
        )

        with self.session_factory() as session:
            with session.begin():
                session.add(record)

        logger.debug("Stored snapshot %s (player=%s, coach=%s)", snapshot.id, snapshot.player_id, snapshot.coach_id)
        return snapshot

    def get_snapshots_for(
        self,
        player_id: Optional[str] = None,
        coach_id: Optional[str] = None,
        filters: Optional[AssessmentContext] = None,
        metric_key: Optional[str] = None,
        ordering: SnapshotOrdering = SnapshotOrdering.OLDEST_FIRST,
        limit: Optional[int] = None,
    ) -> List[MetricSnapshot]:
        stmt = select(MetricSnapshotRecord.payload)

        if player_id is not None:
            stmt = stmt.where(MetricSnapshotRecord.player_id == player_id)
        if coach_id is not None:
            stmt = stmt.where(MetricSnapshotRecord.coach_id == coach_id)
        if filters is not None:
            if filters.center_id is not None:
                stmt = stmt.where(MetricSnapshotRecord.center_id == filters.center_id)
            if filters.position is not None:
                stmt = stmt.where(MetricSnapshotRecord.position == filters.position.value)
            if filters.age_group is not None:
                stmt = stmt.where(MetricSnapshotRecord.age_group == filters.age_group)
            if filters.season is not None:
                stmt = stmt.where(MetricSnapshotRecord.season == filters.season)
        if metric_key is not None:
            rated = select(MetricSnapshotValue.snapshot_seq).where(MetricSnapshotValue.metric_key == metric_key)
            stmt = stmt.where(MetricSnapshotRecord.seq.in_(rated))

        if ordering == SnapshotOrdering.NEWEST_FIRST:
            stmt = stmt.order_by(MetricSnapshotRecord.created_at.desc(), MetricSnapshotRecord.seq.desc())
        else:
            stmt = stmt.order_by(MetricSnapshotRecord.created_at.asc(), MetricSnapshotRecord.seq.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with self.session_factory() as session:
            payloads = session.execute(stmt).scalars().all()
        return [MetricSnapshot.model_validate(payload) for payload in payloads]

    def get_player_rater_counts(self, min_coaches: int = 1) -> List[PlayerRaters]:
        coach_count = func.count(MetricSnapshotRecord.coach_id.distinct())
        stmt = (
            select(
                MetricSnapshotRecord.player_id,
                coach_count,
                func.max(MetricSnapshotRecord.created_at),
            )
            .group_by(MetricSnapshotRecord.player_id)
            .having(coach_count >= min_coaches)
        )

        with self.session_factory() as session:
            rows = session.execute(stmt).all()
        return [PlayerRaters(player_id, count, as_utc(latest_at)) for player_id, count, latest_at in rows]


# Database connection and session management

def get_engine(database_url: str = DEFAULT_DATABASE_URL):
    """
    Create SQLAlchemy engine.

    Args:
        database_url: Database connection string (default: SQLite file)

    Returns:
        SQLAlchemy Engine instance
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)
    return create_engine(database_url, echo=False)


def get_session_factory(engine):
    """
    Create session factory.

    Args:
        engine: SQLAlchemy Engine instance

    Returns:
        Session factory (sessionmaker)
    """
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_database(database_url: str = DEFAULT_DATABASE_URL) -> Session:
    """
    Initialize database and create all tables.

    Args:
        database_url: Database connection string

    Returns:
        SQLAlchemy Session instance
    """
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    SessionFactory = get_session_factory(engine)
    return SessionFactory()
