"""
Metric Registry.

Static catalogue of scoreable metrics. Keys, display names and categories
mirror the academy's assessment sheet; every metric is scored 0-100.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Union

from player_metrics.errors import InvalidMetricKey, RangeViolation
from player_metrics.schemas import MetricCategory, MetricDefinition


# (key, display name, description, coach-only)
_TECHNICAL = [
    ("first_touch", "First Touch", None, False),
    ("passing", "Passing", None, False),
    ("long_passing", "Long Passing", None, False),
    ("crossing", "Crossing", None, False),
    ("dribbling", "Dribbling", None, False),
    ("ball_control", "Ball Control", None, False),
    ("shooting", "Shooting", None, False),
    ("finishing", "Finishing", None, False),
    ("heading", "Heading", None, False),
    ("tackling", "Tackling", None, False),
    ("marking", "Marking", None, False),
    ("interceptions", "Interceptions", None, False),
    ("set_pieces", "Set Pieces", None, False),
    ("technique", "Technique", None, False),
]

_PHYSICAL = [
    ("acceleration", "Acceleration", None, False),
    ("sprint_speed", "Sprint Speed", None, False),
    ("agility", "Agility", None, False),
    ("balance", "Balance", None, False),
    ("jumping", "Jumping", None, False),
    ("stamina", "Stamina", None, False),
    ("strength", "Strength", None, False),
    ("natural_fitness", "Natural Fitness", None, False),
    ("injury_proneness", "Injury Proneness", None, False),
]

_MENTAL = [
    ("vision", "Vision", None, False),
    ("composure", "Composure", None, False),
    ("concentration", "Concentration", None, False),
    ("decisions", "Decisions", None, False),
    ("positioning", "Positioning", None, False),
    ("off_the_ball", "Off the Ball", None, False),
    ("anticipation", "Anticipation", None, False),
    ("flair", "Flair", None, False),
    ("leadership", "Leadership", None, False),
    ("teamwork", "Teamwork", None, False),
]

_ATTITUDE = [
    ("work_rate", "Work Rate", "Effort and intensity in training and matches", True),
    ("determination", "Determination", "Drive to succeed and overcome setbacks", True),
    ("ambition", "Ambition", "Desire to progress to higher levels", True),
    ("professionalism", "Professionalism", "Punctuality, preparation and conduct", True),
    ("consistency", "Consistency", "Ability to perform at a steady level", True),
    ("adaptability", "Adaptability", "Ability to adapt to different situations and roles", True),
    ("pressure_handling", "Pressure Handling", "Ability to perform under pressure", True),
    ("coachability", "Coachability", "Willingness to learn and accept feedback", True),
]

_GOALKEEPING = [
    ("handling", "Handling", "Ability to catch and hold shots", False),
    ("reflexes", "Reflexes", "Reaction speed to shots and deflections", False),
    ("one_on_ones", "One on Ones", "Ability to handle one-on-one situations", False),
    ("command_of_area", "Command of Area", "Ability to organize and control the penalty area", False),
    ("communication", "Communication", "Ability to communicate with defenders", False),
    ("kicking", "Kicking", "Quality of goal kicks and distribution", False),
    ("throwing", "Throwing", "Accuracy and distance of throws", False),
    ("aerial_ability", "Aerial Ability", "Ability to claim crosses and high balls", False),
]


def default_definitions() -> List[MetricDefinition]:
    """Build the default metric catalogue in display order."""
    definitions = []
    order = 1
    for category, rows in (
        (MetricCategory.TECHNICAL, _TECHNICAL),
        (MetricCategory.PHYSICAL, _PHYSICAL),
        (MetricCategory.MENTAL, _MENTAL),
        (MetricCategory.ATTITUDE, _ATTITUDE),
        (MetricCategory.GOALKEEPING, _GOALKEEPING),
    ):
        for key, display_name, description, coach_only in rows:
            definitions.append(
                MetricDefinition(
                    key=key,
                    display_name=display_name,
                    category=category,
                    description=description,
                    is_coach_only=coach_only,
                    display_order=order,
                )
            )
            order += 1
    return definitions


class MetricRegistry:
    """
    Lookup table over metric definitions.

    Unknown keys fail fast with InvalidMetricKey.
    """

    def __init__(self, definitions: Optional[Iterable[MetricDefinition]] = None):
        defs = list(definitions) if definitions is not None else default_definitions()
        self._by_key: Dict[str, MetricDefinition] = {}
        for definition in defs:
            if definition.key in self._by_key:
                raise ValueError(f"Duplicate metric key: {definition.key}")
            self._by_key[definition.key] = definition

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(sorted(self._by_key.values(), key=lambda d: d.display_order))

    def __len__(self) -> int:
        return len(self._by_key)

    def get(self, key: str) -> MetricDefinition:
        try:
            return self._by_key[key]
        except KeyError:
            raise InvalidMetricKey(key) from None

    def category_of(self, key: str) -> MetricCategory:
        return self.get(key).category

    def keys_in(self, category: MetricCategory) -> List[str]:
        return [d.key for d in self if d.category == category]

    def visible_to_players(self) -> List[MetricDefinition]:
        """Catalogue without coach-only metrics."""
        return [d for d in self if not d.is_coach_only]

    def validate_value(self, key: str, value: float) -> None:
        """
        Check a raw value against its metric's range.

        Raises:
            InvalidMetricKey: If the key is unknown
            RangeViolation: If the value is outside [min_value, max_value]
        """
        definition = self.get(key)
        if not (definition.min_value <= value <= definition.max_value):
            raise RangeViolation(key, value, definition.min_value, definition.max_value)

    def resolve_target(self, key_or_category: str) -> Union[MetricDefinition, MetricCategory]:
        """
        Resolve a consensus target to a metric definition or a category.

        Category names are matched case-insensitively ("technical", "TECHNICAL").
        """
        if key_or_category in self._by_key:
            return self._by_key[key_or_category]
        try:
            return MetricCategory(key_or_category.upper())
        except ValueError:
            raise InvalidMetricKey(
                key_or_category,
                f'"{key_or_category}" is neither a metric key nor a metric category',
            ) from None
