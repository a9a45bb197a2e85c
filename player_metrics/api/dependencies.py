"""
Shared FastAPI dependencies.

The engine lives on app.state. An application created without one builds
it from settings on the first request.
"""

import threading

from fastapi import Request

from player_metrics.engine import CalibrationEngine, build_engine

_build_lock = threading.Lock()


def get_engine(request: Request) -> CalibrationEngine:
    """Engine attached to the running application."""
    state = request.app.state
    engine = getattr(state, "engine", None)
    if engine is None:
        with _build_lock:
            engine = getattr(state, "engine", None)
            if engine is None:
                engine = build_engine(getattr(state, "settings", None))
                state.engine = engine
    return engine
