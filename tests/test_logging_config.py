"""
Tests for logging setup.
"""

import json
import logging

import pytest

from player_metrics.api.main import create_app
from player_metrics.config import Settings
from player_metrics.logging_config import HANDLER_NAME, JSONFormatter, setup_logging


def _own_handlers():
    return [h for h in logging.getLogger().handlers if h.get_name() == HANDLER_NAME]


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_api_module_builds_no_app_on_import():
    import player_metrics.api.main as api_main

    assert not hasattr(api_main, "app")


def test_setup_logging_is_idempotent():
    foreign = logging.NullHandler()
    logging.getLogger().addHandler(foreign)

    setup_logging("INFO")
    setup_logging("DEBUG", "json")
    create_app(settings=Settings(database_url="sqlite://", log_level="WARNING"))

    assert len(_own_handlers()) == 1
    assert foreign in logging.getLogger().handlers
    assert logging.getLogger().level == logging.WARNING


def test_json_formatter():
    record = logging.LogRecord("player_metrics.engine", logging.INFO, __file__, 10, "recorded %s", ("s1",), None)

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "INFO"
    assert data["logger"] == "player_metrics.engine"
    assert data["message"] == "recorded s1"
