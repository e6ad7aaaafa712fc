"""Tests for logging setup and the events key operations emit."""

from random import Random

import structlog
from structlog.testing import capture_logs

from heyapm.core.config import build_config
from heyapm.core.models import Mode
from heyapm.logger import session_logger, setup_logging


class TestSessionLogger:
    """Tests for session logger functionality."""

    def test_logger_has_level_methods(self):
        for name in ("debug", "info", "warning", "error"):
            assert callable(getattr(session_logger, name))

    def test_event_name_and_context(self):
        with capture_logs() as logs:
            session_logger.info("hey.test_event", instance_id="1", events=3)

        assert logs == [{"event": "hey.test_event", "instance_id": "1", "events": 3, "log_level": "info"}]


class TestSetupLogging:
    def test_level_filters_debug(self, capsys):
        setup_logging("INFO")
        logger = structlog.get_logger("heyapm")
        logger.debug("hey.hidden")
        logger.info("hey.shown")

        err = capsys.readouterr().err
        assert "hey.shown" in err
        assert "hey.hidden" not in err

    def test_json_output(self, capsys):
        setup_logging("debug", json_output=True)
        structlog.get_logger("heyapm").warning("hey.json_event", count=2)

        err = capsys.readouterr().err
        assert '"event": "hey.json_event"' in err
        assert '"count": 2' in err
        assert '"level": "warning"' in err

    def test_unknown_level_falls_back_to_info(self, capsys):
        setup_logging("chatty")
        logger = structlog.get_logger("heyapm")
        logger.debug("hey.hidden")
        logger.info("hey.shown")

        err = capsys.readouterr().err
        assert "hey.shown" in err
        assert "hey.hidden" not in err


class TestOperationsLog:
    """Key operations emit their events."""

    def test_clamp_is_logged(self):
        with capture_logs() as logs:
            build_config(rng=Random(), mode=Mode.LOAD, span_min_limit=5, span_max_limit=2, random_seed=1)

        clamped = [entry for entry in logs if entry["event"] == "hey.config_span_limit_clamped"]
        assert len(clamped) == 1
