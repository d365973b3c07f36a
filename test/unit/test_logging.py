"""
Unit tests for logger setup and the timed() helper.
"""
import logging
import pytest
from util.logger import ColoredFormatter, init_logger
from util.timing import timed


class TestTimed:
    """timed() logs .done or .failed with the elapsed time."""

    def test_done(self, caplog):
        log = logging.getLogger("test.timed")
        with caplog.at_level(logging.INFO, logger="test.timed"):
            with timed(log, "index.build", sections=3):
                pass
        (record,) = caplog.records
        assert record.getMessage().startswith("index.build.done ms=")
        assert record.getMessage().endswith("sections=3")

    def test_failed_reraises(self, caplog):
        log = logging.getLogger("test.timed")
        with caplog.at_level(logging.INFO, logger="test.timed"):
            with pytest.raises(ValueError):
                with timed(log, "ai.message"):
                    raise ValueError("bad")
        (record,) = caplog.records
        assert record.levelno == logging.WARNING
        assert "ai.message.failed" in record.getMessage()
        assert "err=ValueError" in record.getMessage()


class TestLogger:
    """init_logger() is idempotent and keeps level names clean."""

    def test_idempotent(self):
        root = logging.getLogger()
        init_logger()
        handlers = list(root.handlers)
        init_logger()
        assert root.handlers == handlers

    def test_colored_formatter_restores_level_name(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "msg", None, None)
        out = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[" in out
        assert record.levelname == "WARNING"
