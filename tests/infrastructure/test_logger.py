#!/usr/bin/env python3
"""Tests for the structured Logger."""

import io
import logging
import threading

import pytest

from lingomirror.infrastructure.log_entities import log_alternative, log_library, log_mirror, log_user
from lingomirror.infrastructure.logger import (
    Logger,
    LogLevel,
    configure_logging,
    get_logger,
    set_global_logger,
)


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def logger(stream):
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    return Logger(name="lingomirror-logger-test", level=LogLevel.DEBUG, handlers=[handler])


class TestLogger:
    """Tests for Logger output and context."""

    def test_message_with_context(self, logger, stream):
        logger.info("Mirror synced", mirror="Movies (pt)", added=3)
        assert "INFO Mirror synced | mirror=Movies (pt) added=3" in stream.getvalue()

    def test_level_filtering(self, logger, stream):
        logger.set_level("WARNING")
        logger.info("hidden")
        logger.warning("shown")
        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()
        assert logger.get_level() == LogLevel.WARNING

    def test_nested_context(self, logger, stream):
        with logger.add_context(alternative="Portuguese"):
            with logger.add_context(mirror="Movies"):
                logger.debug("Linking")
            logger.debug("Done")
        logger.debug("Outside")

        lines = stream.getvalue().splitlines()
        assert lines[0].endswith("alternative=Portuguese mirror=Movies")
        assert lines[1].endswith("alternative=Portuguese")
        assert lines[2] == "DEBUG Outside"

    def test_context_is_thread_local(self, logger, stream):
        def worker():
            logger.info("From thread")

        with logger.add_context(mirror="Movies"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert "DEBUG" not in stream.getvalue()
        assert "INFO From thread\n" in stream.getvalue()

    def test_exception(self, logger, stream):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            logger.exception("Sync failed", e, mirror="Movies")

        output = stream.getvalue()
        assert "exception_type=ValueError" in output
        assert "exception_message=bad value" in output
        assert "Traceback" in output


class TestLoggerSetup:
    """Tests for global logger helpers."""

    def test_configure_logging_with_file(self, temp_dir):
        log_file = temp_dir / "logs" / "lingomirror.log"
        logger = configure_logging(level="INFO", log_file=log_file, name="lingomirror-file-test")

        logger.info("Written to file")
        for handler in logger.logger.handlers:
            handler.flush()

        assert get_logger("lingomirror-file-test") is logger
        assert "Written to file" in log_file.read_text()

    def test_set_global_logger(self, logger):
        set_global_logger(logger)
        assert get_logger("lingomirror-logger-test") is logger


class TestLogEntities:
    """Tests for entity formatting helpers."""

    def test_helpers(self):
        class Entity:
            id = "42"
            name = "Portuguese"
            username = "alice"
            target_library_name = "Movies (Portuguese)"

        assert log_alternative(Entity()) == "Portuguese (42)"
        assert log_user(Entity()) == "alice (42)"
        assert log_user("user-id") == "user-id"
        assert log_mirror(Entity()) == "Movies (Portuguese) (42)"
        assert log_library(Entity()) == "Portuguese (42)"
        assert log_mirror(None) == "<none>"
