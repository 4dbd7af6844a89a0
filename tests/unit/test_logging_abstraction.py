"""Unit tests for the logging abstraction."""

from __future__ import annotations

import json
import logging

import pytest

from max_cube.correlation import correlation_context
from max_cube.logging_abstraction import (
    PACKAGE_LOGGER_NAME,
    CubeLogAdapter,
    HumanReadableFormatter,
    JSONFormatter,
    configure_logging,
    get_logger,
)


def _record(msg: str = "Set %s", args: tuple[object, ...] = ("123456",), **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("max_cube.test", logging.INFO, __file__, 42, msg, args, None)
    if extra:
        record.extra_data = extra
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_json_fields(self):
        with correlation_context("0123456789abcdef"):
            output = json.loads(JSONFormatter().format(_record(host="10.0.0.7")))

        assert output["message"] == "Set 123456"
        assert output["level"] == "INFO"
        assert output["correlation_id"] == "0123456789abcdef"
        assert output["context"] == {"host": "10.0.0.7"}

    def test_no_context_key_without_extra(self):
        output = json.loads(JSONFormatter().format(_record()))
        assert "context" not in output


class TestHumanReadableFormatter:
    """Tests for HumanReadableFormatter."""

    def test_short_correlation_id_and_context(self):
        with correlation_context("0123456789abcdef"):
            line = HumanReadableFormatter().format(_record(reason="write_failed"))

        assert "[89abcdef]" in line
        assert "> Set 123456" in line
        assert line.endswith("| reason=write_failed")

    def test_placeholder_without_correlation_id(self):
        line = HumanReadableFormatter().format(_record())
        assert "[--------]" in line


@pytest.fixture
def package_logger():
    """The max_cube logger, with its handlers and level restored afterwards."""
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    saved_handlers, saved_level = list(logger.handlers), logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        logger.addHandler(handler)
    logger.setLevel(saved_level)


class TestCubeLogAdapter:
    """Tests for get_logger() and the extra mapping."""

    def test_get_logger_wraps_named_logger(self):
        logger = get_logger("max_cube.transport.line_transport")

        assert isinstance(logger, CubeLogAdapter)
        assert logger.logger is logging.getLogger("max_cube.transport.line_transport")
        assert logger.logger.propagate is True

    def test_extra_becomes_extra_data(self, caplog):
        logger = get_logger("max_cube.tests.adapter")

        with caplog.at_level(logging.INFO, logger="max_cube.tests.adapter"):
            logger.info("Reconnected to cube", extra={"cube_info": "H:KEQ"})

        assert caplog.records[-1].extra_data == {"cube_info": "H:KEQ"}

    def test_no_extra_leaves_record_plain(self, caplog):
        logger = get_logger("max_cube.tests.adapter")

        with caplog.at_level(logging.INFO, logger="max_cube.tests.adapter"):
            logger.info("Handshake complete")

        assert not hasattr(caplog.records[-1], "extra_data")


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_both_formats_write_to_their_files(self, package_logger, tmp_path):
        json_file = tmp_path / "logs" / "cube.json"
        human_file = tmp_path / "logs" / "cube.log"
        _ = configure_logging(log_format="both", json_file=json_file, human_output=str(human_file), debug=False)

        get_logger("max_cube.controller").info("Connected to cube", extra={"cube_info": "H:KEQ"})
        for handler in package_logger.handlers:
            handler.flush()

        entry = json.loads(json_file.read_text().splitlines()[-1])
        assert entry["message"] == "Connected to cube"
        assert entry["logger"] == "max_cube.controller"
        assert entry["context"] == {"cube_info": "H:KEQ"}
        assert human_file.read_text().rstrip().endswith("> Connected to cube | cube_info=H:KEQ")

    def test_reconfigure_replaces_handlers(self, package_logger):
        _ = configure_logging(log_format="human", human_output="stderr", debug=False)
        _ = configure_logging(log_format="human", human_output="stderr", debug=False)

        assert len(package_logger.handlers) == 1
        assert isinstance(package_logger.handlers[0].formatter, HumanReadableFormatter)

    def test_json_without_file_adds_no_handler(self, package_logger):
        _ = configure_logging(log_format="json", json_file=None, debug=False)
        assert package_logger.handlers == []

    def test_debug_level(self, package_logger):
        _ = configure_logging(log_format="human", human_output="stderr", debug=True)

        assert package_logger.level == logging.DEBUG
        assert package_logger.handlers[0].level == logging.DEBUG

        _ = configure_logging(log_format="human", human_output="stderr", debug=False)

        assert package_logger.level == logging.INFO
