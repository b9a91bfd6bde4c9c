"""
Tests for structured logging.
"""

import json
import logging

import pytest

from zabr_smile.calibration import SmileContext, ZabrCalibrator
from zabr_smile.monitoring import (
    BoundLogger,
    ConsoleFormatter,
    JsonFormatter,
    bind,
    clear_context,
    configure_logging,
    get_context,
    unbind,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_context()
    yield
    clear_context()


def make_record(message="calibrating", **extra):
    record = logging.LogRecord(
        name="zabr_smile.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    """Tests for thread-local context."""

    def test_bind_unbind(self):
        bind(expiry=5.0, forward=0.04)
        assert get_context().copy() == {"expiry": 5.0, "forward": 0.04}
        unbind("expiry")
        assert get_context().copy() == {"forward": 0.04}

    def test_bound_logger_restores(self):
        bind(forward=0.03)
        with BoundLogger(expiry=1.0, forward=0.04):
            assert get_context().get("forward") == 0.04
            assert get_context().get("expiry") == 1.0
        assert get_context().copy() == {"forward": 0.03}

    def test_bound_logger_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with BoundLogger(expiry=1.0):
                raise RuntimeError("boom")
        assert get_context().copy() == {}


class TestFormatters:
    """Tests for JSON and console formatters."""

    def test_json_formatter(self):
        with BoundLogger(expiry=5.0):
            output = JsonFormatter().format(make_record(restart=3))
        data = json.loads(output)
        assert data["message"] == "calibrating"
        assert data["level"] == "INFO"
        assert data["logger"] == "zabr_smile.test"
        assert data["context"] == {"expiry": 5.0}
        assert data["restart"] == 3
        assert "source" not in data

    def test_json_formatter_source_and_exception(self):
        try:
            raise ValueError("bad input")
        except ValueError:
            import sys

            record = make_record()
            record.exc_info = sys.exc_info()
        data = json.loads(JsonFormatter(include_source=True).format(record))
        assert data["source"]["line"] == 10
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad input"

    def test_console_formatter(self):
        with BoundLogger(forward=0.04):
            output = ConsoleFormatter().format(make_record())
        assert "INFO" in output
        assert "[zabr_smile.test] calibrating" in output
        assert "forward=0.04" in output
        assert "\033[" not in output

    def test_console_formatter_colors(self):
        output = ConsoleFormatter(use_colors=True).format(make_record())
        assert "\033[32m" in output


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_no_duplicate_handlers(self, tmp_path):
        package_logger = logging.getLogger("zabr_smile")
        before = len(package_logger.handlers)
        configure_logging("DEBUG", file=str(tmp_path / "zabr.log"))
        handlers = configure_logging("INFO", json_format=True)
        try:
            assert len(package_logger.handlers) == before + 1
            assert isinstance(handlers[0].formatter, JsonFormatter)
            assert package_logger.level == logging.INFO
        finally:
            for handler in handlers:
                package_logger.removeHandler(handler)
                handler.close()

    def test_file_output(self, tmp_path):
        path = tmp_path / "zabr.log"
        package_logger = logging.getLogger("zabr_smile")
        handlers = configure_logging("INFO", json_format=True, file=str(path))
        try:
            logging.getLogger("zabr_smile.test").info("written")
        finally:
            for handler in handlers:
                package_logger.removeHandler(handler)
                handler.close()
        line = path.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "written"


class TestCalibrationLogging:
    """Calibration runs log with their context bound."""

    def test_calibration_binds_context(self, example_points, counting_optimizer):
        seen = []

        class Capture(logging.Handler):
            def emit(self, record):
                seen.append((record.getMessage(), get_context().copy()))

        handler = Capture(level=logging.INFO)
        package_logger = logging.getLogger("zabr_smile")
        previous = package_logger.level
        package_logger.addHandler(handler)
        package_logger.setLevel(logging.INFO)
        try:
            ZabrCalibrator(optimizer=counting_optimizer, max_guesses=2).calibrate(
                example_points["strikes"],
                example_points["vols"],
                SmileContext(expiry=5.0, forward=0.04),
            )
        finally:
            package_logger.removeHandler(handler)
            package_logger.setLevel(previous)

        messages = [message for message, _ in seen]
        assert any(m.startswith("Starting ZABR calibration") for m in messages)
        assert any(m.startswith("ZABR calibration completed") for m in messages)
        for _, context in seen:
            assert context == {"expiry": 5.0, "forward": 0.04}
        assert get_context().copy() == {}
