"""
Unit tests for the logging configuration.
"""

import json
import logging

import pytest

from seasx11.utils.logging_config import JSONFormatter, get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    """setup_logging replaces the root handlers; put the originals back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def _record(self, **extra):
        record = logging.LogRecord(
            name="seasx11.test", level=logging.INFO, pathname=__file__, lineno=10,
            msg="D12 IC ratio %s", args=(0.8,), exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(self._record()))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "seasx11.test"
        assert payload["message"] == "D12 IC ratio 0.8"

    def test_props_are_merged(self):
        record = self._record(props={"step": "D12", "henderson_span": 13})
        payload = json.loads(JSONFormatter().format(record))
        assert payload["step"] == "D12"
        assert payload["henderson_span"] == 13

    def test_non_serializable_values_use_str(self):
        record = self._record(props={"weights": {1, 2}})
        payload = json.loads(JSONFormatter().format(record))
        assert isinstance(payload["weights"], str)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_json_lines(self, tmp_path, restore_root_logger):
        setup_logging(log_level="INFO", log_dir=str(tmp_path))
        get_logger("seasx11.test").info("span chosen", extra={"props": {"step": "B7"}})
        for handler in restore_root_logger.handlers:
            handler.flush()

        lines = (tmp_path / "app.jsonl").read_text().strip().splitlines()
        records = [json.loads(line) for line in lines]
        assert any(r.get("step") == "B7" for r in records)
        assert (tmp_path / "errors.jsonl").exists()

    def test_console_only(self, restore_root_logger):
        setup_logging(log_level="DEBUG", log_dir=None)
        assert len(restore_root_logger.handlers) == 1
        assert restore_root_logger.level == logging.DEBUG
