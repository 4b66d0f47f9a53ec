"""Unit tests for logging setup."""

import logging

import orjson
import pytest

from utils.logging import JSONFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(**extra):
    record = logging.LogRecord("geoarchive.registry", logging.INFO, __file__, 10, "Registered %s", ("archive",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_formats_message_and_extras(self):
        line = JSONFormatter().format(_record(archive_key="2021-06-01_London", bytes_written=9))
        payload = orjson.loads(line)

        assert payload["msg"] == "Registered archive"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "geoarchive.registry"
        assert payload["archive_key"] == "2021-06-01_London"
        assert payload["bytes_written"] == 9
        assert payload["ts"].endswith("Z")
        assert "lineno" not in payload

    def test_unserialisable_extras_fall_back_to_str(self, tmp_path):
        payload = orjson.loads(JSONFormatter().format(_record(archive_path=tmp_path)))

        assert payload["archive_path"] == str(tmp_path)


class TestSetupLogging:
    def test_configures_root_logger(self, restore_root_logger):
        setup_logging("debug", "text", "stderr")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_rejects_unknown_format(self, restore_root_logger):
        with pytest.raises(ValueError):
            setup_logging("INFO", "xml")
