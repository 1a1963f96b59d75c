"""Tests for logging setup and formatters."""

import json
import logging

from pg_graphql.logging import LOG_FILE, ConsoleFormatter, JSONLFormatter, log_with_context, setup_logging


def _record(name="pg_graphql.engine", level=logging.WARNING, msg="Query failed", context=None):
    record = logging.LogRecord(name, level, __file__, 10, msg, None, None)
    if context is not None:
        record.context = context
    return record


class TestJSONLFormatter:
    def test_entry_fields(self):
        entry = json.loads(JSONLFormatter().format(_record(context={"digest": "abc"})))

        assert entry["level"] == "WARNING"
        assert entry["component"] == "engine"
        assert entry["message"] == "Query failed"
        assert entry["context"] == {"digest": "abc"}
        assert entry["source"]["line"] == 10

    def test_info_has_no_source(self):
        entry = json.loads(JSONLFormatter().format(_record(level=logging.INFO)))

        assert "source" not in entry
        assert "context" not in entry


class TestConsoleFormatter:
    def test_context_is_appended(self):
        line = ConsoleFormatter().format(_record(context={"stage": "compiled"}))

        assert "[engine]" in line
        assert "WARNING" in line
        assert line.endswith("Query failed stage=compiled")


class TestSetupLogging:
    def test_console_only(self, restore_logger):
        logger = setup_logging(level="debug")

        assert logger.name == "pg_graphql"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_file_output_is_jsonl(self, tmp_path, restore_logger):
        logger = setup_logging(tmp_path, level=logging.INFO)

        log_with_context(logging.getLogger("pg_graphql.catalog.store"), logging.INFO, "Catalog rebuilt", version=2)
        for handler in logger.handlers:
            handler.flush()

        lines = (tmp_path / LOG_FILE).read_text().splitlines()
        entry = json.loads(lines[-1])
        assert entry["component"] == "catalog.store"
        assert entry["context"] == {"version": 2}

    def test_unknown_level_falls_back_to_info(self, restore_logger):
        assert setup_logging(level="chatty").level == logging.INFO
