from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone

from appservice_inventory.logging import JsonFormatter, LogConfig, PlainFormatter, add_run_log_file, setup_logging
from appservice_inventory.util.serialization import (
    MAX_CELL_CHARS,
    REDACTED_VALUE,
    sanitize_for_json,
    to_cell_value,
)


def test_sanitize_for_json_redacts_sensitive_fields() -> None:
    payload = {
        "password": "secret",
        "connectionStrings": [{"value": "Server=..."}],
        "nested": {"publishingUserName": "$app", "safe": 1},
    }

    sanitized = sanitize_for_json(payload)

    assert sanitized["password"] == REDACTED_VALUE
    assert sanitized["connectionStrings"] == REDACTED_VALUE
    assert sanitized["nested"]["publishingUserName"] == REDACTED_VALUE
    assert sanitized["nested"]["safe"] == 1


def test_sanitize_for_json_handles_datetime_and_bytes() -> None:
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    payload = {"when": ts, "blob": b"bytes", "took": timedelta(seconds=2)}

    sanitized = sanitize_for_json(payload)

    assert sanitized["when"] == "2024-01-01T00:00:00+00:00"
    assert sanitized["blob"] == "bytes"
    assert sanitized["took"] == 2.0


def test_to_cell_value() -> None:
    aware = datetime(2024, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_cell_value(aware) == datetime(2024, 1, 1, 0, 0)
    assert to_cell_value(None) is None
    assert to_cell_value(5) == 5
    assert to_cell_value(["b", "a"]) == '["b", "a"]'
    assert len(to_cell_value("x" * (MAX_CELL_CHARS + 10))) == MAX_CELL_CHARS
    assert to_cell_value("line1\nline\x0b2\x1f") == "line1\nline2"
    assert to_cell_value(b"a\x07b") == "ab"


def test_json_formatter_skips_non_serializable_extras() -> None:
    formatter = JsonFormatter()
    record = logging.LogRecord(
        name="unit",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )
    record.table = "Apps"
    record.good = {"a": 1, "b": [1, 2]}
    record.bad = {"obj": object()}

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "hello"
    assert payload["table"] == "Apps"
    assert payload["good"] == {"a": 1, "b": [1, 2]}
    assert "bad" not in payload
    assert "lineno" not in payload


def test_plain_formatter_prefixes_step_and_table() -> None:
    record = logging.LogRecord("unit", logging.INFO, __file__, 1, "Query started", (), None)
    record.step = "query"
    record.phase = "start"
    record.table = "Plans"

    line = PlainFormatter().format(record)

    assert "[query:start] Query started table=Plans" in line


def test_add_run_log_file_writes(tmp_path) -> None:
    if getattr(setup_logging, "_configured", False):
        setattr(setup_logging, "_configured", False)
    setup_logging(LogConfig(level="INFO", json_logs=False))

    log_path = tmp_path / "run.log"
    add_run_log_file(log_path)
    add_run_log_file(log_path)

    logger = logging.getLogger("unit.test")
    logger.info("file log test")

    content = log_path.read_text(encoding="utf-8")
    assert content.count("file log test") == 1
