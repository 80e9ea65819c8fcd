"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import MissingMemberContextError
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    level_from_env,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("posted", extra={"line_count": 2, "doc_type": "Invoice"})

        record = _parse_log(stream)
        assert record["line_count"] == 2
        assert record["doc_type"] == "Invoice"

    def test_decimal_rendered_as_string(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("balanced", extra={"debit_total": Decimal("1200.00")})

        assert _parse_log(stream)["debit_total"] == "1200.00"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", doc_no="INV-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["doc_no"] == "INV-1"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_ledger_exception_fields_extracted(self):
        """Ledger exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise MissingMemberContextError("1400", ["period_bucket"])
        except MissingMemberContextError:
            get_logger("test").error("posting_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "MISSING_MEMBER_CONTEXT"
        assert record["exc_type"] == "MissingMemberContextError"
        assert record["exc_account_code"] == "1400"
        assert record["exc_missing"] == ["period_bucket"]

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "doc_no" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_uuid", extra={"journal_id": uid})

        assert _parse_log(stream)["journal_id"] == str(uid)

    def test_debug_filtered_at_info(self, monkeypatch):
        monkeypatch.delenv("LEDGER_LOG_LEVEL", raising=False)
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", doc_no="y")
        assert LogContext.get_all() == {"correlation_id": "x", "doc_no": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(doc_no="outer")
        with LogContext.bind(doc_no="inner"):
            assert LogContext.get_all()["doc_no"] == "inner"
        assert LogContext.get_all()["doc_no"] == "outer"

    def test_bind_restores_none(self):
        assert "doc_no" not in LogContext.get_all()
        with LogContext.bind(doc_no="temp"):
            assert LogContext.get_all()["doc_no"] == "temp"
        assert "doc_no" not in LogContext.get_all()

    def test_all_fields(self):
        LogContext.set(correlation_id="c", tenant_id="t1", actor_id="a", doc_no="d", trace_id="t")
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["tenant_id"] == "t1"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("ledger_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.journal_poster").name == "ledger_kernel.services.journal_poster"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("modules.reporting.service").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "ledger_kernel.modules.reporting.service"

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "warning")
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]

    @pytest.mark.parametrize(
        "value, expected",
        [("DEBUG", logging.DEBUG), (" error ", logging.ERROR), ("", logging.INFO), ("LOUD", logging.INFO)],
    )
    def test_level_from_env_parsing(self, monkeypatch, value, expected):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", value)
        assert level_from_env() == expected
