"""
Tests for core helpers: errors, ids, dates, retry, logging and local metrics.
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest
from loguru import logger as loguru_logger

from grimoire.core.database import _classify_sqlite_error
from grimoire.core.exceptions import (
    DatabaseError,
    EmbeddingError,
    ExternalServiceError,
    GrimoireError,
    MaterializationError,
    RetrievalError,
    SQLiteBusyError,
    SQLiteConstraintError,
    SQLiteCorruptError,
    ValidationError,
)
from grimoire.core.id_generator import generate_id, is_valid_id
from grimoire.core.logging import AsyncLogger, _get_log_level
from grimoire.core.tracing import MetricsCollector, tracer
from grimoire.core.utils.datetime_utils import format_iso, parse_iso_datetime
from grimoire.core.utils.retry import retry_async


class TestExceptions:
    def test_to_dict(self):
        cause = KeyError("recordType")
        error = MaterializationError("Raw asset has no recordType", context={"id": "a1"}, cause=cause)
        error.add_suggestion("Check the store export")
        error.add_suggestion("Check the store export")
        error.add_suggestion("")

        data = error.to_dict()

        assert data["code"] == "MaterializationError"
        assert data["message"] == "Raw asset has no recordType"
        assert data["context"] == {"id": "a1"}
        assert data["cause"]["type"] == "KeyError"
        assert data["suggestions"] == ["Check the store export"]
        assert data["timestamp"].endswith("Z")
        assert is_valid_id(data["error_id"])

    def test_custom_code(self):
        assert EmbeddingError("down", code="OLLAMA_NO_EMBEDDING").code == "OLLAMA_NO_EMBEDDING"

    def test_hierarchy(self):
        assert issubclass(EmbeddingError, ExternalServiceError)
        assert issubclass(RetrievalError, ExternalServiceError)
        assert issubclass(SQLiteBusyError, DatabaseError)
        assert issubclass(ValidationError, GrimoireError)

    @pytest.mark.parametrize(
        "error,retryable",
        [
            (ValidationError("bad limit"), False),
            (RetrievalError("keyword failed"), True),
            (SQLiteBusyError("locked"), True),
            (SQLiteCorruptError("corrupt"), False),
            (SQLiteConstraintError("check failed"), False),
        ],
    )
    def test_retryable(self, error, retryable):
        assert error.is_retryable() is retryable


class TestSqliteClassification:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("database is locked", SQLiteBusyError),
            ("database disk image is malformed: corrupt", SQLiteCorruptError),
            ("CHECK constraint failed: search_metrics", SQLiteConstraintError),
            ("no such table: nothing", DatabaseError),
        ],
    )
    def test_classify(self, message, expected):
        error = _classify_sqlite_error(sqlite3.OperationalError(message))

        assert type(error) is expected
        assert error.suggestions


class TestIds:
    def test_hex32(self):
        value = generate_id()

        assert len(value) == 32
        assert is_valid_id(value)

    def test_uuid(self):
        assert is_valid_id(generate_id("uuid4"))

    @pytest.mark.parametrize("value", ["", "xyz", "g" * 32])
    def test_invalid(self, value):
        assert is_valid_id(value) is False


class TestDatetimes:
    def test_round_trip(self):
        moment = datetime(2024, 1, 15, 10, 30, 45, 123456, tzinfo=timezone.utc)

        assert format_iso(moment) == "2024-01-15T10:30:45.123456Z"
        assert parse_iso_datetime(format_iso(moment)) == moment

    def test_offsets_normalized(self):
        parsed = parse_iso_datetime("2024-01-15T12:30:00+02:00")

        assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(0)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_iso_datetime("last tuesday")


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("refused")
            return "ok"

        result = await retry_async(flaky, max_attempts=3, initial_delay=0.01, retry_on=(ConnectionError,))

        assert result == "ok"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_raises_last_error(self):
        async def broken():
            raise ConnectionError("refused")

        with pytest.raises(ConnectionError):
            await retry_async(broken, max_attempts=2, initial_delay=0.01, retry_on=(ConnectionError,))

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        attempts = []

        async def broken():
            attempts.append(1)
            raise KeyError("model")

        with pytest.raises(KeyError):
            await retry_async(broken, max_attempts=3, initial_delay=0.01, retry_on=(ConnectionError,))
        assert len(attempts) == 1


class TestLocalMetrics:
    def test_namespaced_counters(self):
        collector = MetricsCollector(namespace="search.metrics")
        collector.increment("recorded")
        collector.increment("recorded")
        collector.gauge("last_execution_time_ms", 12.5)

        assert collector.get("recorded") == 2
        assert collector.get_metrics() == {
            "search.metrics.recorded": 2,
            "search.metrics.last_execution_time_ms": 12.5,
        }

        collector.reset()
        assert collector.get_metrics() == {}

    def test_span_logs_duration(self, log_records):
        with tracer.span("hybrid_search", {"campaign_id": "camp1"}) as span_id:
            pass

        spans = [r for r in log_records if r["message"] == "Span completed"]
        assert spans[-1]["extra"]["span_id"] == span_id
        assert spans[-1]["extra"]["campaign_id"] == "camp1"
        assert spans[-1]["extra"]["duration_ms"] >= 0


class TestLogLevel:
    @pytest.fixture(autouse=True)
    def _no_debug(self, clean_env, monkeypatch):
        monkeypatch.delenv("GRIMOIRE_DEBUG", raising=False)

    def test_default(self):
        assert _get_log_level() == "INFO"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("GRIMOIRE_LOG_LEVEL", "warning")

        assert _get_log_level() == "WARNING"

    def test_config_file(self, clean_env):
        (clean_env / "grimoire.yaml").write_text("logging:\n  level: ERROR\n")

        assert _get_log_level() == "ERROR"

    def test_environment_wins_over_file(self, clean_env, monkeypatch):
        (clean_env / "grimoire.yaml").write_text("logging:\n  level: ERROR\n")
        monkeypatch.setenv("GRIMOIRE_LOG_LEVEL", "DEBUG")

        assert _get_log_level() == "DEBUG"

    def test_debug_mode(self, monkeypatch):
        monkeypatch.setenv("GRIMOIRE_DEBUG", "true")

        assert _get_log_level() == "DEBUG"

    def test_unknown_level(self, monkeypatch):
        monkeypatch.setenv("GRIMOIRE_LOG_LEVEL", "chatty")

        assert _get_log_level() == "INFO"

    def test_file_sink_honours_level(self, clean_env, monkeypatch):
        log_file = clean_env / "sink.log"
        monkeypatch.setenv("GRIMOIRE_LOG_FILE", str(log_file))
        monkeypatch.setenv("GRIMOIRE_LOG_LEVEL", "WARNING")
        monkeypatch.setattr(AsyncLogger, "_handler_id", None)

        sink_logger = AsyncLogger("test")
        try:
            sink_logger.info("Cache warmed")
            sink_logger.warning("Cache nearly full")
            loguru_logger.complete()
            content = log_file.read_text()
        finally:
            loguru_logger.remove(AsyncLogger._handler_id)

        assert "Cache nearly full" in content
        assert "Cache warmed" not in content
