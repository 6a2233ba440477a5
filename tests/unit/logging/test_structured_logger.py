"""
Tests unitaires pour StructuredLogger.

- Une entrée = une ligne JSON
- Champs obligatoires: timestamp, level, correlation_id, logger, message
- Timestamp ISO 8601 UTC avec millisecondes
- Données sensibles masquées
"""

import json
import re
from typing import List

import pytest

from authstate.logging import (
    ContextualLogger,
    LogConfig,
    LogLevel,
    MissingRequiredFieldError,
    StructuredLogger,
)


def make_logger(lines: List[str], **config_kwargs) -> StructuredLogger:
    return StructuredLogger("authstate.test", config=LogConfig(**config_kwargs), output_handler=lines.append)


class TestJsonOutput:
    def test_one_json_line_per_entry(self) -> None:
        lines: List[str] = []
        logger = make_logger(lines)

        logger.info("Login succeeded", user_id="u-1")
        logger.warn("Login failed")

        assert len(lines) == 2
        parsed = json.loads(lines[0])
        assert parsed["message"] == "Login succeeded"
        assert parsed["extra"] == {"user_id": "u-1"}

    def test_required_fields_present(self) -> None:
        lines: List[str] = []
        make_logger(lines).info("hello")

        parsed = json.loads(lines[0])
        for field_name in ("timestamp", "level", "correlation_id", "logger", "message"):
            assert field_name in parsed
        assert parsed["logger"] == "authstate.test"
        assert parsed["level"] == "INFO"

    def test_timestamp_iso8601_utc_millis(self, clock) -> None:
        lines: List[str] = []
        logger = StructuredLogger("t", output_handler=lines.append, clock=clock)

        entry = logger.info("tick")

        assert entry is not None
        assert entry.timestamp == "2025-01-15T12:00:00.000Z"
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", entry.timestamp)

    def test_empty_message_rejected(self) -> None:
        with pytest.raises(MissingRequiredFieldError):
            make_logger([]).info("")

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            StructuredLogger("  ")


class TestLevels:
    def test_below_min_level_filtered(self) -> None:
        lines: List[str] = []
        logger = make_logger(lines, min_level=LogLevel.WARN)

        assert logger.info("ignored") is None
        assert logger.error("kept") is not None
        assert len(lines) == 1

    def test_from_name_accepts_warning(self) -> None:
        assert LogLevel.from_name("warning") is LogLevel.WARN
        assert LogLevel.from_name(" debug ") is LogLevel.DEBUG

    def test_from_name_rejects_unknown(self) -> None:
        with pytest.raises(ValueError):
            LogLevel.from_name("verbose")

    def test_entries_keep_level(self) -> None:
        logger = make_logger([])
        logger.info("a")
        logger.error("b")

        assert [e.level for e in logger.get_entries()] == [LogLevel.INFO, LogLevel.ERROR]


class TestMasking:
    def test_tokens_never_logged_in_clear(self) -> None:
        lines: List[str] = []
        logger = make_logger(lines)

        logger.info("Token refreshed", refresh_token="eyJhbGciOi.secret", user_id="u-1")

        assert "eyJhbGciOi" not in lines[0]
        assert json.loads(lines[0])["extra"]["refresh_token"] == "***MASKED***"

    def test_safe_keys_not_masked(self) -> None:
        lines: List[str] = []
        make_logger(lines).info("Revoked", token_type="refresh", tokens_revoked=3)

        extra = json.loads(lines[0])["extra"]
        assert extra == {"token_type": "refresh", "tokens_revoked": 3}

    def test_masking_can_be_disabled(self) -> None:
        lines: List[str] = []
        make_logger(lines, mask_sensitive=False).info("debug", password="x")

        assert json.loads(lines[0])["extra"]["password"] == "x"


class TestCorrelation:
    def test_generated_when_absent(self) -> None:
        logger = make_logger([])

        first = logger.info("a")
        second = logger.info("b")

        assert first is not None and second is not None
        assert first.correlation_id != second.correlation_id

    def test_default_correlation(self) -> None:
        logger = make_logger([], default_correlation_id="req-1")

        logger.info("a")
        logger.info("b")

        assert [e.correlation_id for e in logger.get_entries()] == ["req-1", "req-1"]

    def test_contextual_logger_fixes_id(self) -> None:
        logger = make_logger([])
        ctx = logger.with_context("req-42")

        assert isinstance(ctx, ContextualLogger)
        ctx.info("a")
        ctx.error("b")

        assert ctx.correlation_id == "req-42"
        assert [e.correlation_id for e in logger.get_entries()] == ["req-42", "req-42"]


class TestChildAndRetention:
    def test_child_shares_output(self) -> None:
        lines: List[str] = []
        child = make_logger(lines).child("tokens")

        child.info("issued")

        assert child.name == "authstate.test.tokens"
        assert json.loads(lines[0])["logger"] == "authstate.test.tokens"

    def test_retained_entries_bounded(self) -> None:
        logger = make_logger([], retained_entries=2)

        for i in range(5):
            logger.info(f"m{i}")

        assert [e.message for e in logger.get_entries()] == ["m3", "m4"]

    def test_clear_entries(self) -> None:
        logger = make_logger([])
        logger.info("a")
        logger.clear_entries()

        assert logger.get_entries() == []
