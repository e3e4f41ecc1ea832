"""Unit tests for the femtologging helpers."""

from __future__ import annotations

import typing as typ

import pytest

from mcpmirror.logging import (
    format_log_message,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
)


class _FakeLogger:
    """Collects log calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None, bool]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        self.calls.append((level, message, exc_info, stack_info))
        return message


class TestNormalizeLogLevel:
    """Tests for normalize_log_level."""

    @pytest.mark.parametrize(
        ("input_level", "expected_level", "expected_invalid"),
        [
            ("debug", "DEBUG", False),
            (" warn ", "WARN", False),
            (None, "INFO", True),
            ("", "INFO", True),
            ("verbose", "INFO", True),
        ],
    )
    def test_normalize_log_level(
        self,
        input_level: str | None,
        expected_level: str,
        *,
        expected_invalid: bool,
    ) -> None:
        """Known levels are upper-cased; anything else falls back to INFO."""
        level, invalid = normalize_log_level(input_level)
        assert level == expected_level, (
            f"Expected {input_level!r} to normalize to {expected_level}."
        )
        assert invalid is expected_invalid, (
            f"Expected invalid flag {expected_invalid} for {input_level!r}."
        )


def test_format_log_message_without_args_keeps_percent_signs() -> None:
    """Templates without arguments are returned untouched."""
    assert format_log_message("100% done") == "100% done"


def test_format_log_message_interpolates_args() -> None:
    """Percent formatting produces the expected message."""
    assert format_log_message("page %d of %s", 2, "registry") == "page 2 of registry"


@pytest.mark.parametrize(
    ("emit", "level"),
    [
        (log_debug, "DEBUG"),
        (log_info, "INFO"),
        (log_warning, "WARNING"),
        (log_error, "ERROR"),
    ],
)
def test_level_helpers_format_and_forward(
    emit: typ.Callable[..., None], level: str
) -> None:
    """Each helper formats eagerly and emits its own level."""
    logger = _FakeLogger()
    exc = RuntimeError("boom")

    emit(logger, "synced %s", "io.example/weather", exc_info=exc)

    assert logger.calls == [(level, "synced io.example/weather", exc, False)]


def test_log_exception_passes_exc_info() -> None:
    """log_exception forwards the exception payload at ERROR."""
    logger = _FakeLogger()
    exc = ValueError("boom")

    log_exception(logger, "failed", exc)

    assert logger.calls == [("ERROR", "failed", exc, False)], (
        "Expected ERROR log entry with exc_info."
    )
