"""Environment variable parsing shared by the ``from_env`` constructors."""

from __future__ import annotations

import os


def read_int(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Read an integer env var no smaller than ``minimum``.

    Blank or unset variables yield ``default``.

    Raises
    ------
    ValueError
        If the value is not an integer or is below ``minimum``.

    """
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < minimum:
        msg = f"{env_var} must be at least {minimum}, got: {value}"
        raise ValueError(msg)
    return value


def read_str(env_var: str, default: str | None = None) -> str | None:
    """Return the stripped value of ``env_var`` or ``default`` when blank."""
    raw = os.environ.get(env_var, "").strip()
    return raw or default
