"""Deployment environments and the multi-select encoding used on the form."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

ENVIRONMENT_SEPARATOR = "+"


class Environment(str, Enum):
    DEV = "DEV"
    INT = "INT"
    UAT = "UAT"
    PROD = "PROD"


def decode_environments(value: str | Iterable[str]) -> tuple[Environment, ...]:
    """Decode ``"DEV+UAT"`` (or ``["DEV", "UAT"]``) into an ordered enum tuple.

    Order of selection is kept. Blank parts are ignored; unknown or repeated
    names raise ``ValueError``.
    """
    parts = value.split(ENVIRONMENT_SEPARATOR) if isinstance(value, str) else list(value)
    decoded: list[Environment] = []
    for part in parts:
        name = str(part).strip().upper()
        if not name:
            continue
        try:
            env = Environment(name)
        except ValueError as exc:
            allowed = ", ".join(e.value for e in Environment)
            raise ValueError(f"Unknown environment {part!r} (expected one of {allowed})") from exc
        if env in decoded:
            raise ValueError(f"Environment {env.value} selected more than once")
        decoded.append(env)
    if not decoded:
        raise ValueError("At least one environment is required")
    return tuple(decoded)


def encode_environments(environments: Iterable[Environment]) -> str:
    return ENVIRONMENT_SEPARATOR.join(env.value for env in environments)
