from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Ok:
    value: Any = None


@dataclass(frozen=True)
class NotFound:
    message: str = "No se encontraron datos"


@dataclass(frozen=True)
class Failure:
    message: str
    status: int | None = None
    field_errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Skipped:
    """No request was issued (memoized, too short, busy or closed)."""

    reason: str


Result = Ok | NotFound | Failure | Skipped
