"""
mirror_clone/result.py

Outcome types for per-key transfer work.

Error Handling Convention:
--------------------------
1. **Exceptions** (``mirror_clone.exceptions``) are raised by storages and by
   any step whose failure ends the enclosing scan or run:
   - TransportError: the root index of a crawl could not be fetched
   - ProcessError: a listing process exited abnormally
   - ConfigValidationError: invalid configuration

2. **Result values** (this module) are produced at the boundary of each
   per-key task in the transfer phase. A failed resolve or placement becomes
   an ``Err`` carrying the error code; it is logged and counted, never raised.

Usage:
------
    from mirror_clone.result import Ok, Err

    outcome = Ok(key=key)
    outcome = Err("timeout", "put_object timed out after 60s", key=key)
    if not outcome.is_ok:
        logger.warning("failed %s: %s", outcome.extras["key"], outcome.message)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Result:
    """
    Outcome of one unit of work, either success (Ok) or failure (Err).

    Attributes:
        status: "ok" for success, "error" for failure
        error: Error code (only meaningful when status="error")
        message: Human-readable error message
        extras: Additional context (key, phase, ...)
    """

    status: str
    error: str | None = None
    message: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"


def Ok(**extras: Any) -> Result:  # noqa: N802 - intentional PascalCase
    """Create a successful result."""
    return Result(status="ok", extras=extras)


def Err(error: str, message: str | None = None, **extras: Any) -> Result:  # noqa: N802
    """Create a failure result."""
    return Result(status="error", error=error, message=message, extras=extras)
