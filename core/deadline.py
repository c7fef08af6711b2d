# Path: core/deadline.py
# Purpose: Provide a cooperative deadline shared by a call and every collaborator it reaches.
# Layer: core.
# Details: Deadlines are monotonic-clock based; compensation uses a fresh deadline detached from the parent.

from __future__ import annotations

import time
from typing import Optional

from .errors import DeadlineExceededError


class Deadline:
    """Absolute point in time after which work should not start.

    A ``Deadline`` created with ``timeout=None`` never expires. Collaborator
    timeouts are derived from the remaining budget, capped by the collaborator's
    own default so a long parent deadline never disables per-call timeouts.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._expires_at: Optional[float] = None if timeout is None else time.monotonic() + max(0.0, timeout)

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(seconds)

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    @property
    def expires_at(self) -> Optional[float]:
        return self._expires_at

    def remaining(self) -> Optional[float]:
        """Return the seconds left, or None for an unbounded deadline."""

        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def timeout_for(self, default: float) -> float:
        """Return the timeout to hand to a single collaborator call."""

        remaining = self.remaining()
        if remaining is None:
            return default
        return min(default, remaining)

    def check(self, step: str, **context) -> None:
        """Raise DeadlineExceededError when the deadline has passed before ``step`` starts."""

        if self.expired():
            raise DeadlineExceededError(f"deadline exceeded before {step}", step=step, **context)


__all__ = ["Deadline"]
