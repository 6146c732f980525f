"""Unit-of-work contract and caller deadlines.

Every mutating operation of the order core runs through ``IUnitOfWork.run``:
the callable either commits as a whole or leaves nothing behind.  A
``Deadline`` lets the caller bound how long the unit may take; expiry
aborts the unit with a rollback.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, TypeVar

from modules.core.exceptions import DeadlineExceeded

R = TypeVar("R")


@dataclass(frozen=True)
class Deadline:
    """Absolute point on the monotonic clock after which work is abandoned."""

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(expires_at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(self.expires_at - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self) -> None:
        if self.expired:
            raise DeadlineExceeded()


class IUnitOfWork(Protocol):
    """Transaction boundary used by the application services."""

    def run(self, fn: Callable[[], R], *, deadline: Optional[Deadline] = None) -> R:
        """Execute ``fn`` atomically; any exception rolls everything back."""
        ...

    def checkpoint(self) -> None:
        """Abort the active unit if its deadline has expired."""
        ...

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Schedule ``callback`` to run only if the active unit commits."""
        ...

    def ensure_active(self) -> None:
        """Fail loudly when called outside an open unit of work."""
        ...
