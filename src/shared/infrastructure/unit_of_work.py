"""Django implementation of the unit of work.

Wraps ``transaction.atomic``: nested units become savepoints, so an
operation composed of other operations still commits or rolls back as
one.  Driver errors (``DatabaseError`` and subclasses) are logged and
re-raised as the opaque ``StorageError``.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Callable, Optional, TypeVar

import structlog
from django.db import DEFAULT_DB_ALIAS, DatabaseError, connections, transaction

from modules.core.exceptions import DeadlineExceeded, StorageError
from shared.domain.unit_of_work import Deadline, IUnitOfWork

logger = structlog.get_logger(__name__)

R = TypeVar("R")


class DjangoUnitOfWork(IUnitOfWork):
    def __init__(
        self,
        using: str = DEFAULT_DB_ALIAS,
        default_timeout: Optional[float] = None,
    ) -> None:
        self._using = using
        self._default_timeout = default_timeout
        self._deadline: ContextVar[Optional[Deadline]] = ContextVar(
            f"uow_deadline_{id(self)}", default=None
        )

    def run(self, fn: Callable[[], R], *, deadline: Optional[Deadline] = None) -> R:
        outer = self._deadline.get()
        if deadline is None:
            deadline = outer
        if deadline is None and self._default_timeout:
            deadline = Deadline.after(self._default_timeout)

        token = self._deadline.set(deadline)
        try:
            if deadline is not None:
                deadline.check()
            with transaction.atomic(using=self._using):
                self._apply_statement_timeout(deadline)
                result = fn()
                if deadline is not None:
                    deadline.check()
                return result
        except DatabaseError as exc:
            if deadline is not None and deadline.expired:
                logger.warning("uow.deadline_exceeded", database=self._using)
                raise DeadlineExceeded() from exc
            logger.exception("uow.storage_failure", database=self._using)
            raise StorageError() from exc
        finally:
            self._deadline.reset(token)

    def checkpoint(self) -> None:
        deadline = self._deadline.get()
        if deadline is not None:
            deadline.check()

    def on_commit(self, callback: Callable[[], None]) -> None:
        transaction.on_commit(callback, using=self._using, robust=True)

    def ensure_active(self) -> None:
        if not connections[self._using].in_atomic_block:
            raise RuntimeError("Stock can only be adjusted inside a unit of work.")

    def _apply_statement_timeout(self, deadline: Optional[Deadline]) -> None:
        connection = connections[self._using]
        if deadline is None or connection.vendor != "postgresql":
            return
        timeout_ms = max(int(deadline.remaining() * 1000), 1)
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL statement_timeout = {timeout_ms}")
