"""Optimistic write guard.

Aggregate rows carry a ``version`` column mapped as ``version_id_col``, so every
ORM UPDATE is a compare-and-swap and a lost race surfaces as ``StaleDataError``.
First-insert races surface as ``IntegrityError`` on the natural-key unique
constraint. Both are retried inside a SAVEPOINT so the enclosing unit of work
survives. Other integrity failures (NOT NULL, foreign keys) are not races and
propagate unchanged.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from examgrader.common.errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) == _UNIQUE_VIOLATION:
        return True
    text = str(orig).lower()
    # sqlite: "UNIQUE constraint failed", postgres: "duplicate key value violates unique constraint"
    return "unique constraint" in text or "duplicate key" in text


def run_guarded(session: Session, operation: Callable[[], T], *, retries: int, label: str) -> T:
    """Run ``operation`` in a savepoint, re-reading and retrying on a lost CAS."""
    for attempt in range(1, max(1, retries) + 1):
        try:
            with session.begin_nested():
                result = operation()
                session.flush()
            return result
        except StaleDataError as exc:
            err = exc
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            err = exc
        logger.warning("cas_conflict label=%s attempt=%d/%d err=%s", label, attempt, retries, type(err).__name__)
        session.expire_all()
    raise ConflictError(message=f"{label}: gave up after {retries} conflicting updates")
