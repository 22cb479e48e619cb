"""Exam attempt lifecycle.

Attempts move forward only::

    NOT_STARTED -> IN_PROGRESS -> SUBMITTED | AUTO_SUBMITTED

There is no background timer. Every gating check compares the clock with
``expires_at`` and, when the deadline has passed on an ``IN_PROGRESS``
attempt, commits the ``AUTO_SUBMITTED`` transition before failing the caller
with ``ExamExpiredError``.

Blocking ORM work lives in ``*_sync`` methods; the async wrappers hand it to
the threadpool.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, sessionmaker

from examgrader.common.errors import (
    ExamExpiredError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from examgrader.common.utils import as_utc, current_timestamp, round_half_up
from examgrader.core.config import Settings, get_settings
from examgrader.db.guard import run_guarded
from examgrader.features.stats.service import StatsAggregator
from examgrader.features.submissions.repository import submissions_repository
from .models import ExamAttempt
from .repository import exams_repository
from .schemas import AttemptSchema, AttemptStatus, ExamSubmitResponse

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[AttemptStatus, frozenset] = {
    AttemptStatus.NOT_STARTED: frozenset({AttemptStatus.IN_PROGRESS}),
    AttemptStatus.IN_PROGRESS: frozenset({AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED}),
}


def advance(attempt: ExamAttempt, target: AttemptStatus) -> None:
    """Move ``attempt`` to ``target`` or raise if that would go backwards."""
    current = AttemptStatus(attempt.status)
    if target not in _TRANSITIONS.get(current, frozenset()):
        raise InvalidStateError(
            "invalid_transition",
            f"Attempt {attempt.id} cannot move from {current.value} to {target.value}",
        )
    attempt.status = target.value


def is_expired(attempt: ExamAttempt, now: datetime) -> bool:
    expires_at = as_utc(attempt.expires_at)
    return expires_at is not None and now > expires_at


def average_score(problem_ids: Iterable[str], best_scores: Dict[str, int]) -> int:
    """Mean of per-problem best scores; unattempted problems count as 0."""
    problem_ids = list(problem_ids)
    if not problem_ids:
        return 0
    total = sum(best_scores.get(pid, 0) for pid in problem_ids)
    return max(0, min(100, round_half_up(total / len(problem_ids))))


class ExamAttemptService:
    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Optional[Settings] = None,
        *,
        stats: Optional[StatsAggregator] = None,
        clock: Callable[[], datetime] = current_timestamp,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.stats = stats or StatsAggregator(self.settings)
        self.clock = clock

    @property
    def _retries(self) -> int:
        return self.settings.stats_cas_retries

    def _require_attempt(self, db: Session, exam_id: str, student_id: str) -> ExamAttempt:
        attempt = exams_repository.get_attempt(db, exam_id, student_id)
        if attempt is None:
            raise NotFoundError("attempt_not_found", f"No attempt for exam {exam_id}")
        return attempt

    def _expire_if_due(self, db: Session, attempt: ExamAttempt, now: datetime) -> bool:
        """Force AUTO_SUBMITTED on an overdue IN_PROGRESS attempt. Returns True if it fired."""
        def _op() -> bool:
            if attempt.status != AttemptStatus.IN_PROGRESS.value or not is_expired(attempt, now):
                return False
            advance(attempt, AttemptStatus.AUTO_SUBMITTED)
            attempt.submitted_at = now
            return True

        fired = run_guarded(db, _op, retries=self._retries, label="exam_attempt_expiry")
        if fired:
            logger.info("attempt %s auto-submitted (expired at %s)", attempt.id, attempt.expires_at)
        return fired

    # -------- start --------
    def start_sync(self, exam_id: str, student_id: str) -> AttemptSchema:
        now = self.clock()
        with self.session_factory() as db:
            with db.begin():
                exam = exams_repository.get_exam(db, exam_id)
                if exam is None:
                    raise NotFoundError("exam_not_found", f"Exam {exam_id} not found")
                if not exam.is_published:
                    raise InvalidStateError("exam_not_published", "Exam is not published")
                start_at = as_utc(exam.start_at)
                if start_at is not None and now < start_at:
                    raise InvalidStateError("exam_not_started", f"Exam opens at {start_at.isoformat()}")
                if not exams_repository.list_linked_group_ids(db, exam_id, student_id):
                    raise ForbiddenError("not_in_exam_group", "Student is not in a group assigned to this exam")

                def _op() -> ExamAttempt:
                    attempt = exams_repository.get_attempt(db, exam_id, student_id)
                    if attempt is None:
                        attempt = ExamAttempt(
                            exam_id=exam_id,
                            student_id=student_id,
                            status=AttemptStatus.NOT_STARTED.value,
                        )
                        db.add(attempt)
                    status = AttemptStatus(attempt.status)
                    if status.is_terminal:
                        raise InvalidStateError("already_attempted", "Exam already attempted")
                    if status == AttemptStatus.NOT_STARTED:
                        advance(attempt, AttemptStatus.IN_PROGRESS)
                        attempt.started_at = now
                        attempt.expires_at = now + timedelta(minutes=exam.duration_minutes)
                        attempt.last_heartbeat_at = now
                    elif not is_expired(attempt, now):
                        # Re-entry only refreshes liveness
                        attempt.last_heartbeat_at = now
                    return attempt

                attempt = run_guarded(db, _op, retries=self._retries, label="exam_attempt_start")
                expired = self._expire_if_due(db, attempt, now)
                snapshot = AttemptSchema.model_validate(attempt)
        if expired:
            raise ExamExpiredError(message=f"Exam time expired at {snapshot.expires_at}")
        logger.info("attempt %s started/resumed exam=%s student=%s", snapshot.id, exam_id, student_id)
        return snapshot

    async def start(self, exam_id: str, student_id: str) -> AttemptSchema:
        return await run_in_threadpool(self.start_sync, exam_id, student_id)

    # -------- heartbeat --------
    def heartbeat_sync(self, exam_id: str, student_id: str) -> AttemptSchema:
        now = self.clock()
        with self.session_factory() as db:
            with db.begin():
                attempt = self._require_attempt(db, exam_id, student_id)
                expired = self._expire_if_due(db, attempt, now)
                if not expired and attempt.status == AttemptStatus.IN_PROGRESS.value:
                    def _op() -> None:
                        attempt.last_heartbeat_at = now

                    run_guarded(db, _op, retries=self._retries, label="exam_attempt_heartbeat")
                snapshot = AttemptSchema.model_validate(attempt)
        if expired:
            raise ExamExpiredError(message=f"Exam time expired at {snapshot.expires_at}")
        if snapshot.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("attempt_not_in_progress", f"Attempt is {snapshot.status.value}")
        return snapshot

    async def heartbeat(self, exam_id: str, student_id: str) -> AttemptSchema:
        return await run_in_threadpool(self.heartbeat_sync, exam_id, student_id)

    # -------- eligibility --------
    def check_eligibility_sync(self, exam_id: str, student_id: str) -> AttemptSchema:
        """Attempt must exist, be IN_PROGRESS and not be past its deadline.

        Group membership is re-checked on every call, so a student removed
        from the exam's groups mid-attempt can no longer submit.
        """
        now = self.clock()
        with self.session_factory() as db:
            with db.begin():
                attempt = self._require_attempt(db, exam_id, student_id)
                expired = self._expire_if_due(db, attempt, now)
                snapshot = AttemptSchema.model_validate(attempt)
                member = bool(exams_repository.list_linked_group_ids(db, exam_id, student_id))
        if expired:
            raise ExamExpiredError(message=f"Exam time expired at {snapshot.expires_at}")
        if not member:
            raise ForbiddenError("not_in_exam_group", "Student is not in a group assigned to this exam")
        if snapshot.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("attempt_not_in_progress", f"Attempt is {snapshot.status.value}")
        return snapshot

    async def check_eligibility(self, exam_id: str, student_id: str) -> AttemptSchema:
        return await run_in_threadpool(self.check_eligibility_sync, exam_id, student_id)

    # -------- explicit submit --------
    def submit_exam_sync(self, exam_id: str, student_id: str) -> ExamSubmitResponse:
        self.check_eligibility_sync(exam_id, student_id)
        now = self.clock()
        with self.session_factory() as db:
            with db.begin():
                attempt = self._require_attempt(db, exam_id, student_id)
                problem_ids = exams_repository.list_problem_ids(db, exam_id)
                best = submissions_repository.best_scores_for_attempt(db, attempt.id)
                total = average_score(problem_ids, best)

                def _op() -> None:
                    advance(attempt, AttemptStatus.SUBMITTED)
                    attempt.submitted_at = now
                    attempt.total_score = total
                    exams_repository.add_result(
                        db, exam_id=exam_id, student_id=student_id, attempt_id=attempt.id, score=total
                    )

                run_guarded(db, _op, retries=self._retries, label="exam_attempt_submit")
                group_ids: List[str] = exams_repository.list_linked_group_ids(db, exam_id, student_id)
                self.stats.record_exam_result(db, student_id=student_id, group_ids=group_ids, score=total)
                response = ExamSubmitResponse(
                    attempt_id=attempt.id,
                    status=AttemptStatus(attempt.status),
                    submitted_at=attempt.submitted_at,
                    total_score=total,
                )
        logger.info(
            "exam %s submitted student=%s problems=%d score=%d", exam_id, student_id, len(problem_ids), total
        )
        return response

    async def submit_exam(self, exam_id: str, student_id: str) -> ExamSubmitResponse:
        return await run_in_threadpool(self.submit_exam_sync, exam_id, student_id)
