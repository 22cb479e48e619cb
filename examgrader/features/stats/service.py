"""Incremental statistics.

Aggregates are never recomputed from history: each graded submission moves the
counters and running means forward by one data point. Each row is updated
through ``run_guarded`` so concurrent graders for the same key serialise on the
row's ``version`` instead of double counting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from examgrader.core.config import Settings, get_settings
from examgrader.db.guard import run_guarded
from .models import GroupProblemStats, StudentOverallStats, StudentProblemStats
from .repository import stats_repository

logger = logging.getLogger(__name__)


@dataclass
class StatsUpdate:
    group_id: str
    first_attempt: bool
    first_solve: bool


def running_mean(old_mean: float, old_count: int, value: float) -> float:
    return (old_mean * old_count + value) / (old_count + 1)


class StatsAggregator:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    @property
    def _retries(self) -> int:
        return self.settings.stats_cas_retries

    def record_submission(
        self,
        db: Session,
        *,
        student_id: str,
        problem_id: str,
        group_ids: Iterable[str],
        accepted: bool,
        runtime: float,
        memory: float,
    ) -> List[StatsUpdate]:
        updates: List[StatsUpdate] = []
        for group_id in group_ids:
            first_attempt, first_solve = self._bump_student_problem(db, student_id, problem_id, group_id, accepted)
            self._bump_group_problem(db, group_id, problem_id, first_attempt, first_solve, runtime, memory)
            self._bump_overall_attempts(db, group_id, student_id)
            updates.append(StatsUpdate(group_id=group_id, first_attempt=first_attempt, first_solve=first_solve))
        return updates

    def _bump_student_problem(
        self, db: Session, student_id: str, problem_id: str, group_id: str, accepted: bool
    ) -> Tuple[bool, bool]:
        # The first-attempt / first-solve flags come from the row state this CAS won against
        def _op() -> Tuple[bool, bool]:
            row = stats_repository.get_student_problem(db, student_id, problem_id, group_id)
            if row is None:
                db.add(
                    StudentProblemStats(
                        student_id=student_id,
                        problem_id=problem_id,
                        group_id=group_id,
                        attempts=1,
                        solved=accepted,
                    )
                )
                return True, accepted
            first_solve = accepted and not row.solved
            row.attempts += 1
            if first_solve:
                row.solved = True
            return False, first_solve

        return run_guarded(db, _op, retries=self._retries, label="student_problem_stats")

    def _bump_group_problem(
        self,
        db: Session,
        group_id: str,
        problem_id: str,
        first_attempt: bool,
        first_solve: bool,
        runtime: float,
        memory: float,
    ) -> None:
        def _op() -> None:
            row = stats_repository.get_group_problem(db, group_id, problem_id)
            if row is None:
                db.add(
                    GroupProblemStats(
                        group_id=group_id,
                        problem_id=problem_id,
                        attempted_count=1 if first_attempt else 0,
                        accepted_count=1 if first_solve else 0,
                        total_attempts=1,
                        avg_runtime=runtime,
                        avg_memory=memory,
                    )
                )
                return
            old_total = row.total_attempts
            row.avg_runtime = running_mean(row.avg_runtime, old_total, runtime)
            row.avg_memory = running_mean(row.avg_memory, old_total, memory)
            row.total_attempts = old_total + 1
            if first_attempt:
                row.attempted_count += 1
            if first_solve:
                row.accepted_count += 1

        run_guarded(db, _op, retries=self._retries, label="group_problem_stats")

    def _bump_overall_attempts(self, db: Session, group_id: str, student_id: str) -> None:
        def _op() -> None:
            row = stats_repository.get_overall(db, group_id, student_id)
            if row is None:
                db.add(StudentOverallStats(group_id=group_id, student_id=student_id, total_attempts=1))
                return
            row.total_attempts += 1

        run_guarded(db, _op, retries=self._retries, label="student_overall_stats")

    def record_exam_result(self, db: Session, *, student_id: str, group_ids: Iterable[str], score: int) -> None:
        """Fold a finalized exam score into the student's overall stats."""
        for group_id in group_ids:
            def _op(group_id: str = group_id) -> None:
                row = stats_repository.get_overall(db, group_id, student_id)
                if row is None:
                    row = StudentOverallStats(group_id=group_id, student_id=student_id, total_attempts=0)
                    db.add(row)
                row.total_score = (row.total_score or 0) + score
                row.total_exams = (row.total_exams or 0) + 1
                row.avg_score = row.total_score / row.total_exams

            run_guarded(db, _op, retries=self._retries, label="student_overall_stats")
            logger.info("exam score %d folded into overall stats group=%s student=%s", score, group_id, student_id)
