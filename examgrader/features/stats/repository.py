from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import GroupProblemStats, StudentOverallStats, StudentProblemStats


class StatsRepository:
    def get_student_problem(
        self, db: Session, student_id: str, problem_id: str, group_id: str
    ) -> Optional[StudentProblemStats]:
        return db.scalar(
            select(StudentProblemStats).where(
                StudentProblemStats.student_id == student_id,
                StudentProblemStats.problem_id == problem_id,
                StudentProblemStats.group_id == group_id,
            )
        )

    def get_group_problem(self, db: Session, group_id: str, problem_id: str) -> Optional[GroupProblemStats]:
        return db.scalar(
            select(GroupProblemStats).where(
                GroupProblemStats.group_id == group_id,
                GroupProblemStats.problem_id == problem_id,
            )
        )

    def get_overall(self, db: Session, group_id: str, student_id: str) -> Optional[StudentOverallStats]:
        return db.scalar(
            select(StudentOverallStats).where(
                StudentOverallStats.group_id == group_id,
                StudentOverallStats.student_id == student_id,
            )
        )


stats_repository = StatsRepository()

__all__ = ["stats_repository", "StatsRepository"]
