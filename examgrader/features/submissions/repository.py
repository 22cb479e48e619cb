from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import Submission


def _triple(student_id: str, problem_id: str, attempt_id: Optional[str]):
    clauses = [Submission.student_id == student_id, Submission.problem_id == problem_id]
    if attempt_id is None:
        clauses.append(Submission.attempt_id.is_(None))
    else:
        clauses.append(Submission.attempt_id == attempt_id)
    return clauses


class SubmissionsRepository:
    def add(self, db: Session, submission: Submission) -> Submission:
        db.add(submission)
        db.flush()
        return submission

    def get_final(
        self,
        db: Session,
        *,
        student_id: str,
        problem_id: str,
        attempt_id: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> Optional[Submission]:
        stmt = select(Submission).where(*_triple(student_id, problem_id, attempt_id), Submission.is_final.is_(True))
        if exclude_id is not None:
            stmt = stmt.where(Submission.id != exclude_id)
        return db.scalar(stmt.with_for_update())

    def list_finals(self, db: Session, *, student_id: str, problem_id: str, attempt_id: Optional[str]) -> List[Submission]:
        stmt = select(Submission).where(*_triple(student_id, problem_id, attempt_id), Submission.is_final.is_(True))
        return list(db.scalars(stmt).all())

    def list_for_attempt(self, db: Session, attempt_id: str, problem_id: str) -> List[Submission]:
        stmt = (
            select(Submission)
            .where(Submission.attempt_id == attempt_id, Submission.problem_id == problem_id)
            .order_by(Submission.created_at, Submission.id)
        )
        return list(db.scalars(stmt).all())

    def best_scores_for_attempt(self, db: Session, attempt_id: str) -> Dict[str, int]:
        stmt = (
            select(Submission.problem_id, func.max(Submission.score))
            .where(Submission.attempt_id == attempt_id)
            .group_by(Submission.problem_id)
        )
        return {problem_id: int(score or 0) for problem_id, score in db.execute(stmt).all()}


submissions_repository = SubmissionsRepository()

__all__ = ["submissions_repository", "SubmissionsRepository"]
