from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Exam, ExamAttempt, ExamGroup, ExamProblem, ExamResult, GroupMember


class ExamsRepository:
    def get_exam(self, db: Session, exam_id: str) -> Optional[Exam]:
        return db.get(Exam, exam_id)

    def get_attempt(self, db: Session, exam_id: str, student_id: str) -> Optional[ExamAttempt]:
        return db.scalar(
            select(ExamAttempt).where(ExamAttempt.exam_id == exam_id, ExamAttempt.student_id == student_id)
        )

    def get_attempt_by_id(self, db: Session, attempt_id: str) -> Optional[ExamAttempt]:
        return db.get(ExamAttempt, attempt_id)

    def list_problem_ids(self, db: Session, exam_id: str) -> List[str]:
        return list(db.scalars(select(ExamProblem.problem_id).where(ExamProblem.exam_id == exam_id)).all())

    def exam_has_problem(self, db: Session, exam_id: str, problem_id: str) -> bool:
        row = db.scalar(
            select(ExamProblem.id).where(ExamProblem.exam_id == exam_id, ExamProblem.problem_id == problem_id)
        )
        return row is not None

    def list_linked_group_ids(self, db: Session, exam_id: str, student_id: str) -> List[str]:
        """Groups the student belongs to that are linked to the exam."""
        stmt = (
            select(GroupMember.group_id)
            .join(ExamGroup, ExamGroup.group_id == GroupMember.group_id)
            .where(ExamGroup.exam_id == exam_id, GroupMember.student_id == student_id)
            .order_by(GroupMember.group_id)
        )
        return list(dict.fromkeys(db.scalars(stmt).all()))

    def add_result(self, db: Session, *, exam_id: str, student_id: str, attempt_id: str, score: int) -> ExamResult:
        result = ExamResult(exam_id=exam_id, student_id=student_id, attempt_id=attempt_id, score=score)
        db.add(result)
        return result


exams_repository = ExamsRepository()

__all__ = ["exams_repository", "ExamsRepository"]
