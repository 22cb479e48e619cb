from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from examgrader.common.errors import NotFoundError
from examgrader.features.complexity.repository import complexity_repository
from .models import Problem, TestCase, DriverCode
from .schemas import DriverTemplate, ProblemBundle, TestCaseSchema


class ProblemsRepository:
    """Read-only access to problem definitions used by grading."""

    def get_problem(self, db: Session, problem_id: str) -> Optional[Problem]:
        return db.get(Problem, problem_id)

    def list_test_cases(self, db: Session, problem_id: str) -> List[TestCaseSchema]:
        rows = db.scalars(
            select(TestCase).where(TestCase.problem_id == problem_id).order_by(TestCase.order_index, TestCase.id)
        ).all()
        return [TestCaseSchema(input=r.input or "", output=r.output or "", order_index=r.order_index) for r in rows]

    def get_template(self, db: Session, language_id: int, problem_id: str) -> DriverTemplate:
        row = db.scalar(
            select(DriverCode).where(DriverCode.language_id == language_id, DriverCode.problem_id == problem_id)
        )
        if row is None:
            return DriverTemplate()
        return DriverTemplate(header=row.header or "", footer=row.footer or "")

    def load_bundle(self, db: Session, problem_id: str, language_id: int) -> ProblemBundle:
        if self.get_problem(db, problem_id) is None:
            raise NotFoundError("problem_not_found", f"Problem {problem_id} not found")
        cases = self.list_test_cases(db, problem_id)
        if not cases:
            raise NotFoundError("test_cases_not_found", f"No test cases configured for problem {problem_id}")
        return ProblemBundle(
            problem_id=problem_id,
            language_id=language_id,
            test_cases=cases,
            template=self.get_template(db, language_id, problem_id),
            probe_spec=complexity_repository.get_probe_spec(db, problem_id),
        )


problems_repository = ProblemsRepository()

__all__ = ["problems_repository", "ProblemsRepository"]
