# Import all models here so Alembic can discover them
from examgrader.db.base import Base

from examgrader.features.problems.models import Problem, TestCase, DriverCode
from examgrader.features.complexity.models import ComplexityProbeSpec
from examgrader.features.exams.models import (
    Exam,
    ExamProblem,
    Group,
    GroupMember,
    ExamGroup,
    ExamAttempt,
    ExamResult,
)
from examgrader.features.submissions.models import Submission
from examgrader.features.stats.models import StudentProblemStats, GroupProblemStats, StudentOverallStats

# This ensures all models are registered with SQLAlchemy
__all__ = [
    "Base",
    "Problem",
    "TestCase",
    "DriverCode",
    "ComplexityProbeSpec",
    "Exam",
    "ExamProblem",
    "Group",
    "GroupMember",
    "ExamGroup",
    "ExamAttempt",
    "ExamResult",
    "Submission",
    "StudentProblemStats",
    "GroupProblemStats",
    "StudentOverallStats",
]
