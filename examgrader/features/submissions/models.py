from sqlalchemy import Column, String, Text, Integer, Float, Boolean, DateTime, ForeignKey, Index, func

from examgrader.common.utils import new_id
from examgrader.db.base import Base


class Submission(Base):
    """Graded submission. Only ``is_final`` changes after insert."""
    __tablename__ = "submissions"
    __table_args__ = (Index("ix_submissions_triple", "student_id", "problem_id", "attempt_id"),)

    id = Column(String(36), primary_key=True, default=new_id)
    problem_id = Column(String(36), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(36), nullable=False)
    exam_id = Column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=True)
    attempt_id = Column(String(36), ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=True)
    source_code = Column(Text, nullable=False)
    language_id = Column(Integer, nullable=False)
    language = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    score = Column(Integer, nullable=False, default=0)
    passed_testcases = Column(Integer, nullable=False, default=0)
    total_testcases = Column(Integer, nullable=False, default=0)
    execution_time = Column(Float, nullable=False, default=0.0)
    memory = Column(Integer, nullable=False, default=0)
    observed_complexity = Column(String(20), nullable=True)
    expected_complexity = Column(String(20), nullable=True)
    is_final = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Submission id={self.id} status={self.status} final={self.is_final}>"


# At most one final submission per (student, problem, attempt); practice rows
# have no attempt, so NULL is folded to '' to make them collide too.
Index(
    "uq_submissions_final",
    Submission.student_id,
    Submission.problem_id,
    func.coalesce(Submission.attempt_id, ""),
    unique=True,
    postgresql_where=Submission.is_final.is_(True),
    sqlite_where=Submission.is_final.is_(True),
)
