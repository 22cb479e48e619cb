from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from examgrader.common.utils import new_id
from examgrader.db.base import Base


class Exam(Base):
    __tablename__ = "exams"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_published = Column(Boolean, nullable=False, default=False)
    start_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ExamProblem(Base):
    __tablename__ = "exam_problems"
    __table_args__ = (UniqueConstraint("exam_id", "problem_id", name="uq_exam_problem"),)

    id = Column(String(36), primary_key=True, default=new_id)
    exam_id = Column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    problem_id = Column(String(36), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)


class Group(Base):
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "student_id", name="uq_group_member"),)

    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)


class ExamGroup(Base):
    __tablename__ = "exam_groups"
    __table_args__ = (UniqueConstraint("exam_id", "group_id", name="uq_exam_group"),)

    id = Column(String(36), primary_key=True, default=new_id)
    exam_id = Column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)


class ExamAttempt(Base):
    """One student's sitting of one exam. Status only moves forward."""
    __tablename__ = "exam_attempts"
    __table_args__ = (UniqueConstraint("exam_id", "student_id", name="uq_attempt_exam_student"),)

    id = Column(String(36), primary_key=True, default=new_id)
    exam_id = Column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="NOT_STARTED")
    started_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    total_score = Column(Integer, nullable=True)
    last_heartbeat_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ExamAttempt id={self.id} status={self.status}>"


class ExamResult(Base):
    __tablename__ = "exam_results"

    id = Column(String(36), primary_key=True, default=new_id)
    exam_id = Column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    attempt_id = Column(String(36), ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, unique=True)
    score = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
