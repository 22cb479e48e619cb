from sqlalchemy import Column, String, Integer, Float, Boolean, UniqueConstraint

from examgrader.common.utils import new_id
from examgrader.db.base import Base


class StudentProblemStats(Base):
    __tablename__ = "student_problem_stats"
    __table_args__ = (
        UniqueConstraint("student_id", "problem_id", "group_id", name="uq_student_problem_group"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), nullable=False, index=True)
    problem_id = Column(String(36), nullable=False)
    group_id = Column(String(36), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    solved = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class GroupProblemStats(Base):
    __tablename__ = "group_problem_stats"
    __table_args__ = (UniqueConstraint("group_id", "problem_id", name="uq_group_problem"),)

    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), nullable=False, index=True)
    problem_id = Column(String(36), nullable=False)
    attempted_count = Column(Integer, nullable=False, default=0)
    accepted_count = Column(Integer, nullable=False, default=0)
    total_attempts = Column(Integer, nullable=False, default=0)
    avg_runtime = Column(Float, nullable=False, default=0.0)
    avg_memory = Column(Float, nullable=False, default=0.0)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class StudentOverallStats(Base):
    __tablename__ = "student_overall_stats"
    __table_args__ = (UniqueConstraint("group_id", "student_id", name="uq_overall_group_student"),)

    id = Column(String(36), primary_key=True, default=new_id)
    group_id = Column(String(36), nullable=False, index=True)
    student_id = Column(String(36), nullable=False)
    total_score = Column(Integer, nullable=False, default=0)
    total_exams = Column(Integer, nullable=False, default=0)
    avg_score = Column(Float, nullable=False, default=0.0)
    total_attempts = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
