from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from examgrader.common.utils import new_id
from examgrader.db.base import Base


class Problem(Base):
    __tablename__ = "problems"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    test_cases = relationship(
        "TestCase", back_populates="problem", order_by="TestCase.order_index", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Problem id={self.id} title={self.title}>"


class TestCase(Base):
    """Hidden functional case (stdin + expected stdout)."""
    __tablename__ = "test_cases"
    __test__ = False  # keep pytest from collecting the model

    id = Column(String(36), primary_key=True, default=new_id)
    problem_id = Column(String(36), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False, index=True)
    input = Column(Text, nullable=False, default="")
    output = Column(Text, nullable=False, default="")
    order_index = Column(Integer, nullable=False, default=0)

    problem = relationship("Problem", back_populates="test_cases")


class DriverCode(Base):
    """Per-language harness wrapped around the student's code."""
    __tablename__ = "driver_codes"
    __table_args__ = (UniqueConstraint("language_id", "problem_id", name="uq_driver_language_problem"),)

    id = Column(String(36), primary_key=True, default=new_id)
    problem_id = Column(String(36), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False, index=True)
    language_id = Column(Integer, nullable=False)
    header = Column(Text, nullable=True)
    footer = Column(Text, nullable=True)
