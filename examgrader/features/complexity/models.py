from sqlalchemy import Column, String, Integer, ForeignKey, JSON

from examgrader.common.utils import new_id
from examgrader.db.base import Base


class ComplexityProbeSpec(Base):
    """Per-problem scaling probe configuration (read-only for grading)."""
    __tablename__ = "complexity_probe_specs"

    id = Column(String(36), primary_key=True, default=new_id)
    problem_id = Column(String(36), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False, unique=True)
    sizes = Column(JSON, nullable=False)
    min_value = Column(Integer, nullable=False, default=0)
    max_value = Column(Integer, nullable=False, default=1000)
    pattern = Column(String(20), nullable=False, default="RANDOM")
    expected_complexity = Column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<ComplexityProbeSpec problem={self.problem_id} expected={self.expected_complexity}>"
