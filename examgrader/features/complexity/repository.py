from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import ComplexityProbeSpec
from .schemas import ProbeSpecSchema


class ComplexityRepository:
    def get_probe_spec(self, db: Session, problem_id: str) -> Optional[ProbeSpecSchema]:
        row = db.scalar(select(ComplexityProbeSpec).where(ComplexityProbeSpec.problem_id == problem_id))
        if row is None:
            return None
        return ProbeSpecSchema.from_model(row)


complexity_repository = ComplexityRepository()

__all__ = ["complexity_repository", "ComplexityRepository"]
