from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from examgrader.common.utils import as_utc


class AttemptStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    AUTO_SUBMITTED = "AUTO_SUBMITTED"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED)


class AttemptSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    exam_id: str
    student_id: str
    status: AttemptStatus
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    total_score: Optional[int] = None
    last_heartbeat_at: Optional[datetime] = None

    @field_validator("started_at", "expires_at", "submitted_at", "last_heartbeat_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive datetimes
        return as_utc(value)


class ExamSubmitResponse(BaseModel):
    success: bool = True
    attempt_id: str
    status: AttemptStatus
    submitted_at: Optional[datetime] = None
    total_score: int
