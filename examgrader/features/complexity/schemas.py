from __future__ import annotations

from enum import Enum
from typing import List, Optional

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from examgrader.common.errors import ValidationError

# Bin thresholds assume each probe size is roughly double the previous one.
MIN_STEP_RATIO = 1.5
MAX_STEP_RATIO = 2.5


class ComplexityClass(str, Enum):
    LOGN = "LOGN"
    N = "N"
    NLOGN = "NLOGN"
    N2 = "N2"
    N3 = "N3"
    EXP = "EXP"
    UNSTABLE = "UNSTABLE"
    UNKNOWN = "UNKNOWN"

    @property
    def ordinal(self) -> Optional[int]:
        return _ORDER.get(self)


_ORDER = {
    ComplexityClass.LOGN: 0,
    ComplexityClass.N: 1,
    ComplexityClass.NLOGN: 2,
    ComplexityClass.N2: 3,
    ComplexityClass.N3: 4,
    ComplexityClass.EXP: 5,
}


class FillPattern(str, Enum):
    RANDOM = "RANDOM"
    SORTED = "SORTED"
    REVERSE = "REVERSE"
    CONSTANT = "CONSTANT"


class ProbeSpecSchema(BaseModel):
    problem_id: str
    sizes: List[int] = Field(min_length=3)
    min_value: int = 0
    max_value: int = 1000
    pattern: FillPattern = FillPattern.RANDOM
    expected_complexity: ComplexityClass

    @field_validator("expected_complexity")
    @classmethod
    def _rankable(cls, value: ComplexityClass) -> ComplexityClass:
        if value.ordinal is None:
            raise ValueError("expected_complexity must be one of LOGN, N, NLOGN, N2, N3, EXP")
        return value

    @model_validator(mode="after")
    def _check_progression(self) -> "ProbeSpecSchema":
        if self.min_value > self.max_value:
            raise ValueError("min_value must not exceed max_value")
        if self.sizes[0] <= 0:
            raise ValueError("probe sizes must be positive")
        for prev, nxt in zip(self.sizes, self.sizes[1:]):
            if nxt <= prev:
                raise ValueError("probe sizes must be strictly increasing")
            step = nxt / prev
            if not (MIN_STEP_RATIO <= step <= MAX_STEP_RATIO):
                raise ValueError(
                    f"probe sizes must roughly double each step (got x{step:.2f} from {prev} to {nxt})"
                )
        return self

    @classmethod
    def from_model(cls, row) -> "ProbeSpecSchema":
        try:
            return cls(
                problem_id=row.problem_id,
                sizes=list(row.sizes or []),
                min_value=row.min_value,
                max_value=row.max_value,
                pattern=row.pattern,
                expected_complexity=row.expected_complexity,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(
                "invalid_probe_spec",
                f"Complexity probe spec for problem {row.problem_id} is invalid",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc


class ComplexityOutcome(BaseModel):
    observed: ComplexityClass
    expected: ComplexityClass
    passed: bool
    times: List[float] = Field(default_factory=list)
    ratios: List[float] = Field(default_factory=list)
