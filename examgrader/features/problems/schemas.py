from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from examgrader.features.complexity.schemas import ProbeSpecSchema


class TestCaseSchema(BaseModel):
    __test__ = False

    input: str = ""
    output: str = ""
    order_index: int = 0


class DriverTemplate(BaseModel):
    header: str = ""
    footer: str = ""


class ProblemBundle(BaseModel):
    """Everything grading needs to know about a problem for one language."""
    problem_id: str
    language_id: int
    test_cases: List[TestCaseSchema] = Field(default_factory=list)
    template: DriverTemplate = Field(default_factory=DriverTemplate)
    probe_spec: Optional[ProbeSpecSchema] = None
