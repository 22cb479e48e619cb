from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from examgrader.features.complexity.schemas import ComplexityClass

# Judge0 language ids accepted for grading
SUPPORTED_LANGUAGES: Dict[int, str] = {
	50: "C",
	54: "C++",
	51: "C#",
	60: "Go",
	62: "Java",
	63: "JavaScript",
	71: "Python",
	73: "Rust",
	74: "TypeScript",
}


class EvaluationMode(str, Enum):
	EXAM = "EXAM"
	PRACTICE = "PRACTICE"


class CaseVerdict(str, Enum):
	"""Outcome of one hidden test case."""
	ACCEPTED = "ACCEPTED"
	WRONG_ANSWER = "WRONG_ANSWER"
	TIME_LIMIT_EXCEEDED = "TIME_LIMIT_EXCEEDED"
	COMPILATION_ERROR = "COMPILATION_ERROR"
	RUNTIME_ERROR = "RUNTIME_ERROR"
	INTERNAL_ERROR = "INTERNAL_ERROR"


class SubmissionStatus(str, Enum):
	"""Overall outcome of a graded submission."""
	ACCEPTED = "ACCEPTED"
	PARTIAL = "PARTIAL"
	WRONG_ANSWER = "WRONG_ANSWER"
	TIME_LIMIT = "TIME_LIMIT"
	RUNTIME_ERROR = "RUNTIME_ERROR"
	COMPILE_ERROR = "COMPILE_ERROR"
	BAD_SCALING = "BAD_SCALING"


class SubmissionCreateRequest(BaseModel):
	source_code: str
	language_id: int

	@model_validator(mode="after")
	def ensure_payload(self) -> "SubmissionCreateRequest":
		if not self.source_code or not self.source_code.strip():
			raise ValueError("source_code is required for submission")
		return self


class SubmissionRequest(BaseModel):
	"""Internal grading request (identity already resolved)."""
	student_id: str
	problem_id: str
	language_id: int
	source_code: str
	mode: EvaluationMode = EvaluationMode.EXAM
	exam_id: Optional[str] = None


class CaseResultSchema(BaseModel):
	verdict: CaseVerdict
	status_id: int
	status_description: str = ""
	stdout: Optional[str] = None
	stderr: Optional[str] = None
	compile_output: Optional[str] = None
	time_seconds: Optional[float] = None
	memory_kb: Optional[int] = None


class SubmissionResultSchema(BaseModel):
	success: bool = True
	submission_id: str
	mode: EvaluationMode
	status: SubmissionStatus
	score: int
	passed_count: int
	total_count: int
	is_final: bool
	results: List[CaseResultSchema] = Field(default_factory=list)
	total_time_taken: float = 0.0
	total_memory_taken: int = 0
	your_time_complexity: Optional[ComplexityClass] = None
	expected_time_complexity: Optional[ComplexityClass] = None


class SubmissionSummarySchema(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	problem_id: str
	attempt_id: Optional[str] = None
	language: str
	status: SubmissionStatus
	score: int
	passed_testcases: int
	total_testcases: int
	execution_time: float
	memory: int
	observed_complexity: Optional[str] = None
	expected_complexity: Optional[str] = None
	is_final: bool
	created_at: Optional[datetime] = None
