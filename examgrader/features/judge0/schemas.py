from pydantic import BaseModel
from typing import Optional, Union


class JudgeCase(BaseModel):
    """One execution request in decoded (plain text) form."""
    source_code: str
    language_id: int
    stdin: Optional[str] = None
    expected_output: Optional[str] = None


class Judge0SubmissionRequest(BaseModel):
    """Wire payload; text fields are base64 encoded."""
    source_code: str
    language_id: int
    stdin: Optional[str] = None
    expected_output: Optional[str] = None


class Judge0ExecutionResult(BaseModel):
    """Raw wire result as returned by Judge0 (still base64 encoded)."""
    token: Optional[str] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    compile_output: Optional[str] = None
    message: Optional[str] = None
    time: Optional[Union[str, float]] = None
    memory: Optional[int] = None
    status: dict


class JudgeRunResult(BaseModel):
    """Decoded result handed to the grading pipeline."""
    token: Optional[str] = None
    status_id: int
    status_description: str = ""
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    compile_output: Optional[str] = None
    message: Optional[str] = None
    time_seconds: Optional[float] = None
    memory_kb: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        # 1 = In Queue, 2 = Processing
        return self.status_id > 2
