from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import sessionmaker

from examgrader.common.errors import ForbiddenError, NotFoundError, ValidationError
from examgrader.common.utils import round_half_up
from examgrader.core.config import Settings, get_settings
from examgrader.features.complexity.classifier import ComplexityClassifier
from examgrader.features.complexity.schemas import ComplexityOutcome
from examgrader.features.exams.repository import exams_repository
from examgrader.features.exams.service import ExamAttemptService
from examgrader.features.judge0.schemas import JudgeCase, JudgeRunResult
from examgrader.features.judge0.service import Judge0Service
from examgrader.features.problems.repository import problems_repository
from examgrader.features.problems.schemas import ProblemBundle
from examgrader.features.stats.service import StatsAggregator
from .models import Submission
from .repository import submissions_repository
from .sanitize import assemble_code
from .schemas import (
    SUPPORTED_LANGUAGES,
    CaseResultSchema,
    CaseVerdict,
    EvaluationMode,
    SubmissionRequest,
    SubmissionResultSchema,
    SubmissionStatus,
    SubmissionSummarySchema,
)
from .selector import FinalSubmissionSelector

logger = logging.getLogger("submissions")

MAX_SCORE = 100
EXAM_COMPLEXITY_PENALTY = 0.5


def map_judge_status(status_id: int) -> CaseVerdict:
    """Judge0 status id -> per-case verdict (1 and 2 never reach here)."""
    if status_id == 3:
        return CaseVerdict.ACCEPTED
    if status_id == 4:
        return CaseVerdict.WRONG_ANSWER
    if status_id == 5:
        return CaseVerdict.TIME_LIMIT_EXCEEDED
    if status_id == 6:
        return CaseVerdict.COMPILATION_ERROR
    if 7 <= status_id <= 12:
        return CaseVerdict.RUNTIME_ERROR
    return CaseVerdict.INTERNAL_ERROR


def overall_status(verdicts: Sequence[CaseVerdict]) -> SubmissionStatus:
    if CaseVerdict.COMPILATION_ERROR in verdicts:
        return SubmissionStatus.COMPILE_ERROR
    if CaseVerdict.TIME_LIMIT_EXCEEDED in verdicts:
        return SubmissionStatus.TIME_LIMIT
    if CaseVerdict.RUNTIME_ERROR in verdicts:
        return SubmissionStatus.RUNTIME_ERROR
    passed = sum(1 for v in verdicts if v == CaseVerdict.ACCEPTED)
    if verdicts and passed == len(verdicts):
        return SubmissionStatus.ACCEPTED
    if passed > 0:
        return SubmissionStatus.PARTIAL
    return SubmissionStatus.WRONG_ANSWER


def compute_score(passed: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(MAX_SCORE, round_half_up(passed / total * MAX_SCORE)))


def apply_complexity_penalty(score: int) -> int:
    return round_half_up(score * EXAM_COMPLEXITY_PENALTY)


class SubmissionEvaluator:
    """Grades one submission end to end.

    Steps: eligibility (exam mode) -> problem bundle -> sanitize/assemble ->
    judge batch -> verdicts, status, score -> complexity (accepted only) ->
    persist + final selection + stats, all in one transaction.

    Nothing is written until every earlier step has succeeded, so a judge
    timeout or classifier failure leaves no trace.
    """

    def __init__(
        self,
        judge: Judge0Service,
        classifier: ComplexityClassifier,
        session_factory: sessionmaker,
        exams: ExamAttemptService,
        settings: Optional[Settings] = None,
        *,
        stats: Optional[StatsAggregator] = None,
        selector: Optional[FinalSubmissionSelector] = None,
    ) -> None:
        self.judge = judge
        self.classifier = classifier
        self.session_factory = session_factory
        self.exams = exams
        self.settings = settings or get_settings()
        self.stats = stats or StatsAggregator(self.settings)
        self.selector = selector or FinalSubmissionSelector(self.settings)

    def _validate(self, request: SubmissionRequest) -> str:
        if not request.problem_id:
            raise ValidationError("problem_id_required", "problem_id is required")
        language = SUPPORTED_LANGUAGES.get(request.language_id)
        if language is None:
            raise ValidationError("unsupported_language", f"Language id {request.language_id} is not supported")
        if not request.source_code or not request.source_code.strip():
            raise ValidationError("source_code_required", "source_code is required for submission")
        size = len(request.source_code.encode("utf-8"))
        if size > self.settings.max_source_bytes:
            raise ValidationError(
                "source_too_large",
                f"Source is {size} bytes; limit is {self.settings.max_source_bytes}",
            )
        if request.mode == EvaluationMode.EXAM and not request.exam_id:
            raise ValidationError("exam_id_required", "exam_id is required in exam mode")
        return language

    def _load_bundle_sync(self, request: SubmissionRequest) -> ProblemBundle:
        with self.session_factory() as db:
            if request.mode == EvaluationMode.EXAM and not exams_repository.exam_has_problem(
                db, request.exam_id, request.problem_id
            ):
                raise NotFoundError("problem_not_in_exam", f"Problem {request.problem_id} is not part of this exam")
            return problems_repository.load_bundle(db, request.problem_id, request.language_id)

    @staticmethod
    def _case_results(runs: Iterable[JudgeRunResult]) -> List[CaseResultSchema]:
        return [
            CaseResultSchema(
                verdict=map_judge_status(run.status_id),
                status_id=run.status_id,
                status_description=run.status_description,
                stdout=run.stdout,
                stderr=run.stderr,
                compile_output=run.compile_output,
                time_seconds=run.time_seconds,
                memory_kb=run.memory_kb,
            )
            for run in runs
        ]

    async def evaluate(self, request: SubmissionRequest) -> SubmissionResultSchema:
        language = self._validate(request)

        attempt_id: Optional[str] = None
        if request.mode == EvaluationMode.EXAM:
            attempt = await self.exams.check_eligibility(request.exam_id, request.student_id)
            attempt_id = attempt.id

        bundle = await run_in_threadpool(self._load_bundle_sync, request)
        code = assemble_code(bundle.template, request.source_code)

        cases = [
            JudgeCase(
                source_code=code,
                language_id=request.language_id,
                stdin=tc.input,
                expected_output=tc.output,
            )
            for tc in bundle.test_cases
        ]
        runs = await self.judge.execute_batch(cases)
        results = self._case_results(runs)

        verdicts = [r.verdict for r in results]
        passed = sum(1 for v in verdicts if v == CaseVerdict.ACCEPTED)
        total = len(verdicts)
        status = overall_status(verdicts)
        score = compute_score(passed, total)

        complexity: Optional[ComplexityOutcome] = None
        if status == SubmissionStatus.ACCEPTED and bundle.probe_spec is not None:
            complexity = await self.classifier.evaluate(bundle.probe_spec, code, request.language_id)
            if not complexity.passed:
                if request.mode == EvaluationMode.EXAM:
                    score = apply_complexity_penalty(score)
                else:
                    status = SubmissionStatus.BAD_SCALING

        total_time = sum(r.time_seconds or 0.0 for r in results)
        total_memory = sum(r.memory_kb or 0 for r in results)

        submission = Submission(
            problem_id=request.problem_id,
            student_id=request.student_id,
            exam_id=request.exam_id if request.mode == EvaluationMode.EXAM else None,
            attempt_id=attempt_id,
            source_code=request.source_code,
            language_id=request.language_id,
            language=language,
            status=status.value,
            score=score,
            passed_testcases=passed,
            total_testcases=total,
            execution_time=total_time,
            memory=total_memory,
            observed_complexity=complexity.observed.value if complexity else None,
            expected_complexity=complexity.expected.value if complexity else None,
            is_final=False,
        )
        await run_in_threadpool(self._persist_sync, request, submission)

        logger.info(
            "graded submission=%s mode=%s problem=%s student=%s status=%s passed=%d/%d score=%d final=%s",
            submission.id,
            request.mode.value,
            request.problem_id,
            request.student_id,
            status.value,
            passed,
            total,
            score,
            submission.is_final,
        )
        return SubmissionResultSchema(
            submission_id=submission.id,
            mode=request.mode,
            status=status,
            score=score,
            passed_count=passed,
            total_count=total,
            is_final=bool(submission.is_final),
            results=results,
            total_time_taken=total_time,
            total_memory_taken=total_memory,
            your_time_complexity=complexity.observed if complexity else None,
            expected_time_complexity=complexity.expected if complexity else None,
        )

    def _persist_sync(self, request: SubmissionRequest, submission: Submission) -> None:
        with self.session_factory() as db:
            with db.begin():
                submissions_repository.add(db, submission)
                self.selector.select(db, submission)
                if request.mode == EvaluationMode.EXAM:
                    group_ids = exams_repository.list_linked_group_ids(db, request.exam_id, request.student_id)
                    self.stats.record_submission(
                        db,
                        student_id=request.student_id,
                        problem_id=request.problem_id,
                        group_ids=group_ids,
                        accepted=submission.status == SubmissionStatus.ACCEPTED.value,
                        runtime=submission.execution_time,
                        memory=submission.memory,
                    )
                # A retried CAS expires every instance in the session; reload before it detaches
                db.refresh(submission)

    # -------- listing --------
    def list_attempt_submissions_sync(
        self, attempt_id: str, problem_id: str, student_id: str
    ) -> List[SubmissionSummarySchema]:
        with self.session_factory() as db:
            attempt = exams_repository.get_attempt_by_id(db, attempt_id)
            if attempt is None:
                raise NotFoundError("attempt_not_found", f"Attempt {attempt_id} not found")
            if attempt.student_id != student_id:
                raise ForbiddenError("attempt_not_owned", "Attempt does not belong to the caller")
            rows = submissions_repository.list_for_attempt(db, attempt_id, problem_id)
            return [SubmissionSummarySchema.model_validate(row) for row in rows]

    async def list_attempt_submissions(
        self, attempt_id: str, problem_id: str, student_id: str
    ) -> List[SubmissionSummarySchema]:
        return await run_in_threadpool(self.list_attempt_submissions_sync, attempt_id, problem_id, student_id)
