from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from examgrader.common.deps import CurrentUser, get_evaluator, require_role
from .schemas import (
    EvaluationMode,
    SubmissionCreateRequest,
    SubmissionRequest,
    SubmissionResultSchema,
    SubmissionSummarySchema,
)
from .service import SubmissionEvaluator


exam_router = APIRouter(prefix="/exams", tags=["submissions"], dependencies=[Depends(require_role("student"))])
practice_router = APIRouter(prefix="/problems", tags=["submissions"], dependencies=[Depends(require_role("student"))])


@exam_router.post(
    "/{exam_id}/problems/{problem_id}/submissions",
    response_model=SubmissionResultSchema,
    summary="Grade a submission inside an exam attempt",
)
async def submit_exam_problem(
    exam_id: str,
    problem_id: str,
    payload: SubmissionCreateRequest,
    current_user: CurrentUser = Depends(require_role("student")),
    evaluator: SubmissionEvaluator = Depends(get_evaluator),
) -> SubmissionResultSchema:
    request = SubmissionRequest(
        student_id=current_user.id,
        problem_id=problem_id,
        language_id=payload.language_id,
        source_code=payload.source_code,
        mode=EvaluationMode.EXAM,
        exam_id=exam_id,
    )
    return await evaluator.evaluate(request)


@exam_router.get(
    "/attempts/{attempt_id}/problems/{problem_id}/submissions",
    response_model=List[SubmissionSummarySchema],
    summary="List the caller's submissions for one problem of an attempt",
)
async def list_attempt_submissions(
    attempt_id: str,
    problem_id: str,
    current_user: CurrentUser = Depends(require_role("student")),
    evaluator: SubmissionEvaluator = Depends(get_evaluator),
) -> List[SubmissionSummarySchema]:
    return await evaluator.list_attempt_submissions(attempt_id, problem_id, current_user.id)


@practice_router.post(
    "/{problem_id}/submissions",
    response_model=SubmissionResultSchema,
    summary="Grade a practice submission",
)
async def submit_practice(
    problem_id: str,
    payload: SubmissionCreateRequest,
    current_user: CurrentUser = Depends(require_role("student")),
    evaluator: SubmissionEvaluator = Depends(get_evaluator),
) -> SubmissionResultSchema:
    request = SubmissionRequest(
        student_id=current_user.id,
        problem_id=problem_id,
        language_id=payload.language_id,
        source_code=payload.source_code,
        mode=EvaluationMode.PRACTICE,
    )
    return await evaluator.evaluate(request)
