from __future__ import annotations

from fastapi import APIRouter, Depends

from examgrader.common.deps import CurrentUser, get_exam_service, require_role
from .schemas import AttemptSchema, ExamSubmitResponse
from .service import ExamAttemptService

router = APIRouter(prefix="/exams", tags=["exams"])


@router.post("/{exam_id}/start", response_model=AttemptSchema, summary="Start or resume an exam attempt")
async def start_exam(
    exam_id: str,
    current_user: CurrentUser = Depends(require_role("student")),
    service: ExamAttemptService = Depends(get_exam_service),
) -> AttemptSchema:
    return await service.start(exam_id, current_user.id)


@router.post("/{exam_id}/heartbeat", response_model=AttemptSchema, summary="Record attempt liveness")
async def heartbeat(
    exam_id: str,
    current_user: CurrentUser = Depends(require_role("student")),
    service: ExamAttemptService = Depends(get_exam_service),
) -> AttemptSchema:
    return await service.heartbeat(exam_id, current_user.id)


@router.post("/{exam_id}/submit", response_model=ExamSubmitResponse, summary="Submit the exam for scoring")
async def submit_exam(
    exam_id: str,
    current_user: CurrentUser = Depends(require_role("student")),
    service: ExamAttemptService = Depends(get_exam_service),
) -> ExamSubmitResponse:
    return await service.submit_exam(exam_id, current_user.id)
