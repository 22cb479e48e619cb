"""FastAPI entrypoint for the grading service."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from examgrader.common.errors import GradingError
from examgrader.common.schemas import ErrorResponse, StatusResponse
from examgrader.core.config import Settings, get_settings
from examgrader.features.complexity.classifier import ComplexityClassifier
from examgrader.features.exams.endpoints import router as exams_router
from examgrader.features.exams.service import ExamAttemptService
from examgrader.features.judge0.service import Judge0Service
from examgrader.features.stats.service import StatsAggregator
from examgrader.features.submissions.endpoints import exam_router as exam_submissions_router
from examgrader.features.submissions.endpoints import practice_router
from examgrader.features.submissions.service import SubmissionEvaluator

logger = logging.getLogger("request")


def _error_body(error_code: str, message: str, details=None) -> dict:
    return ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        timestamp=datetime.now(timezone.utc),
    ).model_dump(mode="json")


def create_app(
    *,
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    judge: Optional[Judge0Service] = None,
) -> FastAPI:
    """Build the app; tests pass their own session factory and judge client."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    started = datetime.now(timezone.utc)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        factory = session_factory
        if factory is None:
            from examgrader.db.session import SessionLocal

            factory = SessionLocal
        judge_client = judge or Judge0Service(settings)
        stats = StatsAggregator(settings)
        exam_service = ExamAttemptService(factory, settings, stats=stats)
        classifier = ComplexityClassifier(judge_client, settings)
        app.state.session_factory = factory
        app.state.judge = judge_client
        app.state.exam_service = exam_service
        app.state.evaluator = SubmissionEvaluator(
            judge_client, classifier, factory, exam_service, settings, stats=stats
        )
        try:
            yield
        finally:
            if judge is None:
                await judge_client.aclose()

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = req_id
        t0 = time.perf_counter()
        logger.info("request.start", extra={"request_id": req_id, "path": request.url.path, "method": request.method})
        response = await call_next(request)
        response.headers["X-Request-Id"] = req_id
        logger.info(
            "request.end",
            extra={
                "request_id": req_id,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": int((time.perf_counter() - t0) * 1000),
            },
        )
        return response

    @app.exception_handler(GradingError)
    async def grading_error_handler(request: Request, exc: GradingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.error_code, exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", "Request payload is invalid", {"errors": errors}),
        )

    app.include_router(exams_router)
    app.include_router(exam_submissions_router)
    app.include_router(practice_router)

    @app.get("/healthz", tags=["meta"], summary="Liveness / readiness probe", response_model=StatusResponse)
    async def healthz(request: Request) -> StatusResponse:
        db_status = "unknown"
        db_latency_ms: Optional[float] = None
        try:
            t0 = time.perf_counter()
            with request.app.state.session_factory() as db:
                db.execute(text("SELECT 1"))
            db_latency_ms = round((time.perf_counter() - t0) * 1000, 2)
            db_status = "ok"
        except SQLAlchemyError as e:
            db_status = f"error:{type(e).__name__}"
        now = datetime.now(timezone.utc)
        return StatusResponse(
            status="ok" if db_status == "ok" else "degraded",
            message=settings.app_name,
            data={
                "time_utc": now.isoformat(),
                "uptime_seconds": round((now - started).total_seconds(), 2),
                "database": {"status": db_status, "latency_ms": db_latency_ms},
                "judge0": "configured" if settings.judge0_api_url else "missing-config",
            },
        )

    return app


app = create_app()
