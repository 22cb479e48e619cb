"""Shared FastAPI dependencies for identity, authorization, and service handles."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel

logger = logging.getLogger("auth.deps")


class CurrentUser(BaseModel):
    """Minimal identity forwarded by the gateway."""
    id: str
    role: str


def _admin_roles() -> set[str]:
    return {"admin", "superadmin"}


async def get_current_user(request: Request) -> CurrentUser:
    """Resolve the caller from the ``X-User-Id`` / ``X-User-Role`` headers.

    Authentication happens upstream; this only trusts what the gateway set.
    """
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
    role = (request.headers.get("X-User-Role") or "student").strip().lower()
    current = CurrentUser(id=user_id, role=role)
    logger.debug(
        "auth_resolved user_id=%s role=%s request_id=%s path=%s",
        current.id,
        current.role,
        getattr(request.state, "request_id", None),
        request.url.path,
    )
    return current


def require_role(*roles: str) -> Callable:
    """Factory returning a dependency enforcing that the user has one of the roles."""
    normalized = {r.lower() for r in roles if r}

    async def _checker(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not normalized:
            return current
        if current.role in normalized or current.role in _admin_roles():
            return current
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")

    return _checker


def get_exam_service(request: Request):
    return request.app.state.exam_service


def get_evaluator(request: Request):
    return request.app.state.evaluator
