from __future__ import annotations
from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime

# ERROR AND STATUS SCHEMAS

class ErrorResponse(BaseModel):
    """Standard error response"""
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime

class StatusResponse(BaseModel):
    """Generic status response"""
    status: str
    message: str
    data: Optional[Dict[str, Any]] = None
