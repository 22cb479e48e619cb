import base64
import math
import uuid
from typing import Optional
from datetime import datetime, timezone

def new_id() -> str:
    """Primary-key factory (UUID4 as text, portable across Postgres and SQLite)"""
    return str(uuid.uuid4())

def current_timestamp() -> datetime:
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)

def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from drivers that drop tzinfo"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def encode_base64(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return base64.b64encode(value.encode("utf-8")).decode("ascii")

def decode_base64(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=False).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        # Judge0 occasionally returns plain text for short messages
        return value

def round_half_up(value: float) -> int:
    """Round .5 upwards (``round`` would bank 50.5 down to 50)"""
    return int(math.floor(value + 0.5))
