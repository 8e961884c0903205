"""Event submission models."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class EventRequest(BaseModel):
    user_id: str = ""
    type: str = ""
    target_id: str = ""
    target_type: str = ""
    metadata: Dict[str, Any] = {}
    timestamp: Optional[datetime] = None
    session_id: Optional[str] = None
    # Device / client correlation data, stored under metadata.context
    context: Dict[str, Any] = {}


class EventAccepted(BaseModel):
    accepted: bool
