"""Behavior event capture endpoint."""

from fastapi import APIRouter, HTTPException

from ..models import EventAccepted, EventRequest
from ..state import get_state

router = APIRouter()


@router.post("", response_model=EventAccepted, status_code=202)
async def submit_event(request: EventRequest):
    """Accept one behavior event; persistence happens in the background."""
    state = get_state()
    payload = request.model_dump(exclude={"context"}, exclude_none=True)
    accepted = await state.service.submit_event(payload, request.context or None)
    if not accepted:
        raise HTTPException(status_code=422, detail="Invalid event: user_id, type and target_type are required")
    return EventAccepted(accepted=True)
