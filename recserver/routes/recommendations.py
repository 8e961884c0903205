"""Recommendation endpoints."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from ..models import InvalidateResponse, RecommendationRequest, RecommendationSetResponse
from ..state import get_state
from ..utils import to_response

router = APIRouter()


@router.get("/{user_id}", response_model=RecommendationSetResponse)
async def get_recommendations(
    user_id: str,
    types: Optional[List[str]] = Query(None),
    limit: Optional[int] = None,
    exclude_interacted: bool = True,
    force_refresh: bool = False,
):
    """Diversified recommendations for a user; served from cache when fresh."""
    state = get_state()
    try:
        request = RecommendationRequest(
            types=types or [],
            limit=state.engine_config.default_limit if limit is None else limit,
            exclude_interacted=exclude_interacted,
            force_refresh=force_refresh,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    rec_set = await state.service.get_recommendations(user_id, request)
    return to_response(rec_set)


@router.post("/{user_id}/invalidate", response_model=InvalidateResponse)
async def invalidate(user_id: str):
    """Drop cached recommendations and profile; the next request recomputes."""
    state = get_state()
    removed = await state.service.invalidate(user_id)
    return InvalidateResponse(invalidated=removed)
