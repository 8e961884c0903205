"""
Profile models: explicit account attributes and the derived user profile.

UserProfile is recomputable from AccountAttributes plus the behavior window;
it is never the source of truth.
"""

from datetime import datetime
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from .event import utc_now


class Location(BaseModel):
    """City / region / country; any part may be unknown."""

    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None

    @property
    def is_known(self) -> bool:
        return bool(self.city or self.region or self.country)


class Demographics(BaseModel):
    """Audience description: primary age, gender split in percent, interests."""

    primary_age: Optional[float] = None
    gender_split: Optional[Dict[str, float]] = None
    interests: List[str] = Field(default_factory=list)


class AccountAttributes(BaseModel):
    """Explicit attributes from the identity/account service. These win over inferred ones."""

    model_config = ConfigDict(extra="allow")

    user_id: str
    categories: List[str] = Field(default_factory=list)
    location: Optional[Location] = None
    target_audience: Optional[Demographics] = None
    skills: List[str] = Field(default_factory=list)
    budget: Optional[float] = None


class UserProfile(BaseModel):
    """Derived profile used by scoring."""

    user_id: str
    preferred_categories: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    demographic_estimate: Demographics = Field(default_factory=Demographics)
    budget_estimate: Optional[float] = None
    skills: List[str] = Field(default_factory=list)
    location: Optional[Location] = None
    viewed_entity_ids: Set[str] = Field(default_factory=set)
    clicked_entity_ids: List[str] = Field(default_factory=list)
    click_tags: List[str] = Field(default_factory=list)
    interacted_entity_ids: Set[str] = Field(default_factory=set)
    event_count: int = 0
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    last_updated: datetime = Field(default_factory=utc_now)
    is_default: bool = False

    def match_terms(self) -> List[str]:
        """Preferred categories followed by interests, lower-cased and de-duplicated."""
        out: List[str] = []
        for term in list(self.preferred_categories) + list(self.interests):
            t = term.strip().lower()
            if t and t not in out:
                out.append(t)
        return out
