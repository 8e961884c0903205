"""
Candidate model, a read-only snapshot of a catalog entity being ranked.

Built from catalog records via Candidate.model_validate(d); unknown catalog
fields are kept (extra="allow").
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .event import as_utc
from .profile import Demographics, Location


class Requirements(BaseModel):
    """What an opportunity asks of an applicant. Empty lists mean no requirement."""

    model_config = ConfigDict(extra="allow")

    skills: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)


class Candidate(BaseModel):
    """
    A creator, opportunity, partner or content item.

    All fields except id and entity_type are optional to support partial catalog data.
    budget is the opportunity's offer or the partner's spend; deadline and
    status apply to opportunities, published_at to content.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    entity_type: str
    title: Optional[str] = ""
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    location: Optional[Location] = None
    statistics: Dict[str, float] = Field(default_factory=dict)
    demographics: Optional[Demographics] = None
    verified: bool = False
    premium_partner: bool = False
    response_rate: Optional[float] = None
    budget: Optional[float] = None
    requirements: Optional[Requirements] = None
    status: Optional[str] = None
    deadline: Optional[datetime] = None
    published_at: Optional[datetime] = None

    @field_validator("deadline", "published_at")
    @classmethod
    def _dates_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    def all_tags(self) -> List[str]:
        """Category plus tags, lower-cased and de-duplicated."""
        out: List[str] = []
        for term in ([self.category] if self.category else []) + list(self.tags):
            t = term.strip().lower()
            if t and t not in out:
                out.append(t)
        return out

    def primary_category(self) -> Optional[str]:
        if self.category:
            return self.category
        return self.tags[0] if self.tags else None


def ensure_candidates(
    items: List[Union[Dict[str, Any], "Candidate"]],
    entity_type: Optional[str] = None,
) -> List["Candidate"]:
    """Convert list of dicts or Candidates to Candidate models, filling entity_type when given."""
    out = []
    for item in items:
        if isinstance(item, Candidate):
            out.append(item)
            continue
        data = dict(item)
        if entity_type and not data.get("entity_type"):
            data["entity_type"] = entity_type
        out.append(Candidate.model_validate(data))
    return out
