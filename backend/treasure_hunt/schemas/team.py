from __future__ import annotations
import math
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from treasure_hunt.schemas.common import CamelModel, UTCDatetime

class SolvedEntry(BaseModel):
    at: UTCDatetime | None = None
    points: float | None = None

    @field_validator("at", mode="before")
    @classmethod
    def lenient_at(cls, v):
        # garbage timestamps count as "no timestamp" rather than poisoning the team
        if isinstance(v, datetime):
            return v
        if isinstance(v, str):
            try:
                return datetime.fromisoformat(v)
            except ValueError:
                return None
        return None

    @field_validator("points", mode="before")
    @classmethod
    def finite_points(cls, v):
        try:
            f = float(v)
        except (TypeError, ValueError):
            return None
        return f if math.isfinite(f) else None

class TeamRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str | None = None
    team_tag: str | None = None
    score: int = 0
    match_id: str | None = None
    group_id: str | None = None
    solved: dict[str, SolvedEntry] = Field(default_factory=dict)
    version: int = 1

    @field_validator("solved", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return v or {}

class SolvedItem(CamelModel):
    location_id: str
    at: UTCDatetime | None = None
    points: float | None = None

class TeamPublic(CamelModel):
    id: str
    name: str
    leader_email: str | None = None
    team_tag: str
    score: int
    match_id: str | None = None
    match_name: str | None = None
    group_id: str | None = None
    group_name: str | None = None
    solved: list[SolvedItem] = Field(default_factory=list)
    updated_at: datetime | None = None
