from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator
from treasure_hunt.schemas.common import CamelModel, UTCDatetime

# ---------- boundary records (validated view of stored rows) ----------

class MatchRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str | None = None
    order: int | None = None
    is_active: bool = True

class GroupRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    match_id: str | None = None
    name: str | None = None
    order: int | None = None
    start_at: UTCDatetime | None = None
    end_at: UTCDatetime | None = None
    is_active: bool = True


class LocationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    match_id: str | None = None
    title: str = ""
    difficulty: float | None = None
    base_points: float | None = None
    box_keyword: str | None = None
    is_active: bool = True

# ---------- admin payloads ----------

class MatchCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    order: int | None = None
    is_active: bool = True

class MatchUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    order: int | None = None
    is_active: bool | None = None

class GroupCreate(CamelModel):
    match_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=120)
    order: int | None = None
    start_at: UTCDatetime | None = None
    end_at: UTCDatetime | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def window_order(self):
        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValueError("endAt must be after startAt")
        return self

class GroupUpdate(CamelModel):
    match_id: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1, max_length=120)
    order: int | None = None
    start_at: UTCDatetime | None = None
    end_at: UTCDatetime | None = None
    is_active: bool | None = None

class LocationCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    difficulty: float = Field(gt=0, default=1)
    base_points: float = Field(gt=0)
    box_keyword: str = Field(min_length=1, max_length=120)
    is_active: bool = True
    match_id: str | None = None

class LocationUpdate(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    difficulty: float | None = Field(default=None, gt=0)
    base_points: float | None = Field(default=None, gt=0)
    box_keyword: str | None = Field(default=None, min_length=1, max_length=120)
    is_active: bool | None = None
    match_id: str | None = None

# ---------- responses ----------

class GroupPublic(CamelModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    match_id: str
    name: str
    order: int | None = None
    start_at: UTCDatetime | None = None
    end_at: UTCDatetime | None = None
    is_active: bool

class MatchPublic(CamelModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    order: int | None = None
    is_active: bool
    groups: list[GroupPublic] = Field(default_factory=list)

class LocationPublic(CamelModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    match_id: str | None = None
    title: str
    difficulty: float
    base_points: float
    box_keyword: str
    is_active: bool
