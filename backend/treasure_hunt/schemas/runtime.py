from __future__ import annotations
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, StrictBool
from treasure_hunt.schemas.common import CamelModel, UTCDatetime

EventPhase = Literal["pre", "running", "frozen", "finished", "unknown"]

class RuntimeSettingsRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    event_start: UTCDatetime | None = None
    freeze_at: UTCDatetime | None = None
    event_end: UTCDatetime | None = None
    freeze_override: bool = False


class RuntimeSettingsUpdate(CamelModel):
    event_start: UTCDatetime | None = None
    freeze_at: UTCDatetime | None = None
    event_end: UTCDatetime | None = None

class RuntimeSettingsPublic(CamelModel):
    event_start: UTCDatetime | None = None
    freeze_at: UTCDatetime | None = None
    event_end: UTCDatetime | None = None
    freeze_override: bool = False

class FreezePayload(CamelModel):
    frozen: StrictBool | None = None

class PhaseState(CamelModel):
    phase: EventPhase
    countdown_target: datetime | None = None
    is_leaderboard_visible: bool

class PhasePublic(PhaseState):
    countdown: str | None = None
    now: datetime
