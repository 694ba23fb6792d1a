from __future__ import annotations
import math
from datetime import datetime, timezone as dt_tz
from typing import Annotated
from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Wire models: camelCase on the outside, snake_case attributes inside."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class OkResponse(CamelModel):
    ok: bool = True

def ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt_tz.utc)
    return value.astimezone(dt_tz.utc)

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def epoch_millis(value: datetime) -> int:
    return int(round(ensure_utc(value).timestamp() * 1000))

UTCDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
