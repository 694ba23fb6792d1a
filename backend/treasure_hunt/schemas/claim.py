from __future__ import annotations
from datetime import datetime
from treasure_hunt.schemas.common import CamelModel

class ClaimPayload(CamelModel):
    token: str | None = None
    provided_keyword: str | None = None
    provided_team_tag: str | None = None

class ClaimResult(CamelModel):
    location_id: str
    points_awarded: int
    processed_at: datetime
