from __future__ import annotations
from datetime import datetime
from pydantic import Field
from treasure_hunt.schemas.common import CamelModel

SCHEMA_VERSION = 2

class LeaderboardEntry(CamelModel):
    team_id: str
    team_name: str
    score: int
    last_solve_at: datetime | None = None
    elapsed_seconds: int | None = None
    solved_count: int

class LeaderboardGroup(CamelModel):
    id: str
    match_id: str
    name: str
    order: int
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_active: bool
    unassigned: bool = False
    entries: list[LeaderboardEntry] = Field(default_factory=list)

class LeaderboardMatch(CamelModel):
    id: str
    name: str
    order: int
    is_active: bool
    unassigned: bool = False
    groups: list[LeaderboardGroup] = Field(default_factory=list)

class LeaderboardDoc(CamelModel):
    schema_version: int = SCHEMA_VERSION
    matches: list[LeaderboardMatch] = Field(default_factory=list)
    masked: bool = False
    unassigned_notice: bool = False
    updated_at: datetime | None = None
