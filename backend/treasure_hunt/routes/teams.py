from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from treasure_hunt.auth_deps import require_role
from treasure_hunt.db import get_session
from treasure_hunt.errors import NotFound
from treasure_hunt.models.team import Team
from treasure_hunt.models.user import User
from treasure_hunt.schemas.team import SolvedEntry, SolvedItem, TeamPublic

router = APIRouter(prefix="/teams", tags=["teams"])

_NEVER = datetime.max.replace(tzinfo=dt_tz.utc)

def to_public(team: Team) -> TeamPublic:
    items = []
    for location_id, raw in (team.solved or {}).items():
        entry = SolvedEntry.model_validate(raw if isinstance(raw, dict) else {})
        items.append(SolvedItem(location_id=location_id, at=entry.at, points=entry.points))
    items.sort(key=lambda s: (s.at or _NEVER, s.location_id))
    return TeamPublic(
        id=team.id,
        name=team.name,
        leader_email=team.leader_email,
        team_tag=team.team_tag,
        score=team.score,
        match_id=team.match_id,
        match_name=team.match_name,
        group_id=team.group_id,
        group_name=team.group_name,
        solved=items,
        updated_at=team.updated_at,
    )

@router.get("/me", response_model=TeamPublic)
async def my_team(
    user: User = Depends(require_role("leader", "admin")),
    session: AsyncSession = Depends(get_session),
):
    team = await session.get(Team, user.id)
    if team is None:
        raise NotFound("Team not found.")
    return to_public(team)
