from __future__ import annotations
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from treasure_hunt.auth_deps import get_current_user
from treasure_hunt.db import get_session
from treasure_hunt.models.user import User
from treasure_hunt.schemas.claim import ClaimPayload, ClaimResult
from treasure_hunt.services.claims import SqlClaimStore, process_claim
from treasure_hunt.services.leaderboard import refresh_leaderboard_quietly

router = APIRouter(tags=["claims"])

@router.post("/claim", response_model=ClaimResult)
async def claim(
    payload: ClaimPayload,
    background: BackgroundTasks,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    # the store rolls the session back between attempts; read the principal first
    team_id, role = user.id, user.role
    result = await process_claim(
        SqlClaimStore(session),
        team_id=team_id,
        role=role,
        token=payload.token,
        provided_keyword=payload.provided_keyword,
        provided_team_tag=payload.provided_team_tag,
    )
    background.add_task(refresh_leaderboard_quietly)
    return result
