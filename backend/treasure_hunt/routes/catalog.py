from __future__ import annotations
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from treasure_hunt.auth_deps import get_current_user
from treasure_hunt.db import get_session
from treasure_hunt.models.user import User
from treasure_hunt.schemas.competition import MatchPublic
from treasure_hunt.services.catalog import list_matches

router = APIRouter(tags=["catalog"])

@router.get("/matches", response_model=list[MatchPublic])
async def matches(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_matches(session)
