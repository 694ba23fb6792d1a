from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from treasure_hunt.db import get_session
from treasure_hunt.schemas.leaderboard import LeaderboardDoc
from treasure_hunt.schemas.runtime import PhasePublic, RuntimeSettingsPublic
from treasure_hunt.services.leaderboard import read_public_leaderboard
from treasure_hunt.services.phase import compute_phase, format_duration
from treasure_hunt.services.runtime_settings import load_runtime_settings

router = APIRouter(tags=["leaderboard"])

@router.get("/leaderboard", response_model=LeaderboardDoc)
async def leaderboard(session: AsyncSession = Depends(get_session)):
    return await read_public_leaderboard(session)

@router.get("/runtime", response_model=RuntimeSettingsPublic)
async def runtime(session: AsyncSession = Depends(get_session)):
    record = await load_runtime_settings(session)
    if record is None:
        return RuntimeSettingsPublic()
    return RuntimeSettingsPublic(**record.model_dump())

@router.get("/runtime/phase", response_model=PhasePublic)
async def runtime_phase(session: AsyncSession = Depends(get_session)):
    now = datetime.now(dt_tz.utc)
    state = compute_phase(await load_runtime_settings(session), now)
    countdown = format_duration(state.countdown_target, now) if state.countdown_target else None
    return PhasePublic(**state.model_dump(), countdown=countdown, now=now)
