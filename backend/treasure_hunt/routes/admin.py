from __future__ import annotations
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from treasure_hunt.auth_deps import require_admin
from treasure_hunt.db import get_session
from treasure_hunt.models.team import Team
from treasure_hunt.routes.teams import to_public as team_public
from treasure_hunt.schemas.common import OkResponse
from treasure_hunt.schemas.competition import (
    GroupCreate, GroupPublic, GroupUpdate, LocationCreate, LocationPublic, LocationUpdate,
    MatchCreate, MatchPublic, MatchUpdate,
)
from treasure_hunt.schemas.leaderboard import LeaderboardDoc
from treasure_hunt.schemas.qr import GenerateQrPayload, GenerateQrResponse
from treasure_hunt.schemas.roles import (
    BulkImportPayload, BulkImportResult, SetTeamGroupPayload, SetUserRolePayload, SetUserRoleResponse,
)
from treasure_hunt.schemas.runtime import FreezePayload, RuntimeSettingsPublic, RuntimeSettingsUpdate
from treasure_hunt.schemas.team import TeamPublic
from treasure_hunt.services import catalog
from treasure_hunt.services.leaderboard import refresh_leaderboard_quietly, refresh_public_leaderboard
from treasure_hunt.services.qr import generate_location_qr
from treasure_hunt.services.roles import bulk_import_users, set_team_group, set_user_role
from treasure_hunt.services.runtime_settings import set_freeze_state, update_runtime_settings

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

# ---------- roles & teams ----------

@router.post("/roles", response_model=SetUserRoleResponse)
async def post_role(payload: SetUserRolePayload, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    result = await set_user_role(session, payload)
    background.add_task(refresh_leaderboard_quietly)
    return result

@router.post("/roles/bulk", response_model=BulkImportResult)
async def post_roles_bulk(payload: BulkImportPayload, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    result = await bulk_import_users(session, payload.rows)
    if result.success_count:
        background.add_task(refresh_leaderboard_quietly)
    return result

@router.post("/teams/{team_id}/group", response_model=OkResponse)
async def post_team_group(
    team_id: str, payload: SetTeamGroupPayload, background: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
):
    await set_team_group(session, team_id, payload)
    background.add_task(refresh_leaderboard_quietly)
    return OkResponse()

@router.get("/teams", response_model=list[TeamPublic])
async def list_teams(session: AsyncSession = Depends(get_session)):
    teams = (await session.execute(select(Team).order_by(Team.name, Team.id))).scalars().all()
    return [team_public(t) for t in teams]

# ---------- runtime ----------

@router.post("/freeze", response_model=OkResponse)
async def post_freeze(payload: FreezePayload, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    await set_freeze_state(session, payload.frozen)
    background.add_task(refresh_leaderboard_quietly)
    return OkResponse()

@router.put("/runtime", response_model=RuntimeSettingsPublic)
async def put_runtime(payload: RuntimeSettingsUpdate, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    record = await update_runtime_settings(session, payload)
    background.add_task(refresh_leaderboard_quietly)
    return RuntimeSettingsPublic(**record.model_dump())

@router.post("/leaderboard/refresh", response_model=LeaderboardDoc)
async def post_leaderboard_refresh(session: AsyncSession = Depends(get_session)):
    return await refresh_public_leaderboard(session)

# ---------- QR ----------

@router.post("/qr", response_model=GenerateQrResponse)
async def post_qr(payload: GenerateQrPayload, session: AsyncSession = Depends(get_session)):
    return await generate_location_qr(session, payload)

# ---------- catalog ----------

@router.post("/matches", status_code=201, response_model=MatchPublic)
async def post_match(payload: MatchCreate, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    match = await catalog.create_match(session, payload)
    background.add_task(refresh_leaderboard_quietly)
    return MatchPublic(id=match.id, name=match.name, order=match.order, is_active=match.is_active)

@router.patch("/matches/{match_id}", response_model=MatchPublic)
async def patch_match(match_id: str, payload: MatchUpdate, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    match = await catalog.update_match(session, match_id, payload)
    background.add_task(refresh_leaderboard_quietly)
    return MatchPublic(id=match.id, name=match.name, order=match.order, is_active=match.is_active)

@router.delete("/matches/{match_id}", response_model=OkResponse)
async def delete_match(match_id: str, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    await catalog.delete_match(session, match_id)
    background.add_task(refresh_leaderboard_quietly)
    return OkResponse()

@router.post("/groups", status_code=201, response_model=GroupPublic)
async def post_group(payload: GroupCreate, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    group = await catalog.create_group(session, payload)
    background.add_task(refresh_leaderboard_quietly)
    return GroupPublic.model_validate(group)

@router.patch("/groups/{group_id}", response_model=GroupPublic)
async def patch_group(group_id: str, payload: GroupUpdate, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    group = await catalog.update_group(session, group_id, payload)
    background.add_task(refresh_leaderboard_quietly)
    return GroupPublic.model_validate(group)

@router.delete("/groups/{group_id}", response_model=OkResponse)
async def delete_group(group_id: str, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    await catalog.delete_group(session, group_id)
    background.add_task(refresh_leaderboard_quietly)
    return OkResponse()

@router.get("/locations", response_model=list[LocationPublic])
async def list_locations(match_id: str | None = Query(None, alias="matchId"), session: AsyncSession = Depends(get_session)):
    return [LocationPublic.model_validate(loc) for loc in await catalog.list_locations(session, match_id)]

@router.post("/locations", status_code=201, response_model=LocationPublic)
async def post_location(payload: LocationCreate, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    location = await catalog.create_location(session, payload)
    background.add_task(refresh_leaderboard_quietly)
    return LocationPublic.model_validate(location)

@router.patch("/locations/{location_id}", response_model=LocationPublic)
async def patch_location(location_id: str, payload: LocationUpdate, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    location = await catalog.update_location(session, location_id, payload)
    background.add_task(refresh_leaderboard_quietly)
    return LocationPublic.model_validate(location)

@router.delete("/locations/{location_id}", response_model=OkResponse)
async def delete_location(location_id: str, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):
    await catalog.delete_location(session, location_id)
    background.add_task(refresh_leaderboard_quietly)
    return OkResponse()
