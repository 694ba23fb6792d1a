from __future__ import annotations
from datetime import datetime, timezone as dt_tz
import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.errors import FailedPrecondition, InvalidArgument, NotFound
from treasure_hunt.models.competition import Group, Location, Match
from treasure_hunt.schemas.competition import (
    GroupCreate, GroupPublic, GroupUpdate, LocationCreate, LocationUpdate, MatchCreate, MatchPublic, MatchUpdate,
)

log = structlog.get_logger()

_LAST = 2**53
# non-nullable columns: an explicit null in a partial update leaves them unchanged
_REQUIRED = {"name", "title", "is_active", "difficulty", "base_points", "box_keyword"}


def _sort_key(row) -> tuple:
    return (row.order if row.order is not None else _LAST, row.id)


async def _get(session: AsyncSession, model, obj_id: str, label: str):
    obj = await session.get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label} not found.")
    return obj


async def _require_match(session: AsyncSession, match_id: str) -> Match:
    match = await session.get(Match, match_id)
    if match is None:
        raise InvalidArgument(f"Match {match_id} not found.", reason="match-not-found")
    return match


# ---------- matches ----------

async def list_matches(session: AsyncSession) -> list[MatchPublic]:
    """Matches with their groups nested, both in display order."""
    matches = sorted((await session.execute(select(Match))).scalars().all(), key=_sort_key)
    groups = sorted((await session.execute(select(Group))).scalars().all(), key=_sort_key)
    by_match: dict[str, list[GroupPublic]] = {}
    for g in groups:
        by_match.setdefault(g.match_id, []).append(GroupPublic.model_validate(g))
    return [
        MatchPublic(id=m.id, name=m.name, order=m.order, is_active=m.is_active, groups=by_match.get(m.id, []))
        for m in matches
    ]


async def create_match(session: AsyncSession, payload: MatchCreate) -> Match:
    match = Match(name=payload.name.strip(), order=payload.order, is_active=payload.is_active)
    session.add(match)
    await session.commit()
    log.info("match_created", match_id=match.id)
    return match


async def update_match(session: AsyncSession, match_id: str, payload: MatchUpdate) -> Match:
    match = await _get(session, Match, match_id, "Match")
    changes = payload.model_dump(exclude_unset=True)
    for key, value in changes.items():
        if value is None and key in _REQUIRED:
            continue
        setattr(match, key, value.strip() if key == "name" else value)
    match.updated_at = datetime.now(dt_tz.utc)
    await session.commit()
    log.info("match_updated", match_id=match.id, fields=sorted(changes))
    return match


async def delete_match(session: AsyncSession, match_id: str) -> None:
    match = await _get(session, Match, match_id, "Match")
    group_count = await session.scalar(select(func.count()).select_from(Group).where(Group.match_id == match_id))
    if group_count:
        raise FailedPrecondition("Match still has groups; delete them first.", reason="match-has-groups")
    await session.delete(match)
    await session.commit()
    log.info("match_deleted", match_id=match_id)


# ---------- groups ----------

async def create_group(session: AsyncSession, payload: GroupCreate) -> Group:
    await _require_match(session, payload.match_id)
    group = Group(
        match_id=payload.match_id,
        name=payload.name.strip(),
        order=payload.order,
        start_at=payload.start_at,
        end_at=payload.end_at,
        is_active=payload.is_active,
    )
    session.add(group)
    await session.commit()
    log.info("group_created", group_id=group.id, match_id=group.match_id)
    return group


async def update_group(session: AsyncSession, group_id: str, payload: GroupUpdate) -> Group:
    group = await _get(session, Group, group_id, "Group")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("match_id"):
        await _require_match(session, changes["match_id"])
    start_at = changes.get("start_at", group.start_at)
    end_at = changes.get("end_at", group.end_at)
    if start_at and end_at and end_at <= start_at:
        raise InvalidArgument("endAt must be after startAt.")
    for key, value in changes.items():
        if (key == "match_id" and not value) or (value is None and key in _REQUIRED):
            continue
        setattr(group, key, value.strip() if key == "name" else value)
    group.updated_at = datetime.now(dt_tz.utc)
    await session.commit()
    log.info("group_updated", group_id=group.id, fields=sorted(changes))
    return group


async def delete_group(session: AsyncSession, group_id: str) -> None:
    # teams still pointing here fall into the unassigned bucket on the next refresh
    group = await _get(session, Group, group_id, "Group")
    await session.delete(group)
    await session.commit()
    log.info("group_deleted", group_id=group_id)


# ---------- locations ----------

async def list_locations(session: AsyncSession, match_id: str | None = None) -> list[Location]:
    stmt = select(Location).order_by(Location.title, Location.id)
    if match_id:
        stmt = stmt.where(Location.match_id == match_id)
    return list((await session.execute(stmt)).scalars().all())


async def create_location(session: AsyncSession, payload: LocationCreate) -> Location:
    if payload.match_id:
        await _require_match(session, payload.match_id)
    location = Location(
        match_id=payload.match_id or None,
        title=payload.title.strip(),
        difficulty=payload.difficulty,
        base_points=payload.base_points,
        box_keyword=payload.box_keyword,
        is_active=payload.is_active,
    )
    session.add(location)
    await session.commit()
    log.info("location_created", location_id=location.id, match_id=location.match_id)
    return location


async def update_location(session: AsyncSession, location_id: str, payload: LocationUpdate) -> Location:
    location = await _get(session, Location, location_id, "Location")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("match_id"):
        await _require_match(session, changes["match_id"])
    for key, value in changes.items():
        if value is None and key in _REQUIRED:
            continue
        if key == "match_id":
            value = value or None
        setattr(location, key, value.strip() if key == "title" else value)
    location.updated_at = datetime.now(dt_tz.utc)
    await session.commit()
    log.info("location_updated", location_id=location.id, fields=sorted(changes))
    return location


async def delete_location(session: AsyncSession, location_id: str) -> None:
    # solves already recorded keep their points; they just stop being attributable to a match
    location = await _get(session, Location, location_id, "Location")
    await session.delete(location)
    await session.commit()
    log.info("location_deleted", location_id=location_id)
