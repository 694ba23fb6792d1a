from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone as dt_tz
from typing import Any
import structlog
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from treasure_hunt.errors import Aborted, ConfigError, HuntError, InvalidArgument, NotFound
from treasure_hunt.models.competition import Group, Match
from treasure_hunt.models.team import Team
from treasure_hunt.models.user import User
from treasure_hunt.schemas.roles import (
    BulkImportError, BulkImportResult, SetTeamGroupPayload, SetUserRolePayload, SetUserRoleResponse,
)

log = structlog.get_logger()

ROLES = ("leader", "admin", "none")


@dataclass(frozen=True)
class TeamAssignment:
    team_name: str
    team_tag: str
    match: Match
    group: Group


def sanitize_role(value) -> str | None:
    return value if isinstance(value, str) and value in ROLES else None


def _trim(value) -> str:
    return value.strip() if isinstance(value, str) else ""


async def resolve_user(session: AsyncSession, uid, email) -> User:
    uid, email = _trim(uid), _trim(email)
    if not uid and not email:
        raise InvalidArgument("uid or email is required.", reason="missing-target")
    if uid:
        user = await session.get(User, uid)
    else:
        user = await session.scalar(select(User).where(func.lower(User.email) == email.lower()))
    if user is None:
        log.warning("role_target_not_found", uid=uid or None, email=email or None)
        raise NotFound("User not found.", reason="user-not-found")
    return user


async def validate_placement(session: AsyncSession, match_id: str, group_id: str) -> tuple[Match, Group]:
    """Both must exist and the group must belong to the match."""
    match = await session.get(Match, match_id)
    if match is None:
        raise InvalidArgument(f"Match {match_id} not found.", reason="match-not-found")
    group = await session.get(Group, group_id)
    if group is None:
        raise InvalidArgument(f"Group {group_id} not found.", reason="group-not-found")
    if group.match_id != match_id:
        raise InvalidArgument("Group does not belong to the selected match.", reason="group-mismatch")
    return match, group


async def prepare_assignment(session: AsyncSession, row: SetUserRolePayload) -> tuple[User, str, TeamAssignment | None]:
    """Shared validation for single and bulk role changes; nothing is written here."""
    role = sanitize_role(row.role)
    if role is None:
        raise InvalidArgument("role must be one of leader, admin, none.", reason="invalid-role")
    user = await resolve_user(session, row.uid, row.email)
    if role != "leader":
        return user, role, None

    team_name, team_tag = _trim(row.team_name), _trim(row.team_tag)
    match_id, group_id = _trim(row.match_id), _trim(row.group_id)
    if not (team_name and team_tag and match_id and group_id):
        raise InvalidArgument(
            "teamName, teamTag, matchId and groupId are required when assigning leader role.",
            reason="missing-leader-fields",
        )
    match, group = await validate_placement(session, match_id, group_id)
    return user, role, TeamAssignment(team_name=team_name, team_tag=team_tag, match=match, group=group)


async def upsert_team(session: AsyncSession, user: User, assignment: TeamAssignment, now: datetime) -> Team:
    """
    Create or update the leader's team. Only metadata is touched on an existing team:
    score and solved history are never reset.
    """
    team = await session.get(Team, user.id)
    if team is None:
        team = Team(id=user.id, score=0, solved={}, created_at=now)
        session.add(team)
    team.name = assignment.team_name
    team.team_tag = assignment.team_tag
    team.leader_email = user.email
    team.match_id = assignment.match.id
    team.match_name = assignment.match.name
    team.group_id = assignment.group.id
    team.group_name = assignment.group.name
    team.updated_at = now
    return team


def apply_role_claim(user: User, role: str) -> None:
    """Set or drop the role key; every other claim is preserved."""
    claims = dict(user.claims or {})
    if role == "none":
        claims.pop("role", None)
    else:
        claims["role"] = role
    user.claims = claims


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except StaleDataError:
        await session.rollback()
        raise Aborted("Team was modified concurrently; please retry.", reason="aborted")


async def set_user_role(session: AsyncSession, payload: SetUserRolePayload) -> SetUserRoleResponse:
    user, role, assignment = await prepare_assignment(session, payload)
    if assignment is not None:
        await upsert_team(session, user, assignment, datetime.now(dt_tz.utc))
    apply_role_claim(user, role)
    await _commit(session)
    log.info("user_role_updated", uid=user.id, email=user.email, role=None if role == "none" else role)
    return SetUserRoleResponse(
        uid=user.id,
        email=user.email,
        role=None if role == "none" else role,
        team_updated=assignment is not None,
    )


async def bulk_import_users(session: AsyncSession, rows: list[Any] | None) -> BulkImportResult:
    """
    Apply rows one by one, in order. A failing row is recorded and skipped; it never
    stops the rows after it. The caller refreshes the leaderboard once afterwards.
    """
    if not rows:
        raise InvalidArgument("rows must be a non-empty array.")

    errors: list[BulkImportError] = []
    success = 0
    for index, row in enumerate(rows):
        if row is None:
            errors.append(BulkImportError(index=index, code="invalid-row", message="Row is undefined."))
            continue
        if not isinstance(row, dict):
            errors.append(BulkImportError(index=index, code="invalid-row", message="Row must be an object."))
            continue
        try:
            payload = SetUserRolePayload.model_validate(row)
        except ValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(p) for p in first["loc"])
            errors.append(BulkImportError(index=index, code="invalid-row", message=f"{where}: {first['msg']}"))
            continue
        try:
            user, role, assignment = await prepare_assignment(session, payload)
            if assignment is not None:
                await upsert_team(session, user, assignment, datetime.now(dt_tz.utc))
            apply_role_claim(user, role)
            await _commit(session)
        except HuntError as e:
            await session.rollback()
            errors.append(BulkImportError(index=index, code=e.reason or e.code, message=e.message))
            log.warning("bulk_import_row_failed", index=index, code=e.reason or e.code)
            continue
        success += 1

    log.info("bulk_import_done", success_count=success, failure_count=len(errors))
    return BulkImportResult(success_count=success, failure_count=len(errors), errors=errors)


async def set_team_group(session: AsyncSession, team_id: str, payload: SetTeamGroupPayload) -> Team:
    team_id, match_id, group_id = _trim(team_id), _trim(payload.match_id), _trim(payload.group_id)
    if not team_id:
        raise InvalidArgument("teamId is required.")
    if not match_id:
        raise InvalidArgument("matchId is required.")
    if not group_id:
        raise InvalidArgument("groupId is required.")

    team = await session.get(Team, team_id)
    if team is None:
        raise NotFound("Team not found.")
    match, group = await validate_placement(session, match_id, group_id)

    team.match_id = match.id
    team.match_name = match.name
    team.group_id = group.id
    team.group_name = group.name
    team.updated_at = datetime.now(dt_tz.utc)
    await _commit(session)
    log.info("team_group_updated", team_id=team.id, match_id=match.id, group_id=group.id)
    return team


async def ensure_admin_role(session: AsyncSession, admin_uid: str) -> bool:
    """Startup bootstrap: make sure the configured admin carries role=admin."""
    if not admin_uid:
        log.warning("admin_bootstrap_skipped", reason="ADMIN_UID is not set")
        return False
    user = await session.get(User, admin_uid)
    if user is None:
        raise ConfigError(f"Configured admin uid {admin_uid} does not exist.")
    if user.role == "admin":
        return False
    apply_role_claim(user, "admin")
    await session.commit()
    log.info("admin_role_ensured", uid=admin_uid)
    return True
