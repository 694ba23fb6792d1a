from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_tz
from typing import Iterable, TypeVar
import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.db import SessionLocal
from treasure_hunt.models.competition import Group, Location, Match
from treasure_hunt.models.runtime import RUNTIME_ID, PublicLeaderboard, RuntimeSettings
from treasure_hunt.models.team import Team
from treasure_hunt.schemas.common import ensure_utc, round_half_up
from treasure_hunt.schemas.competition import GroupRecord, LocationRecord, MatchRecord
from treasure_hunt.schemas.leaderboard import (
    SCHEMA_VERSION, LeaderboardDoc, LeaderboardEntry, LeaderboardGroup, LeaderboardMatch,
)
from treasure_hunt.schemas.runtime import RuntimeSettingsRecord
from treasure_hunt.schemas.team import TeamRecord
from treasure_hunt.services.phase import is_masked

log = structlog.get_logger()

MAX_SAFE_INTEGER = 2**53 - 1
DEFAULT_ORDER = MAX_SAFE_INTEGER - 1
UNASSIGNED_ID = "__unassigned__"
UNASSIGNED_NAME = "Unassigned"

_EPOCH = datetime(1970, 1, 1, tzinfo=dt_tz.utc)


@dataclass(frozen=True)
class CompetitionSnapshot:
    matches: list[MatchRecord] = field(default_factory=list)
    groups: list[GroupRecord] = field(default_factory=list)
    teams: list[TeamRecord] = field(default_factory=list)
    locations: list[LocationRecord] = field(default_factory=list)
    runtime: RuntimeSettingsRecord | None = None


@dataclass
class _Stat:
    points: float = 0
    last_solve: datetime | None = None
    solved_count: int = 0

    def add(self, points: float, at: datetime | None) -> None:
        self.points += points
        self.solved_count += 1
        if at is not None and (self.last_solve is None or at > self.last_solve):
            self.last_solve = at


def _name(name: str | None, fallback: str) -> str:
    return name if isinstance(name, str) and name.strip() else fallback


def _order(order: int | None) -> int:
    return order if order is not None else DEFAULT_ORDER


def entry_sort_key(e: LeaderboardEntry) -> tuple:
    """
    Total order inside a group:
    score desc, elapsed asc (timed before untimed), last solve asc (solved before
    never-solved), team name, team id.
    """
    return (
        -e.score,
        e.elapsed_seconds is None,
        e.elapsed_seconds or 0,
        e.last_solve_at is None,
        e.last_solve_at or _EPOCH,
        e.team_name,
        e.team_id,
    )


def _team_stats(team: TeamRecord, location_match: dict[str, str]) -> tuple[dict[str | None, _Stat], _Stat]:
    """Split a team's solves by the match owning each location (None = unresolvable)."""
    per_match: dict[str | None, _Stat] = {}
    overall = _Stat()
    for location_id, solve in team.solved.items():
        if solve.points is None:
            continue
        overall.add(solve.points, solve.at)
        per_match.setdefault(location_match.get(location_id), _Stat()).add(solve.points, solve.at)
    return per_match, overall


def build_leaderboard(snapshot: CompetitionSnapshot, now: datetime) -> LeaderboardDoc:
    """
    Recompute the whole public ranking from current state. Pure: the same snapshot and
    `now` always produce the same document.

    A team lands in its own group when that group exists under an existing match;
    otherwise it is placed in the unassigned bucket and `unassignedNotice` is raised.
    """
    now = ensure_utc(now)
    matches = {m.id: m for m in snapshot.matches}

    groups: dict[str, GroupRecord] = {}
    for g in snapshot.groups:
        if not g.match_id:
            log.warning("leaderboard_group_without_match", group_id=g.id)
            continue
        if g.match_id not in matches:
            log.warning("leaderboard_group_orphaned", group_id=g.id, match_id=g.match_id)
            continue
        groups[g.id] = g

    # points follow the location's *current* match
    location_match = {
        loc.id: loc.match_id for loc in snapshot.locations if loc.match_id and loc.match_id in matches
    }

    entries: dict[str, list[LeaderboardEntry]] = {gid: [] for gid in groups}
    unassigned: list[LeaderboardEntry] = []
    notice = False

    for team in snapshot.teams:
        group = groups.get(team.group_id) if team.group_id else None
        if group is None or not (team.match_id and team.match_id in matches):
            notice = True

        per_match, overall = _team_stats(team, location_match)
        if group is not None:
            stat = per_match.get(group.match_id) or _Stat()
        else:
            stat = per_match.get(None) or overall

        elapsed = None
        if group is not None and group.start_at is not None and stat.last_solve is not None:
            elapsed = max(0, round_half_up((stat.last_solve - group.start_at).total_seconds()))

        entry = LeaderboardEntry(
            team_id=team.id,
            team_name=_name(team.name, team.id),
            score=round_half_up(stat.points),
            last_solve_at=stat.last_solve,
            elapsed_seconds=elapsed,
            solved_count=stat.solved_count,
        )
        (entries[group.id] if group is not None else unassigned).append(entry)

    out: list[LeaderboardMatch] = []
    for m in matches.values():
        member_groups = [g for g in groups.values() if g.match_id == m.id]
        if not member_groups:
            continue
        out_groups = [
            LeaderboardGroup(
                id=g.id,
                match_id=m.id,
                name=_name(g.name, g.id),
                order=_order(g.order),
                start_at=g.start_at,
                end_at=g.end_at,
                is_active=g.is_active,
                entries=sorted(entries[g.id], key=entry_sort_key),
            )
            for g in member_groups
        ]
        out_groups.sort(key=lambda g: (g.order, g.id))
        out.append(LeaderboardMatch(
            id=m.id, name=_name(m.name, m.id), order=_order(m.order), is_active=m.is_active, groups=out_groups,
        ))

    if notice:
        out.append(LeaderboardMatch(
            id=UNASSIGNED_ID,
            name=UNASSIGNED_NAME,
            order=MAX_SAFE_INTEGER,
            is_active=True,
            unassigned=True,
            groups=[LeaderboardGroup(
                id=UNASSIGNED_ID,
                match_id=UNASSIGNED_ID,
                name=UNASSIGNED_NAME,
                order=MAX_SAFE_INTEGER,
                is_active=True,
                unassigned=True,
                entries=sorted(unassigned, key=entry_sort_key),
            )],
        ))
    out.sort(key=lambda m: (m.order, m.id))

    return LeaderboardDoc(
        schema_version=SCHEMA_VERSION,
        matches=out,
        masked=is_masked(snapshot.runtime, now),
        unassigned_notice=notice,
        updated_at=now,
    )


# ---------- persistence ----------

R = TypeVar("R", bound=BaseModel)

def _validated(model: type[R], rows: Iterable, kind: str) -> list[R]:
    out: list[R] = []
    for row in rows:
        try:
            out.append(model.model_validate(row))
        except ValidationError as e:
            log.warning("leaderboard_row_skipped", kind=kind, id=getattr(row, "id", None), errors=e.error_count())
    return out


async def load_snapshot(session: AsyncSession) -> CompetitionSnapshot:
    matches = (await session.execute(select(Match))).scalars().all()
    groups = (await session.execute(select(Group))).scalars().all()
    teams = (await session.execute(select(Team))).scalars().all()
    locations = (await session.execute(select(Location))).scalars().all()
    runtime = await session.get(RuntimeSettings, RUNTIME_ID)
    return CompetitionSnapshot(
        matches=_validated(MatchRecord, matches, "match"),
        groups=_validated(GroupRecord, groups, "group"),
        teams=_validated(TeamRecord, teams, "team"),
        locations=_validated(LocationRecord, locations, "location"),
        runtime=RuntimeSettingsRecord.model_validate(runtime) if runtime else None,
    )


async def _store(session: AsyncSession, doc: LeaderboardDoc) -> None:
    payload = doc.model_dump(mode="json", by_alias=True)
    row = await session.get(PublicLeaderboard, RUNTIME_ID, populate_existing=True)
    if row is None:
        session.add(PublicLeaderboard(id=RUNTIME_ID, schema_version=doc.schema_version, payload=payload, updated_at=doc.updated_at))
    else:
        row.schema_version = doc.schema_version
        row.payload = payload
        row.updated_at = doc.updated_at
    await session.commit()


async def refresh_public_leaderboard(session: AsyncSession, now: datetime | None = None) -> LeaderboardDoc:
    """Recompute from full current state and wholesale-replace the public document."""
    now = now or datetime.now(dt_tz.utc)
    doc = build_leaderboard(await load_snapshot(session), now)
    try:
        await _store(session, doc)
    except IntegrityError:
        # a concurrent refresh created the row first; overwrite it (last writer wins)
        await session.rollback()
        await _store(session, doc)
    log.info(
        "leaderboard_refreshed",
        matches=len(doc.matches),
        teams=sum(len(g.entries) for m in doc.matches for g in m.groups),
        masked=doc.masked,
        unassigned_notice=doc.unassigned_notice,
    )
    return doc


async def refresh_leaderboard_quietly() -> None:
    """Post-commit trigger: own session; failures are logged and never reach the caller."""
    try:
        async with SessionLocal() as session:
            await refresh_public_leaderboard(session)
    except Exception:
        log.exception("leaderboard_refresh_failed")


async def read_public_leaderboard(session: AsyncSession) -> LeaderboardDoc:
    row = await session.get(PublicLeaderboard, RUNTIME_ID)
    if row is None:
        return LeaderboardDoc()
    return LeaderboardDoc.model_validate(row.payload)
