from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime, timezone as dt_tz
from typing import Callable, Protocol
import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.config import settings
from treasure_hunt.errors import (
    Aborted, AlreadyExists, FailedPrecondition, HuntError, InvalidArgument, NotFound, PermissionDenied,
)
from treasure_hunt.models.competition import Location
from treasure_hunt.models.team import Claim, Team
from treasure_hunt.schemas.claim import ClaimResult
from treasure_hunt.schemas.common import round_half_up
from treasure_hunt.schemas.competition import LocationRecord
from treasure_hunt.schemas.team import TeamRecord
from treasure_hunt.services.token_codec import verify_token

log = structlog.get_logger()

CLAIM_ROLES = ("leader", "admin")


@dataclass(frozen=True)
class ClaimReadSet:
    team: TeamRecord | None
    location: LocationRecord | None


@dataclass(frozen=True)
class ClaimWriteSet:
    team_id: str
    location_id: str
    points: int
    at: datetime
    processed_by: str
    expected_version: int


class ClaimStore(Protocol):
    """
    Read / conditional-write seam of the claim transaction.

    `read` starts a fresh attempt and returns a consistent snapshot of the team and the
    location. `write` applies the decision only if neither changed since that read and
    returns False otherwise (the caller then retries from `read`). `abort` discards the
    attempt without writing.
    """

    async def read(self, team_id: str, location_id: str) -> ClaimReadSet: ...

    async def write(self, change: ClaimWriteSet) -> bool: ...

    async def abort(self) -> None: ...


# ---------- pure decision ----------

def compute_points(location: LocationRecord) -> int:
    base = location.base_points
    if base is None or not math.isfinite(base) or base <= 0:
        raise FailedPrecondition("Location points are not configured.")
    difficulty = location.difficulty if location.difficulty is not None else 1
    # non-positive (or NaN) difficulty is clamped to 1
    multiplier = difficulty if difficulty > 0 else 1
    return max(0, round_half_up(base * multiplier))


def decide_claim(
    snapshot: ClaimReadSet,
    *,
    location_id: str,
    provided_keyword: str,
    provided_team_tag: str,
    processed_by: str,
    now: datetime,
) -> ClaimWriteSet:
    """Turn a read set into a write set, or raise the first failing business rule."""
    team, location = snapshot.team, snapshot.location
    if team is None:
        raise FailedPrecondition("Team not found.")
    if location is None:
        raise NotFound("Location not found.")

    if team.match_id and location.match_id and team.match_id != location.match_id:
        raise PermissionDenied("Location does not belong to the team match.", reason="wrong-match")
    if team.team_tag != provided_team_tag:
        raise PermissionDenied("Invalid team tag.", reason="bad-team-tag")
    if location.box_keyword != provided_keyword:
        raise PermissionDenied("Invalid keyword.", reason="bad-keyword")
    if not location.is_active:
        raise FailedPrecondition("Location is inactive.", reason="location-inactive")
    if location_id in team.solved:
        raise AlreadyExists("Location already solved by this team.")

    return ClaimWriteSet(
        team_id=team.id,
        location_id=location_id,
        points=compute_points(location),
        at=now,
        processed_by=processed_by,
        expected_version=team.version,
    )


# ---------- orchestration ----------

def _require_text(value, name: str) -> str:
    if not value or not isinstance(value, str):
        raise InvalidArgument(f"{name} is required.")
    return value


async def process_claim(
    store: ClaimStore,
    *,
    team_id: str,
    role: str | None,
    token,
    provided_keyword,
    provided_team_tag,
    clock: Callable[[], datetime] | None = None,
    secret: str | None = None,
    max_attempts: int | None = None,
) -> ClaimResult:
    """
    Validate one submission and score it exactly once.

    All rule failures happen before any write. Concurrent claims for the same
    (team, location) are serialized by the store's conditional write: the loser
    re-reads, finds the location in `solved` and gets AlreadyExists.
    """
    clock = clock or (lambda: datetime.now(dt_tz.utc))
    if role not in CLAIM_ROLES:
        raise PermissionDenied("Insufficient permissions.")
    token = _require_text(token, "token")
    provided_keyword = _require_text(provided_keyword, "providedKeyword")
    provided_team_tag = _require_text(provided_team_tag, "providedTeamTag")

    info = verify_token(token, now=clock(), secret=secret)
    attempts = max(1, max_attempts or settings.claim_max_attempts)

    for attempt in range(1, attempts + 1):
        snapshot = await store.read(team_id, info.location_id)
        now = clock()
        try:
            change = decide_claim(
                snapshot,
                location_id=info.location_id,
                provided_keyword=provided_keyword,
                provided_team_tag=provided_team_tag,
                processed_by=role,
                now=now,
            )
        except HuntError as e:
            await store.abort()
            log.warning("claim_rejected", team_id=team_id, location_id=info.location_id, code=e.code, reason=e.reason)
            raise

        if await store.write(change):
            log.info("claim_accepted", team_id=team_id, location_id=info.location_id, points=change.points, attempt=attempt)
            return ClaimResult(location_id=info.location_id, points_awarded=change.points, processed_at=now)
        log.info("claim_conflict_retry", team_id=team_id, location_id=info.location_id, attempt=attempt)

    raise Aborted("Claim could not be committed due to concurrent updates; please retry.")


class SqlClaimStore:
    """ClaimStore over SQLAlchemy: version-conditional team update + location re-check."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._read: ClaimReadSet | None = None
        self._raw_solved: dict = {}

    async def read(self, team_id: str, location_id: str) -> ClaimReadSet:
        # fresh snapshot for every attempt
        await self.session.rollback()
        team = await self.session.get(Team, team_id, populate_existing=True)
        location = await self.session.get(Location, location_id, populate_existing=True)
        self._raw_solved = dict(team.solved or {}) if team else {}
        self._read = ClaimReadSet(
            team=TeamRecord.model_validate(team) if team else None,
            location=LocationRecord.model_validate(location) if location else None,
        )
        return self._read

    async def write(self, change: ClaimWriteSet) -> bool:
        solved = {
            **self._raw_solved,
            change.location_id: {"at": change.at.isoformat(), "points": change.points},
        }
        res = await self.session.execute(
            update(Team)
            .where(Team.id == change.team_id, Team.version == change.expected_version)
            .values(
                score=Team.score + change.points,
                solved=solved,
                version=Team.version + 1,
                updated_at=change.at,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            await self.session.rollback()
            return False

        # location must still look the way it did when the decision was made
        current = await self.session.scalar(
            select(Location)
            .where(Location.id == change.location_id)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        )
        if current is None or LocationRecord.model_validate(current) != self._read.location:
            await self.session.rollback()
            return False

        self.session.add(Claim(
            team_id=change.team_id,
            location_id=change.location_id,
            points=change.points,
            processed_at=change.at,
            processed_by=change.processed_by,
        ))
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return False
        return True

    async def abort(self) -> None:
        await self.session.rollback()
