from __future__ import annotations
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import func, select
from treasure_hunt.db import SessionLocal
from treasure_hunt.errors import AlreadyExists
from treasure_hunt.models.competition import Location
from treasure_hunt.models.team import Claim, Team
from treasure_hunt.services.claims import SqlClaimStore, decide_claim, process_claim
from treasure_hunt.services.token_codec import issue_token

SECRET = "store-secret"


async def _seed(session):
    session.add(Team(id="team-1", name="Otters", team_tag="OTR", match_id="m1", group_id="g1", score=0, solved={}))
    session.add(Location(
        id="loc-1", match_id="m1", title="Fountain", difficulty=2, base_points=10, box_keyword="SPLASH", is_active=True,
    ))
    await session.commit()


def _decide(snapshot):
    return decide_claim(
        snapshot,
        location_id="loc-1",
        provided_keyword="SPLASH",
        provided_team_tag="OTR",
        processed_by="leader",
        now=datetime.now(timezone.utc),
    )


async def _team(session):
    return await session.get(Team, "team-1", populate_existing=True)


async def _claim_count(session):
    return await session.scalar(select(func.count()).select_from(Claim))


@pytest.mark.asyncio
async def test_second_writer_on_same_snapshot_loses(session):
    await _seed(session)
    async with SessionLocal() as s1, SessionLocal() as s2:
        first, second = SqlClaimStore(s1), SqlClaimStore(s2)
        change_a = _decide(await first.read("team-1", "loc-1"))
        change_b = _decide(await second.read("team-1", "loc-1"))

        assert await first.write(change_a) is True
        assert await second.write(change_b) is False

        # the loser's retry sees the solve and stops
        token = issue_token("loc-1", datetime.now(timezone.utc) + timedelta(hours=1), secret=SECRET).token
        with pytest.raises(AlreadyExists):
            await process_claim(
                second, team_id="team-1", role="leader", token=token,
                provided_keyword="SPLASH", provided_team_tag="OTR", secret=SECRET,
            )

    team = await _team(session)
    assert team.score == 20
    assert list(team.solved) == ["loc-1"]
    assert team.version == 2
    assert await _claim_count(session) == 1


@pytest.mark.asyncio
async def test_write_fails_when_location_changed_after_read(session):
    await _seed(session)
    async with SessionLocal() as s1:
        store = SqlClaimStore(s1)
        change = _decide(await store.read("team-1", "loc-1"))

        location = await session.get(Location, "loc-1")
        location.base_points = 50
        await session.commit()

        assert await store.write(change) is False

        # a fresh attempt scores against the edited location
        assert await store.write(_decide(await store.read("team-1", "loc-1"))) is True

    team = await _team(session)
    assert team.score == 100
    assert team.version == 2
    assert await _claim_count(session) == 1


@pytest.mark.asyncio
async def test_write_rolls_back_when_claim_row_exists(session):
    await _seed(session)
    session.add(Claim(
        team_id="team-1", location_id="loc-1", points=20,
        processed_at=datetime.now(timezone.utc), processed_by="admin",
    ))
    await session.commit()

    async with SessionLocal() as s1:
        store = SqlClaimStore(s1)
        assert await store.write(_decide(await store.read("team-1", "loc-1"))) is False

    team = await _team(session)
    assert (team.score, team.solved, team.version) == (0, {}, 1)
    assert await _claim_count(session) == 1
