from __future__ import annotations
import pytest
from treasure_hunt.models.team import Team
from treasure_hunt.errors import ConfigError
from treasure_hunt.models.user import User
from treasure_hunt.services.roles import ensure_admin_role


async def _catalog(client, admin_h):
    m1 = (await client.post("/admin/matches", headers=admin_h, json={"name": "Main", "order": 1})).json()
    m2 = (await client.post("/admin/matches", headers=admin_h, json={"name": "Side", "order": 2})).json()
    g1 = (await client.post("/admin/groups", headers=admin_h, json={"matchId": m1["id"], "name": "A"})).json()
    g2 = (await client.post("/admin/groups", headers=admin_h, json={"matchId": m2["id"], "name": "B"})).json()
    return m1, m2, g1, g2


def _leader_row(user, m, g, **kw):
    row = {"uid": user.id, "role": "leader", "teamName": "Otters", "teamTag": "OTR", "matchId": m["id"], "groupId": g["id"]}
    row.update(kw)
    return row


@pytest.mark.asyncio
async def test_leader_assignment_creates_then_updates_team(client, make_user, session):
    _, admin_h = await make_user("admin")
    leader, _ = await make_user()
    m1, _, g1, _ = await _catalog(client, admin_h)

    r = await client.post("/admin/roles", headers=admin_h, json=_leader_row(leader, m1, g1))
    assert r.status_code == 200, r.text
    assert r.json() == {"uid": leader.id, "email": leader.email, "role": "leader", "teamUpdated": True}

    team = await session.get(Team, leader.id)
    assert team.score == 0 and team.group_name == "A" and team.match_name == "Main"
    team.score = 50
    await session.commit()

    # re-assigning only touches metadata
    r = await client.post("/admin/roles", headers=admin_h, json=_leader_row(leader, m1, g1, teamName="Sea Otters"))
    assert r.status_code == 200
    team = await session.get(Team, leader.id, populate_existing=True)
    assert team.name == "Sea Otters"
    assert team.score == 50


@pytest.mark.asyncio
async def test_role_none_drops_only_the_role_claim(client, make_user, session):
    _, admin_h = await make_user("admin")
    user, _ = await make_user("leader", nickname="skipper")

    r = await client.post("/admin/roles", headers=admin_h, json={"email": user.email.upper(), "role": "none"})
    assert r.status_code == 200
    assert r.json()["role"] is None
    assert r.json()["teamUpdated"] is False

    user = await session.get(User, user.id, populate_existing=True)
    assert user.claims == {"nickname": "skipper"}


@pytest.mark.asyncio
async def test_set_user_role_validation(client, make_user):
    _, admin_h = await make_user("admin")
    leader, _ = await make_user()
    m1, _, g1, g2 = await _catalog(client, admin_h)

    cases = [
        ({"uid": leader.id, "role": "captain"}, 400),
        ({"role": "admin"}, 400),
        ({"email": "ghost@example.com", "role": "admin"}, 404),
        ({"uid": leader.id, "role": "leader", "teamName": "Otters"}, 400),
        (_leader_row(leader, {"id": "missing"}, g1), 400),
        (_leader_row(leader, m1, {"id": "missing"}), 400),
        (_leader_row(leader, m1, g2), 400),
    ]
    for body, status in cases:
        r = await client.post("/admin/roles", headers=admin_h, json=body)
        assert r.status_code == status, (body, r.text)


@pytest.mark.asyncio
async def test_bulk_import_reports_failing_rows_and_keeps_going(client, make_user, session):
    _, admin_h = await make_user("admin")
    first, _ = await make_user()
    third, _ = await make_user()
    m1, _, g1, g2 = await _catalog(client, admin_h)

    rows = [
        _leader_row(first, m1, g1),
        {"email": "nobody@example.com", "role": "leader", "teamName": "X", "teamTag": "X", "matchId": m1["id"], "groupId": g1["id"]},
        None,
        {"uid": third.id, "role": "emperor"},
        _leader_row(third, m1, g2),
        {"uid": third.id, "role": "admin"},
    ]
    r = await client.post("/admin/roles/bulk", headers=admin_h, json={"rows": rows})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["successCount"] == 2
    assert data["failureCount"] == 4
    assert [(e["index"], e["code"]) for e in data["errors"]] == [
        (1, "user-not-found"),
        (2, "invalid-row"),
        (3, "invalid-role"),
        (4, "group-mismatch"),
    ]

    assert await session.get(Team, first.id) is not None
    assert await session.get(Team, third.id) is None
    third = await session.get(User, third.id, populate_existing=True)
    assert third.claims["role"] == "admin"


@pytest.mark.asyncio
async def test_bulk_import_badly_typed_rows_fail_alone(client, make_user, session):
    _, admin_h = await make_user("admin")
    leader, _ = await make_user()
    other, _ = await make_user()
    m1, _, g1, _ = await _catalog(client, admin_h)

    rows = [_leader_row(leader, m1, g1), {"uid": other.id, "role": 5}, "garbage", {"uid": 7, "role": "admin"}]
    r = await client.post("/admin/roles/bulk", headers=admin_h, json={"rows": rows})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["successCount"] == 1
    assert data["failureCount"] == 3
    assert [(e["index"], e["code"]) for e in data["errors"]] == [
        (1, "invalid-role"),
        (2, "invalid-row"),
        (3, "invalid-row"),
    ]

    assert (await session.get(Team, leader.id)).team_tag == "OTR"
    other = await session.get(User, other.id, populate_existing=True)
    assert "role" not in other.claims


@pytest.mark.asyncio
async def test_set_user_role_rejects_non_string_role(client, make_user):
    _, admin_h = await make_user("admin")
    user, _ = await make_user()
    r = await client.post("/admin/roles", headers=admin_h, json={"uid": user.id, "role": 5})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid-argument"


@pytest.mark.asyncio
async def test_bulk_import_requires_rows(client, make_user):
    _, admin_h = await make_user("admin")
    for body in ({"rows": []}, {}):
        r = await client.post("/admin/roles/bulk", headers=admin_h, json=body)
        assert r.status_code == 400
        assert r.json()["code"] == "invalid-argument"


@pytest.mark.asyncio
async def test_set_team_group(client, make_user, session):
    _, admin_h = await make_user("admin")
    leader, _ = await make_user()
    m1, m2, g1, g2 = await _catalog(client, admin_h)
    await client.post("/admin/roles", headers=admin_h, json=_leader_row(leader, m1, g1))

    r = await client.post(f"/admin/teams/{leader.id}/group", headers=admin_h, json={"matchId": m2["id"], "groupId": g2["id"]})
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    team = await session.get(Team, leader.id)
    assert (team.match_id, team.group_id, team.group_name) == (m2["id"], g2["id"], "B")

    r = await client.post("/admin/teams/nope/group", headers=admin_h, json={"matchId": m2["id"], "groupId": g2["id"]})
    assert r.status_code == 404
    r = await client.post(f"/admin/teams/{leader.id}/group", headers=admin_h, json={"matchId": m1["id"], "groupId": g2["id"]})
    assert r.status_code == 400
    r = await client.post(f"/admin/teams/{leader.id}/group", headers=admin_h, json={"matchId": m1["id"]})
    assert r.status_code == 400

    teams = (await client.get("/admin/teams", headers=admin_h)).json()
    assert [t["id"] for t in teams] == [leader.id]


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client, make_user):
    _, leader_h = await make_user("leader")
    r = await client.post("/admin/roles", headers=leader_h, json={"uid": "x", "role": "admin"})
    assert r.status_code == 403
    assert r.json()["code"] == "permission-denied"


@pytest.mark.asyncio
async def test_admin_bootstrap(make_user, session):
    user, _ = await make_user(nickname="root")
    assert await ensure_admin_role(session, user.id) is True
    assert user.claims == {"nickname": "root", "role": "admin"}
    # already admin: nothing to do
    assert await ensure_admin_role(session, user.id) is False
    assert await ensure_admin_role(session, "") is False
    with pytest.raises(ConfigError):
        await ensure_admin_role(session, "no-such-user")
