from __future__ import annotations
from datetime import datetime, timedelta, timezone
from treasure_hunt.schemas.competition import GroupRecord, LocationRecord, MatchRecord
from treasure_hunt.schemas.runtime import RuntimeSettingsRecord
from treasure_hunt.schemas.team import TeamRecord
from treasure_hunt.services.leaderboard import (
    DEFAULT_ORDER, MAX_SAFE_INTEGER, UNASSIGNED_ID, CompetitionSnapshot, build_leaderboard,
)

T0 = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
NOW = T0 + timedelta(hours=2)


def _solve(seconds_after_start, points):
    return {"at": (T0 + timedelta(seconds=seconds_after_start)).isoformat(), "points": points}


def _snapshot(teams, groups=None, matches=None, locations=None, runtime=None):
    return CompetitionSnapshot(
        matches=matches if matches is not None else [MatchRecord(id="m1", name="Main", order=1)],
        groups=groups if groups is not None else [GroupRecord(id="g1", match_id="m1", name="Morning", order=1, start_at=T0)],
        teams=teams,
        locations=locations if locations is not None else [
            LocationRecord(id="a", match_id="m1", base_points=100),
            LocationRecord(id="b", match_id="m1", base_points=100),
        ],
        runtime=runtime,
    )


def _team(team_id, name=None, solved=None, match_id="m1", group_id="g1"):
    return TeamRecord(id=team_id, name=name or team_id, team_tag="T", match_id=match_id, group_id=group_id, solved=solved or {})


def _entries(doc, match_id="m1", group_id="g1"):
    match = next(m for m in doc.matches if m.id == match_id)
    return next(g for g in match.groups if g.id == group_id).entries


def test_elapsed_seconds_from_group_start():
    doc = build_leaderboard(_snapshot([_team("t1", solved={"a": _solve(90, 100)})]), NOW)
    [entry] = _entries(doc)
    assert entry.score == 100
    assert entry.elapsed_seconds == 90
    assert entry.solved_count == 1
    assert entry.last_solve_at == T0 + timedelta(seconds=90)
    assert doc.unassigned_notice is False
    assert doc.schema_version == 2


def test_ranking_score_then_elapsed_then_name():
    teams = [
        _team("t-slow", "Bravo", {"a": _solve(300, 100)}),
        _team("t-fast", "Alpha", {"a": _solve(100, 100)}),
        _team("t-top", "Zulu", {"a": _solve(500, 100), "b": _solve(600, 100)}),
        _team("t-none", "Aardvark"),
        _team("t-tie", "Charlie", {"a": _solve(100, 100)}),
    ]
    ids = [e.team_id for e in _entries(build_leaderboard(_snapshot(teams), NOW))]
    assert ids == ["t-top", "t-fast", "t-tie", "t-slow", "t-none"]


def test_exact_name_tie_broken_by_id():
    teams = [_team("t2", "Same"), _team("t1", "Same")]
    assert [e.team_id for e in _entries(build_leaderboard(_snapshot(teams), NOW))] == ["t1", "t2"]


def test_group_without_start_has_no_elapsed_and_ranks_by_last_solve():
    groups = [GroupRecord(id="g1", match_id="m1", name="Open", start_at=None)]
    teams = [
        _team("late", "A", {"a": _solve(200, 100)}),
        _team("early", "B", {"a": _solve(100, 100)}),
    ]
    entries = _entries(build_leaderboard(_snapshot(teams, groups=groups), NOW))
    assert [e.team_id for e in entries] == ["early", "late"]
    assert all(e.elapsed_seconds is None for e in entries)


def test_team_in_missing_group_goes_to_unassigned():
    teams = [
        _team("ok", solved={"a": _solve(10, 100)}),
        _team("lost", solved={"a": _solve(20, 100)}, group_id="gone"),
    ]
    doc = build_leaderboard(_snapshot(teams), NOW)
    assert doc.unassigned_notice is True
    last = doc.matches[-1]
    assert last.id == UNASSIGNED_ID and last.unassigned is True
    assert last.order == MAX_SAFE_INTEGER
    [bucket] = last.groups
    assert [e.team_id for e in bucket.entries] == ["lost"]
    # overall totals when nothing is unattributable
    assert bucket.entries[0].score == 100
    assert bucket.entries[0].elapsed_seconds is None
    assert [e.team_id for e in _entries(doc)] == ["ok"]


def test_group_with_orphaned_match_is_skipped_and_its_teams_unassigned():
    groups = [
        GroupRecord(id="g1", match_id="m1", name="Morning", start_at=T0),
        GroupRecord(id="g9", match_id="deleted", name="Ghost", start_at=T0),
    ]
    teams = [_team("ghost", match_id="deleted", group_id="g9")]
    doc = build_leaderboard(_snapshot(teams, groups=groups), NOW)
    assert doc.unassigned_notice is True
    assert all(g.id != "g9" for m in doc.matches for g in m.groups)
    assert doc.matches[-1].groups[0].entries[0].team_id == "ghost"


def test_assigned_team_only_counts_points_of_its_match():
    matches = [MatchRecord(id="m1", name="Main", order=1), MatchRecord(id="m2", name="Side", order=2)]
    locations = [LocationRecord(id="a", match_id="m1"), LocationRecord(id="x", match_id="m2")]
    teams = [_team("t1", solved={"a": _solve(10, 100), "x": _solve(20, 40)})]
    [entry] = _entries(build_leaderboard(_snapshot(teams, matches=matches, locations=locations), NOW))
    assert entry.score == 100
    assert entry.solved_count == 1


def test_empty_match_is_omitted_and_order_defaults():
    matches = [
        MatchRecord(id="m1", name="Main", order=None),
        MatchRecord(id="m0", name="", order=5),
        MatchRecord(id="empty", name="Nobody", order=0),
    ]
    groups = [
        GroupRecord(id="g1", match_id="m1", name="Morning"),
        GroupRecord(id="g0", match_id="m0", name=" "),
    ]
    doc = build_leaderboard(_snapshot([], groups=groups, matches=matches), NOW)
    assert [m.id for m in doc.matches] == ["m0", "m1"]
    assert doc.matches[0].name == "m0"
    assert doc.matches[0].groups[0].name == "g0"
    assert doc.matches[1].order == DEFAULT_ORDER
    assert doc.unassigned_notice is False


def test_masked_inside_freeze_window_and_by_override():
    runtime = RuntimeSettingsRecord(event_start=T0, freeze_at=NOW - timedelta(minutes=1), event_end=NOW + timedelta(hours=1))
    assert build_leaderboard(_snapshot([], runtime=runtime), NOW).masked is True
    assert build_leaderboard(_snapshot([]), NOW).masked is False
    forced = RuntimeSettingsRecord(freeze_override=True)
    assert build_leaderboard(_snapshot([], runtime=forced), NOW).masked is True


def test_same_input_same_output():
    teams = [
        _team(f"t{i}", f"Team {i % 3}", {"a": _solve(60 * i, 100)} if i % 2 else {})
        for i in range(10)
    ]
    first = build_leaderboard(_snapshot(teams), NOW).model_dump()
    second = build_leaderboard(_snapshot(list(reversed(teams))), NOW).model_dump()
    assert first == second
