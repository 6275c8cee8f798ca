"""Tests for role selection and party admission."""

import asyncio
from dataclasses import dataclass
from datetime import timedelta

from party_sessions.domain.roster import (
    RoleSelectionStatus,
    RosterAction,
    decide_role_selection,
)
from party_sessions.domain.sessions import (
    PartyMember,
    RoleType,
    SessionStatus,
    SessionWithParty,
)
from party_sessions.services.roster import RoleSelectionService
from tests.conftest import GM_ID, NOW, build_harness

START = NOW + timedelta(days=2)


@dataclass
class StaleSessionLoader:
    """Serves a snapshot taken before the party filled up."""

    snapshot: SessionWithParty

    def get_session_with_party(self, session_id: str) -> SessionWithParty | None:
        return self.snapshot


def _member(user_id: str, role: RoleType = RoleType.TANK) -> PartyMember:
    return PartyMember(user_id, user_id, role)


def test_decision_rejects_locked_and_expired_sessions() -> None:
    harness = build_harness()
    full = harness.add_session("s-full", START, status=SessionStatus.FULL)
    past = harness.add_session("s-past", NOW - timedelta(minutes=1))

    locked = decide_role_selection(full, _member("u1"), NOW)
    expired = decide_role_selection(past, _member("u1"), NOW)

    assert locked.action is RosterAction.REJECT
    assert locked.status is RoleSelectionStatus.LOCKED
    assert expired.status is RoleSelectionStatus.EXPIRED


def test_decision_rejects_exclusive_role_requests() -> None:
    harness = build_harness()
    session = harness.add_session("s1", START)

    as_gm = decide_role_selection(session, _member("u1", RoleType.GAME_MASTER), NOW)
    gm_leaving = decide_role_selection(session, _member(GM_ID, RoleType.TANK), NOW)

    assert as_gm.status is RoleSelectionStatus.INVALID
    assert gm_leaving.status is RoleSelectionStatus.INVALID


def test_decision_for_newcomer_carries_admit_outcome() -> None:
    harness = build_harness()
    session = harness.add_session("s1", START)

    decision = decide_role_selection(session, _member("u1"), NOW)

    assert decision.action is RosterAction.JOIN
    assert decision.status is RoleSelectionStatus.ADDED_TO_PARTY
    assert decision.existing is None


def test_join_then_toggle_same_role_leaves() -> None:
    harness = build_harness()
    harness.add_session("s1", START)

    async def run() -> list[RoleSelectionStatus]:
        first = await harness.role_selection.process_role_selection("s1", _member("u1"))
        second = await harness.role_selection.process_role_selection("s1", _member("u1"))
        return [first, second]

    outcomes = asyncio.run(run())

    assert outcomes == [
        RoleSelectionStatus.ADDED_TO_PARTY,
        RoleSelectionStatus.REMOVED_FROM_PARTY,
    ]
    assert [member.user_id for member in harness.store.parties["s1"]] == [GM_ID]
    assert len(harness.discord.edits) == 2


def test_selecting_other_role_changes_in_place() -> None:
    harness = build_harness()
    harness.add_session("s1", START, players=2)

    status = asyncio.run(
        harness.role_selection.process_role_selection(
            "s1", _member("player-1", RoleType.HEALER)
        )
    )

    assert status is RoleSelectionStatus.ROLE_CHANGED
    party = harness.store.parties["s1"]
    assert len(party) == 3
    assert party[1] == PartyMember("player-1", "player1", RoleType.HEALER)


def test_unknown_session_is_locked() -> None:
    harness = build_harness()

    status = asyncio.run(
        harness.role_selection.process_role_selection("missing", _member("u1"))
    )

    assert status is RoleSelectionStatus.LOCKED
    assert harness.discord.edits == []


def test_already_in_other_session_of_channel() -> None:
    harness = build_harness()
    harness.add_session("s1", START, players=1)
    harness.add_session("s2", START + timedelta(days=3))

    status = asyncio.run(
        harness.role_selection.process_role_selection("s2", _member("player-1"))
    )

    assert status is RoleSelectionStatus.ALREADY_IN_SESSION
    assert len(harness.store.parties["s2"]) == 1


def test_finished_sessions_do_not_block_joining() -> None:
    harness = build_harness()
    harness.add_session(
        "old", NOW - timedelta(days=7), status=SessionStatus.COMPLETED, players=1
    )
    harness.add_session("s1", START)

    status = asyncio.run(
        harness.role_selection.process_role_selection("s1", _member("player-1"))
    )

    assert status is RoleSelectionStatus.ADDED_TO_PARTY


def test_hosting_same_day_is_rejected() -> None:
    harness = build_harness()
    harness.add_session("s1", START)
    harness.add_session("s2", START + timedelta(hours=2))
    harness.store.parties["s2"] = [PartyMember("gm-2", "gm2", RoleType.GAME_MASTER)]

    status = asyncio.run(
        harness.role_selection.process_role_selection("s2", _member(GM_ID))
    )

    assert status is RoleSelectionStatus.HOSTING_SAME_DAY
    assert harness.store.parties["s2"] == [
        PartyMember("gm-2", "gm2", RoleType.GAME_MASTER)
    ]
    assert harness.discord.edits == []


def test_host_on_another_day_is_already_in_session() -> None:
    harness = build_harness()
    harness.add_session("s1", START)
    harness.add_session("s2", START + timedelta(days=3))
    harness.store.parties["s2"] = [PartyMember("gm-2", "gm2", RoleType.GAME_MASTER)]

    status = asyncio.run(
        harness.role_selection.process_role_selection("s2", _member(GM_ID))
    )

    assert status is RoleSelectionStatus.ALREADY_IN_SESSION
    assert len(harness.store.parties["s2"]) == 1


def test_concurrent_joins_never_exceed_capacity() -> None:
    harness = build_harness()
    harness.add_session("s1", START)

    async def run() -> list[RoleSelectionStatus]:
        return await asyncio.gather(
            *(
                harness.role_selection.process_role_selection(
                    "s1", _member(f"user-{index}", RoleType.DPS)
                )
                for index in range(10)
            )
        )

    outcomes = asyncio.run(run())

    assert outcomes.count(RoleSelectionStatus.ADDED_TO_PARTY) == 5
    assert set(outcomes[5:]) <= {
        RoleSelectionStatus.PARTY_FULL,
        RoleSelectionStatus.LOCKED,
    }
    assert len(harness.store.parties["s1"]) == 6
    assert harness.status_of("s1") is SessionStatus.FULL


def test_stale_snapshot_cannot_overfill_party() -> None:
    harness = build_harness()
    snapshot = harness.add_session("s1", START)
    harness.add_session("s1", START, players=5)
    service = RoleSelectionService(
        session_repository=StaleSessionLoader(snapshot),
        party_repository=harness.parties,
        lifecycle=harness.session_service,
        clock=harness.clock,
    )

    status = asyncio.run(service.process_role_selection("s1", _member("u1")))

    assert status is RoleSelectionStatus.PARTY_FULL
    assert len(harness.store.parties["s1"]) == 6


def test_filling_last_seat_marks_full_and_creates_event() -> None:
    harness = build_harness()
    harness.add_session("s1", START, players=4)

    async def run() -> tuple[RoleSelectionStatus, RoleSelectionStatus]:
        joined = await harness.role_selection.process_role_selection(
            "s1", _member("last")
        )
        late = await harness.role_selection.process_role_selection(
            "s1", _member("latecomer")
        )
        return joined, late

    joined, late = asyncio.run(run())

    assert joined is RoleSelectionStatus.ADDED_TO_PARTY
    assert late is RoleSelectionStatus.LOCKED
    assert harness.status_of("s1") is SessionStatus.FULL
    assert harness.store.sessions["s1"].event_id == "event-1"
    assert harness.discord.edits[-1][2]["components"][0]["components"][0]["disabled"]


def test_mark_full_failure_keeps_member_added() -> None:
    harness = build_harness()
    harness.add_session("s1", START, players=4)
    harness.store.fail_status_writes = True

    status = asyncio.run(
        harness.role_selection.process_role_selection("s1", _member("last"))
    )

    assert status is RoleSelectionStatus.ADDED_TO_PARTY
    assert len(harness.store.parties["s1"]) == 6
    assert harness.status_of("s1") is SessionStatus.SCHEDULED


def test_regeneration_failure_does_not_change_outcome() -> None:
    harness = build_harness()
    harness.add_session("s1", START)
    harness.discord.fail_edits = True

    status = asyncio.run(
        harness.role_selection.process_role_selection("s1", _member("u1"))
    )

    assert status is RoleSelectionStatus.ADDED_TO_PARTY
