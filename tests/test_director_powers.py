"""Tests for the director powers unlocked by syndicate policies."""
from __future__ import annotations

import pytest
from syndicate import (
    AlreadyResolved,
    GameStatus,
    InvalidPhase,
    InvalidTarget,
    Phase,
    PolicyCard,
    Status,
    SyndicatePower,
    Team,
    Unauthorized,
    WinReason,
)
from syndicate import machine
from syndicate.models import private_snapshot, public_snapshot
from conftest import (
    card_total,
    elect,
    enter_power_phase,
    kill_player,
    make_rng,
    play_round,
    reject_nomination,
    rig_roles,
    started_room,
)

INV = SyndicatePower.INVESTIGATE
SURV = SyndicatePower.SURVEILLANCE
ELECT = SyndicatePower.SPECIAL_ELECTION
PURGE = SyndicatePower.PURGE


class TestUnlocking:
    """Test which power a syndicate policy unlocks."""

    def test_first_syndicate_policy_unlocks_investigate(self):
        room = started_room(5)
        play_round(room, PolicyCard.SYNDICATE)
        assert room.phase == Phase.ENACTMENT
        assert machine.pending_power(room) == INV

    def test_large_table_waits_for_second_policy(self):
        room = started_room(7)
        play_round(room, PolicyCard.SYNDICATE)
        assert machine.pending_power(room) is None
        assert room.phase == Phase.NOMINATION

    def test_agency_policy_unlocks_nothing(self):
        room = started_room(5)
        play_round(room, PolicyCard.AGENCY)
        assert machine.pending_power(room) is None


class TestResolveGuards:
    """Test who may use a power and when."""

    def test_only_director_uses_power(self):
        room = started_room(5)
        enter_power_phase(room, INV)
        with pytest.raises(Unauthorized):
            machine.resolve_power(room, room.deputy_id, INV, "p5", make_rng())

    def test_wrong_power_is_rejected(self):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        with pytest.raises(InvalidPhase):
            machine.resolve_power(room, director, PURGE, "p5", make_rng())
        assert room.players["p5"].alive

    def test_used_power_is_already_resolved(self):
        room = started_room(5)
        director = enter_power_phase(room, SURV)
        with pytest.raises(AlreadyResolved):
            machine.resolve_power(room, director, INV, "p5", make_rng())

    def test_no_power_outside_enactment(self):
        room = started_room(5)
        with pytest.raises(InvalidPhase):
            machine.resolve_power(room, "p1", INV, "p2", make_rng())

    def test_dead_director_cannot_use_power(self):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        kill_player(room, director)
        with pytest.raises(Unauthorized):
            machine.resolve_power(room, director, INV, "p4", make_rng())


class TestInvestigate:
    """Test looking at a player's allegiance."""

    def test_investigate_records_team(self):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        target = next(pid for pid in room.alive_ids() if pid != director)

        machine.resolve_power(room, director, INV, target, make_rng())

        assert room.investigation_results[target] == room.players[target].team
        assert room.investigated_by[target] == director
        assert INV in room.syndicate_powers_resolved

    def test_resolution_starts_next_round(self):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        machine.resolve_power(room, director, INV, "p4", make_rng())
        assert room.phase == Phase.NOMINATION
        assert room.round == 2

    def test_only_investigator_sees_result(self):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        machine.resolve_power(room, director, INV, "p4", make_rng())

        assert "p4" in private_snapshot(room, director)["investigation_results"]
        assert private_snapshot(room, "p4")["investigation_results"] == {}
        assert "investigation_results" not in public_snapshot(room)
        assert public_snapshot(room)["investigated_ids"] == ["p4"]

    @pytest.mark.parametrize("target", [None, "ghost"])
    def test_target_must_exist(self, target):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        with pytest.raises(InvalidTarget):
            machine.resolve_power(room, director, INV, target, make_rng())
        assert INV not in room.syndicate_powers_resolved

    def test_cannot_investigate_self(self):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        with pytest.raises(InvalidTarget):
            machine.resolve_power(room, director, INV, director, make_rng())

    def test_cannot_investigate_twice(self):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        room.investigation_results["p4"] = Team.AGENCY
        room.investigated_by["p4"] = "p3"
        with pytest.raises(InvalidTarget):
            machine.resolve_power(room, director, INV, "p4", make_rng())


class TestSurveillance:
    """Test peeking at the top of the deck."""

    def test_peek_shows_top_three(self):
        room = started_room(5)
        director = enter_power_phase(room, SURV)
        top = room.policy_deck[:3]

        machine.resolve_power(room, director, SURV, None, make_rng())

        assert room.surveillance_peek == top
        assert room.surveillance_viewer_id == director
        assert room.phase == Phase.NOMINATION

    def test_only_viewer_sees_peek(self):
        room = started_room(5)
        director = enter_power_phase(room, SURV)
        machine.resolve_power(room, director, SURV, None, make_rng())
        other = next(pid for pid in room.players if pid != director)

        assert len(private_snapshot(room, director)["surveillance_peek"]) == 3
        assert private_snapshot(room, other)["surveillance_peek"] == []

    def test_next_draw_matches_peek_and_clears_it(self):
        room = started_room(5)
        director = enter_power_phase(room, SURV)
        machine.resolve_power(room, director, SURV, None, make_rng())
        peeked = list(room.surveillance_peek)

        next_director, _ = elect(room)
        machine.draw_policies(room, next_director, make_rng())

        assert room.director_hand == peeked
        assert room.surveillance_peek == []
        assert room.surveillance_viewer_id is None

    def test_short_deck_peek_leaves_piles_in_place(self):
        room = started_room(5)
        director = enter_power_phase(room, SURV)
        room.policy_discard = room.policy_discard + room.policy_deck[1:]
        room.policy_deck = room.policy_deck[:1]
        pile, used = list(room.policy_deck), list(room.policy_discard)

        machine.resolve_power(room, director, SURV, None, make_rng())

        assert room.policy_deck == pile
        assert room.policy_discard == used
        assert room.surveillance_peek == (pile + used)[:3]
        assert card_total(room) == 17


class TestSpecialElection:
    """Test choosing the next director candidate."""

    def test_target_is_next_candidate(self):
        room = started_room(5)
        director = enter_power_phase(room, ELECT)
        assert director == "p1"

        machine.resolve_power(room, director, ELECT, "p4", make_rng())

        assert room.phase == Phase.NOMINATION
        assert room.director_candidate_id == "p4"
        assert room.special_election_director_id is None

    def test_rotation_continues_from_target(self):
        room = started_room(5)
        director = enter_power_phase(room, ELECT)
        machine.resolve_power(room, director, ELECT, "p4", make_rng())
        reject_nomination(room)
        assert room.director_candidate_id == "p5"

    def test_cannot_elect_self(self):
        room = started_room(5)
        director = enter_power_phase(room, ELECT)
        with pytest.raises(InvalidTarget):
            machine.resolve_power(room, director, ELECT, director, make_rng())


class TestPurge:
    """Test eliminating a player."""

    def test_purge_eliminates_target(self):
        room = started_room(5)
        rig_roles(room, mastermind="p5", agents=["p4"])
        director = enter_power_phase(room, PURGE)

        machine.resolve_power(room, director, PURGE, "p3", make_rng())

        assert room.players["p3"].alive is False
        assert room.status == GameStatus.IN_PROGRESS
        assert room.phase == Phase.NOMINATION

    def test_purging_mastermind_wins_for_agency(self):
        room = started_room(5)
        rig_roles(room, mastermind="p5", agents=["p4"])
        director = enter_power_phase(room, PURGE)

        machine.resolve_power(room, director, PURGE, "p5", make_rng())

        assert room.status == GameStatus.FINISHED
        assert room.winner == Team.AGENCY
        assert room.win_reason == WinReason.MASTERMIND_PURGED
        assert PURGE in room.syndicate_powers_resolved

    def test_cannot_purge_dead_player(self):
        room = started_room(5)
        rig_roles(room, mastermind="p5", agents=["p4"])
        director = enter_power_phase(room, PURGE)
        kill_player(room, "p3")
        with pytest.raises(InvalidTarget):
            machine.resolve_power(room, director, PURGE, "p3", make_rng())


class TestIdempotence:
    """Test repeating a power through the engine."""

    async def test_second_resolution_changes_nothing(self, engine):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        await engine.store.insert(room)

        first = await engine.resolve_power(room.code, director, "investigate", "p4")
        second = await engine.resolve_power(room.code, director, "investigate", "p4")

        assert first.ok
        assert not second.ok
        assert second.status == Status.INVALID_PHASE
        assert second.room == first.room

    async def test_unknown_power_name(self, engine):
        room = started_room(5)
        director = enter_power_phase(room, INV)
        await engine.store.insert(room)

        outcome = await engine.resolve_power(room.code, director, "mind_control", "p4")

        assert outcome.status == Status.INVALID_TARGET
        assert outcome.room.syndicate_powers_resolved == []
