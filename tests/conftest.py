"""Shared fixtures and utilities for Syndicate tests."""
from __future__ import annotations

import random
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pytest
from httpx import AsyncClient, ASGITransport

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from server import app, ENGINE
from syndicate import Engine, Phase, Player, PolicyCard, Role, Room, SyndicatePower, VoteChoice
from syndicate import machine, powers
from syndicate.roles import team_for

SEED = 1234
OWNER = "p1"


def make_rng(seed: int = SEED) -> random.Random:
    return random.Random(seed)


def make_room(count: int) -> Room:
    """Lobby room with players p1..pN in join order; p1 owns it."""
    room = machine.new_room("TEST01", OWNER, "Player1")
    for i in range(2, count + 1):
        machine.join(room, f"p{i}", f"Player{i}")
    return room


def started_room(count: int, seed: int = SEED) -> Room:
    room = make_room(count)
    machine.start_game(room, OWNER, make_rng(seed))
    return room


def count_roles(room: Room) -> Dict[Role, int]:
    """Count the number of each role assigned in the room."""
    counts: Dict[Role, int] = {}
    for player in room.players.values():
        if player.role:
            counts[player.role] = counts.get(player.role, 0) + 1
    return counts


def get_players_by_role(room: Room, role: Role) -> List[Player]:
    return [p for p in room.players.values() if p.role == role]


def kill_player(room: Room, player_id: str) -> None:
    """Kill a player directly (for testing specific scenarios)."""
    room.players[player_id].alive = False


def rig_roles(room: Room, mastermind: str, agents: Iterable[str] = ()) -> None:
    """Overwrite the dealt roles: everyone is agency except the given ids."""
    agents = set(agents)
    for pid, p in room.players.items():
        if pid == mastermind:
            p.role = Role.MASTERMIND
        elif pid in agents:
            p.role = Role.SYNDICATE_AGENT
        else:
            p.role = Role.AGENCY
        p.team = team_for(p.role)


def card_total(room: Room) -> int:
    return (
        len(room.policy_deck)
        + len(room.policy_discard)
        + len(room.director_hand)
        + len(room.deputy_hand)
        + room.syndicate_policies_enacted
        + room.agency_policies_enacted
    )


def _take(pile: List[PolicyCard], card: PolicyCard) -> bool:
    if card in pile:
        pile.remove(card)
        return True
    return False


def stack_deck(room: Room, top: Sequence[PolicyCard]) -> None:
    """Move the given cards to the top of the deck, pulling from the discard if needed."""
    for card in top:
        assert _take(room.policy_deck, card) or _take(room.policy_discard, card), f"no {card} left"
    room.policy_deck = list(top) + room.policy_deck


def set_track(room: Room, syndicate: int = 0, agency: int = 0) -> None:
    """Pretend policies were enacted, keeping the card count intact."""
    for _ in range(syndicate - room.syndicate_policies_enacted):
        assert _take(room.policy_deck, PolicyCard.SYNDICATE)
    for _ in range(agency - room.agency_policies_enacted):
        assert _take(room.policy_deck, PolicyCard.AGENCY)
    room.syndicate_policies_enacted = syndicate
    room.agency_policies_enacted = agency


def pick_deputy(room: Room) -> str:
    """First eligible deputy who is not the mastermind."""
    eligible = machine.eligible_deputies(room)
    safe = [pid for pid in eligible if room.players[pid].role != Role.MASTERMIND]
    return (safe or eligible)[0]


def elect(room: Room, deputy_id: Optional[str] = None) -> Tuple[str, str]:
    """Nominate and approve a government; returns (director, deputy)."""
    director = room.director_candidate_id
    deputy = deputy_id or pick_deputy(room)
    machine.nominate_deputy(room, director, deputy)
    for pid in room.alive_ids():
        if room.phase != Phase.VOTING:
            break
        machine.submit_vote(room, pid, VoteChoice.APPROVE)
    return director, deputy


def reject_nomination(room: Room) -> None:
    machine.nominate_deputy(room, room.director_candidate_id, pick_deputy(room))
    for pid in room.alive_ids():
        if room.phase != Phase.VOTING:
            break
        machine.submit_vote(room, pid, VoteChoice.REJECT)


def _other(card: PolicyCard) -> PolicyCard:
    return PolicyCard.AGENCY if card == PolicyCard.SYNDICATE else PolicyCard.SYNDICATE


def play_round(room: Room, card: PolicyCard, rng: Optional[random.Random] = None) -> Tuple[str, str]:
    """Elect a government and have it enact ``card``."""
    director, deputy = elect(room)
    stack_deck(room, [card, card, _other(card)])
    machine.draw_policies(room, director, rng or make_rng())
    machine.director_discard(room, director, 2)
    machine.deputy_enact(room, deputy, 0)
    return director, deputy


def enter_power_phase(room: Room, power: SyndicatePower) -> str:
    """Play a syndicate policy that unlocks ``power``; returns the director id."""
    table = powers.thresholds(len(room.players))
    set_track(room, syndicate=table[power] - 1, agency=room.agency_policies_enacted)
    for earlier, threshold in table.items():
        if threshold < table[power] and earlier not in room.syndicate_powers_resolved:
            room.syndicate_powers_resolved.append(earlier)
    director, _ = play_round(room, PolicyCard.SYNDICATE)
    assert machine.pending_power(room) == power
    return director


@pytest.fixture
def rng() -> random.Random:
    return make_rng()


@pytest.fixture
def engine() -> Engine:
    """Fresh Engine with a seeded generator for each test."""
    return Engine(rng=make_rng())


async def add_players(engine: Engine, count: int) -> Tuple[str, List[str]]:
    """Open a room and fill it; returns the room code and player ids, owner first."""
    created = await engine.create_room("Player1")
    code = created.room.code
    player_ids = [created.player_id]
    for i in range(2, count + 1):
        outcome = await engine.join(code, f"Player{i}")
        player_ids.append(outcome.player_id)
    return code, player_ids


@pytest.fixture
async def client():
    """Async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
async def reset_global_engine():
    """Reset the global ENGINE instance before each test."""
    await ENGINE.reset()
    yield
    await ENGINE.reset()
