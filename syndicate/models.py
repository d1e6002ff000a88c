from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class GameStatus(str, Enum):
    LOBBY = "lobby"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class Phase(str, Enum):
    LOBBY = "lobby"
    NOMINATION = "nomination"
    VOTING = "voting"
    ENACTMENT = "enactment"
    FINISHED = "finished"


class Role(str, Enum):
    MASTERMIND = "mastermind"
    SYNDICATE_AGENT = "syndicate_agent"
    AGENCY = "agency"


class Team(str, Enum):
    SYNDICATE = "syndicate"
    AGENCY = "agency"


class PolicyCard(str, Enum):
    AGENCY = "agency"
    SYNDICATE = "syndicate"


class VoteChoice(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class SyndicatePower(str, Enum):
    INVESTIGATE = "investigate"
    SURVEILLANCE = "surveillance"
    SPECIAL_ELECTION = "special_election"
    PURGE = "purge"


class WinReason(str, Enum):
    AGENCY_POLICIES = "agency_policies"
    SYNDICATE_POLICIES = "syndicate_policies"
    MASTERMIND_ELECTED = "mastermind_elected"
    MASTERMIND_PURGED = "mastermind_purged"
    ENDED_BY_OWNER = "ended_by_owner"


MIN_PLAYERS = 5
MAX_PLAYERS = 10

AGENCY_POLICIES_TO_WIN = 5
SYNDICATE_POLICIES_TO_WIN = 6
SYNDICATE_CARDS = 11
AGENCY_CARDS = 6

INSTABILITY_CAP = 3
MASTERMIND_ELECTION_THRESHOLD = 3

DIRECTOR_HAND_SIZE = 3
DEPUTY_HAND_SIZE = 2
SURVEILLANCE_PEEK_SIZE = 3


@dataclass
class RoomSettings:
    max_players: int = MAX_PLAYERS
    # The mastermind learns the agents only at or below this player count.
    mastermind_knows_team_max: int = 6


@dataclass
class Player:
    id: str
    name: str
    alive: bool = True
    role: Optional[Role] = None
    team: Optional[Team] = None
    known_teammate_ids: List[str] = field(default_factory=list)


@dataclass
class Room:
    code: str
    owner_id: str
    settings: RoomSettings = field(default_factory=RoomSettings)
    status: GameStatus = GameStatus.LOBBY
    phase: Phase = Phase.LOBBY
    round: int = 0
    director_candidate_id: Optional[str] = None
    deputy_candidate_id: Optional[str] = None
    director_id: Optional[str] = None
    deputy_id: Optional[str] = None
    previous_director_id: Optional[str] = None
    vote_tallies: Dict[str, VoteChoice] = field(default_factory=dict)
    instability_count: int = 0
    auto_enactment: bool = False
    policy_deck: List[PolicyCard] = field(default_factory=list)
    policy_discard: List[PolicyCard] = field(default_factory=list)
    director_hand: List[PolicyCard] = field(default_factory=list)
    deputy_hand: List[PolicyCard] = field(default_factory=list)
    syndicate_policies_enacted: int = 0
    agency_policies_enacted: int = 0
    syndicate_powers_resolved: List[SyndicatePower] = field(default_factory=list)
    investigation_results: Dict[str, Team] = field(default_factory=dict)
    investigated_by: Dict[str, str] = field(default_factory=dict)
    surveillance_peek: List[PolicyCard] = field(default_factory=list)
    surveillance_viewer_id: Optional[str] = None
    special_election_director_id: Optional[str] = None
    winner: Optional[Team] = None
    win_reason: Optional[WinReason] = None
    # Join order is the seating order used for director rotation.
    players: Dict[str, Player] = field(default_factory=dict)

    def clone(self) -> Room:
        return copy.deepcopy(self)

    @property
    def finished(self) -> bool:
        return self.status == GameStatus.FINISHED

    def player(self, player_id: Optional[str]) -> Optional[Player]:
        if player_id is None:
            return None
        return self.players.get(player_id)

    def alive_ids(self) -> List[str]:
        return [pid for pid, p in self.players.items() if p.alive]

    def is_alive(self, player_id: Optional[str]) -> bool:
        p = self.player(player_id)
        return bool(p and p.alive)


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


def _cards(cards: List[PolicyCard]) -> List[str]:
    return [c.value for c in cards]


def public_snapshot(room: Room) -> Dict[str, Any]:
    """State every client may see; hidden information stays out."""
    reveal_roles = room.finished
    players = []
    for p in room.players.values():
        entry: Dict[str, Any] = {"id": p.id, "name": p.name, "alive": p.alive}
        if reveal_roles:
            entry["role"] = _value(p.role)
            entry["team"] = _value(p.team)
        players.append(entry)

    return {
        "code": room.code,
        "owner_id": room.owner_id,
        "settings": {
            "max_players": room.settings.max_players,
            "mastermind_knows_team_max": room.settings.mastermind_knows_team_max,
        },
        "status": room.status.value,
        "phase": room.phase.value,
        "round": room.round,
        "director_candidate_id": room.director_candidate_id,
        "deputy_candidate_id": room.deputy_candidate_id,
        "director_id": room.director_id,
        "deputy_id": room.deputy_id,
        "previous_director_id": room.previous_director_id,
        "votes_received": len(room.vote_tallies),
        "vote_tallies": {pid: v.value for pid, v in room.vote_tallies.items()} if room.phase != Phase.VOTING else {},
        "instability_count": room.instability_count,
        "auto_enactment": room.auto_enactment,
        "deck_size": len(room.policy_deck),
        "discard_size": len(room.policy_discard),
        "director_hand_size": len(room.director_hand),
        "deputy_hand_size": len(room.deputy_hand),
        "syndicate_policies_enacted": room.syndicate_policies_enacted,
        "agency_policies_enacted": room.agency_policies_enacted,
        "syndicate_powers_resolved": [p.value for p in room.syndicate_powers_resolved],
        "investigated_ids": list(room.investigation_results.keys()),
        "special_election_director_id": room.special_election_director_id,
        "winner": _value(room.winner),
        "win_reason": _value(room.win_reason),
        "players": players,
    }


def private_snapshot(room: Room, player_id: str) -> Dict[str, Any]:
    p = room.player(player_id)
    if not p:
        return {}
    base = public_snapshot(room)
    base["me"] = {
        "id": p.id,
        "name": p.name,
        "alive": p.alive,
        "role": _value(p.role),
        "team": _value(p.team),
        "known_teammate_ids": list(p.known_teammate_ids),
    }
    base["director_hand"] = _cards(room.director_hand) if player_id == room.director_id else []
    base["deputy_hand"] = _cards(room.deputy_hand) if player_id == room.deputy_id else []
    base["investigation_results"] = {
        target: team.value
        for target, team in room.investigation_results.items()
        if room.investigated_by.get(target) == player_id
    }
    base["surveillance_peek"] = _cards(room.surveillance_peek) if player_id == room.surveillance_viewer_id else []
    return base
