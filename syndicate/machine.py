"""Rule transitions over a working copy of a room.

Every public function here takes the room to change, the acting player id and
the action's parameters. It either mutates the room into its next valid state
and returns narration lines for the table, or raises a ``Rejected`` error
before touching anything. Nothing outside the room is read or written, so the
gateway can rerun a transition on a fresh copy after a write conflict.
"""
from __future__ import annotations

import random
from dataclasses import fields
from typing import Any, Callable, Dict, List, Optional

from . import deck, powers, roles
from .errors import AlreadyResolved, ConfigurationError, InvalidPhase, InvalidTarget, Unauthorized
from .models import (
    AGENCY_POLICIES_TO_WIN,
    DEPUTY_HAND_SIZE,
    DIRECTOR_HAND_SIZE,
    INSTABILITY_CAP,
    MASTERMIND_ELECTION_THRESHOLD,
    MAX_PLAYERS,
    MIN_PLAYERS,
    SURVEILLANCE_PEEK_SIZE,
    SYNDICATE_POLICIES_TO_WIN,
    GameStatus,
    Phase,
    Player,
    PolicyCard,
    Role,
    Room,
    SyndicatePower,
    Team,
    VoteChoice,
    WinReason,
)

Lines = List[str]

NAME_MAX = 24

# Fields that survive a game start; everything else goes back to its default.
_KEPT_ON_START = {"code", "owner_id", "settings", "players"}


def new_room(code: str, owner_id: str, owner_name: str) -> Room:
    room = Room(code=code, owner_id=owner_id)
    room.players[owner_id] = Player(id=owner_id, name=_clean_name(owner_name, owner_id))
    return room


def _clean_name(name: str, player_id: str) -> str:
    return (name or "").strip()[:NAME_MAX] or f"Player-{player_id}"


# -- guards -----------------------------------------------------------------

def _require_owner(room: Room, actor_id: str) -> None:
    if actor_id != room.owner_id:
        raise Unauthorized("Only the room owner can do that.")


def _require_member(room: Room, actor_id: str) -> Player:
    p = room.player(actor_id)
    if not p:
        raise Unauthorized(f"{actor_id} is not in room {room.code}.")
    return p


def _require_in_progress(room: Room) -> None:
    if room.status != GameStatus.IN_PROGRESS:
        raise InvalidPhase(f"Room {room.code} is {room.status.value}.")


def _require_phase(room: Room, phase: Phase) -> None:
    _require_in_progress(room)
    if room.phase != phase:
        raise InvalidPhase(f"Expected {phase.value}, room is in {room.phase.value}.")


def _require_target(room: Room, actor_id: str, target_id: Optional[str]) -> Player:
    target = room.player(target_id)
    if not target or not target.alive:
        raise InvalidTarget(f"{target_id} is not an alive player.")
    if target.id == actor_id:
        raise InvalidTarget("Cannot target yourself.")
    return target


# -- seating ----------------------------------------------------------------

def next_alive_after(room: Room, player_id: Optional[str]) -> Optional[str]:
    """Next alive player after ``player_id`` in join order, wrapping.

    The walk starts from the player's seat even when that player is dead.
    """
    order = list(room.players)
    if not any(room.players[pid].alive for pid in order):
        return None
    start = order.index(player_id) if player_id in room.players else -1
    for step in range(1, len(order) + 1):
        pid = order[(start + step) % len(order)]
        if room.players[pid].alive:
            return pid
    return None


def eligible_deputies(room: Room) -> List[str]:
    candidate = room.director_candidate_id
    alive = [pid for pid in room.alive_ids() if pid != candidate]
    eligible = [pid for pid in alive if pid != room.previous_director_id]
    return eligible or alive


def _begin_nomination(room: Room, lines: Lines, rotate: bool = True) -> None:
    override = room.special_election_director_id
    if override and room.is_alive(override):
        candidate = override
    elif rotate or not room.is_alive(room.director_candidate_id):
        candidate = next_alive_after(room, room.director_candidate_id)
    else:
        candidate = room.director_candidate_id

    room.phase = Phase.NOMINATION
    room.round += 1
    room.director_candidate_id = candidate
    room.deputy_candidate_id = None
    room.director_id = None
    room.deputy_id = None
    room.vote_tallies = {}
    room.director_hand = []
    room.deputy_hand = []
    room.auto_enactment = False
    room.special_election_director_id = None
    lines.append(f"Round {room.round}: {_name(room, candidate)} is the director candidate.")


def _name(room: Room, player_id: Optional[str]) -> str:
    p = room.player(player_id)
    return p.name if p else "-"


# -- outcome ----------------------------------------------------------------

def _finish(room: Room, winner: Optional[Team], reason: WinReason, lines: Lines) -> None:
    room.status = GameStatus.FINISHED
    room.phase = Phase.FINISHED
    room.winner = winner
    room.win_reason = reason
    room.auto_enactment = False
    if winner:
        lines.append(f"Game over: {winner.value} wins ({reason.value}).")
    else:
        lines.append("Game ended by the owner.")


def _apply_policy(room: Room, card: PolicyCard, lines: Lines) -> bool:
    """Put ``card`` on its track; True when that finished the game."""
    if card == PolicyCard.AGENCY:
        room.agency_policies_enacted += 1
    else:
        room.syndicate_policies_enacted += 1
    lines.append(f"A {card.value} policy was enacted.")

    if room.agency_policies_enacted >= AGENCY_POLICIES_TO_WIN:
        _finish(room, Team.AGENCY, WinReason.AGENCY_POLICIES, lines)
        return True
    if room.syndicate_policies_enacted >= SYNDICATE_POLICIES_TO_WIN:
        _finish(room, Team.SYNDICATE, WinReason.SYNDICATE_POLICIES, lines)
        return True
    return False


def pending_power(room: Room) -> Optional[SyndicatePower]:
    return powers.next_power(
        room.syndicate_policies_enacted,
        room.syndicate_powers_resolved,
        len(room.players),
    )


# -- lobby ------------------------------------------------------------------

def join(room: Room, player_id: str, name: str) -> Lines:
    if room.status != GameStatus.LOBBY:
        raise InvalidPhase(f"Room {room.code} is no longer accepting players.")
    if player_id in room.players:
        raise AlreadyResolved(f"{player_id} already joined.")
    if len(room.players) >= room.settings.max_players:
        raise InvalidPhase(f"Room {room.code} is full.")
    room.players[player_id] = Player(id=player_id, name=_clean_name(name, player_id))
    return [f"{room.players[player_id].name} joined the room."]


def configure(room: Room, actor_id: str, cfg: Dict[str, Any]) -> Lines:
    _require_owner(room, actor_id)
    if room.status != GameStatus.LOBBY:
        raise InvalidPhase("Settings are locked once the game starts.")
    if "max_players" in cfg:
        room.settings.max_players = max(MIN_PLAYERS, min(MAX_PLAYERS, int(cfg["max_players"])))
    if "mastermind_knows_team_max" in cfg:
        room.settings.mastermind_knows_team_max = max(0, min(MAX_PLAYERS, int(cfg["mastermind_knows_team_max"])))
    return []


def start_game(room: Room, actor_id: str, rng: random.Random) -> Lines:
    _require_owner(room, actor_id)
    if room.status != GameStatus.LOBBY:
        raise InvalidPhase(f"Room {room.code} already started.")
    count = len(room.players)
    if count > room.settings.max_players:
        raise ConfigurationError(f"Room allows at most {room.settings.max_players} players, has {count}.")

    assignments = roles.assign(list(room.players), rng, room.settings.mastermind_knows_team_max)

    defaults = Room(code=room.code, owner_id=room.owner_id)
    for f in fields(Room):
        if f.name not in _KEPT_ON_START:
            setattr(room, f.name, getattr(defaults, f.name))

    for a in assignments:
        p = room.players[a.player_id]
        p.role = a.role
        p.team = a.team
        p.known_teammate_ids = a.known_teammate_ids
        p.alive = True

    room.status = GameStatus.IN_PROGRESS
    room.policy_deck = deck.build_deck(rng)
    lines = ["The game begins. Roles have been dealt."]
    _begin_nomination(room, lines)
    return lines


# -- nomination and voting --------------------------------------------------

def nominate_deputy(room: Room, actor_id: str, deputy_id: str) -> Lines:
    _require_phase(room, Phase.NOMINATION)
    if actor_id != room.director_candidate_id:
        raise Unauthorized("Only the director candidate nominates a deputy.")
    if deputy_id not in eligible_deputies(room):
        raise InvalidTarget(f"{deputy_id} cannot be nominated as deputy.")

    room.deputy_candidate_id = deputy_id
    room.vote_tallies = {}
    room.phase = Phase.VOTING
    return [f"{_name(room, actor_id)} nominated {_name(room, deputy_id)} as deputy. Vote now."]


def majority(room: Room) -> int:
    return len(room.alive_ids()) // 2 + 1


def submit_vote(room: Room, actor_id: str, choice: VoteChoice) -> Lines:
    _require_phase(room, Phase.VOTING)
    if not room.is_alive(actor_id):
        raise Unauthorized(f"{actor_id} cannot vote.")
    room.vote_tallies[actor_id] = VoteChoice(choice)
    lines: Lines = []
    _resolve_votes(room, lines)
    return lines


def _resolve_votes(room: Room, lines: Lines) -> None:
    alive = set(room.alive_ids())
    votes = [v for pid, v in room.vote_tallies.items() if pid in alive]
    approvals = votes.count(VoteChoice.APPROVE)
    rejections = votes.count(VoteChoice.REJECT)
    needed = majority(room)

    if approvals >= needed:
        _elect(room, lines)
    elif rejections >= needed or len(votes) >= len(alive):
        _fail_election(room, lines)


def _elect(room: Room, lines: Lines) -> None:
    room.director_id = room.director_candidate_id
    room.deputy_id = room.deputy_candidate_id
    room.previous_director_id = room.director_candidate_id
    room.instability_count = 0
    room.auto_enactment = False
    room.director_hand = []
    room.deputy_hand = []
    room.phase = Phase.ENACTMENT
    lines.append(f"Elected: {_name(room, room.director_id)} and {_name(room, room.deputy_id)}.")

    deputy = room.player(room.deputy_id)
    if (
        room.syndicate_policies_enacted >= MASTERMIND_ELECTION_THRESHOLD
        and deputy
        and deputy.role == Role.MASTERMIND
    ):
        _finish(room, Team.SYNDICATE, WinReason.MASTERMIND_ELECTED, lines)


def _fail_election(room: Room, lines: Lines) -> None:
    room.instability_count += 1
    lines.append(f"The nomination failed. Instability {room.instability_count}/{INSTABILITY_CAP}.")

    if room.instability_count < INSTABILITY_CAP:
        _begin_nomination(room, lines)
        return

    room.director_candidate_id = next_alive_after(room, room.director_candidate_id)
    room.deputy_candidate_id = None
    room.director_id = None
    room.deputy_id = None
    room.vote_tallies = {}
    room.director_hand = []
    room.deputy_hand = []
    room.instability_count = 0
    room.auto_enactment = True
    room.phase = Phase.ENACTMENT
    lines.append("Instability reached its limit. The top policy will be enacted.")


# -- enactment --------------------------------------------------------------

def _require_manual_enactment(room: Room) -> None:
    _require_phase(room, Phase.ENACTMENT)
    if room.auto_enactment:
        raise InvalidPhase("An automatic enactment is pending.")


def draw_policies(room: Room, actor_id: str, rng: random.Random) -> Lines:
    _require_manual_enactment(room)
    if actor_id != room.director_id or not room.is_alive(actor_id):
        raise Unauthorized("Only the director draws policies.")
    if room.director_hand or room.deputy_hand or pending_power(room):
        raise AlreadyResolved("Policies were already drawn this round.")

    result = deck.draw(room.policy_deck, room.policy_discard, DIRECTOR_HAND_SIZE, rng)
    room.policy_deck = result.deck
    room.policy_discard = result.discard
    room.director_hand = result.cards
    room.deputy_hand = []
    room.surveillance_peek = []
    room.surveillance_viewer_id = None
    return [f"{_name(room, actor_id)} drew {DIRECTOR_HAND_SIZE} policies."]


def director_discard(room: Room, actor_id: str, card_index: int) -> Lines:
    _require_manual_enactment(room)
    if actor_id != room.director_id or not room.is_alive(actor_id):
        raise Unauthorized("Only the director discards.")
    if len(room.director_hand) != DIRECTOR_HAND_SIZE:
        if room.deputy_hand or pending_power(room):
            raise AlreadyResolved("The director already passed the policies on.")
        raise InvalidPhase("Policies have not been drawn yet.")
    if not 0 <= card_index < DIRECTOR_HAND_SIZE:
        raise InvalidTarget(f"No card at index {card_index}.")

    hand = list(room.director_hand)
    discarded = hand.pop(card_index)
    room.policy_discard = deck.discard(room.policy_discard, discarded)
    room.director_hand = []
    room.deputy_hand = hand
    return [f"{_name(room, actor_id)} passed two policies to {_name(room, room.deputy_id)}."]


def deputy_enact(room: Room, actor_id: str, card_index: int) -> Lines:
    _require_manual_enactment(room)
    if actor_id != room.deputy_id or not room.is_alive(actor_id):
        raise Unauthorized("Only the deputy enacts.")
    if len(room.deputy_hand) != DEPUTY_HAND_SIZE:
        if room.director_hand or not pending_power(room):
            raise InvalidPhase("The deputy has no policies to choose from.")
        raise AlreadyResolved("A policy was already enacted this round.")
    if not 0 <= card_index < DEPUTY_HAND_SIZE:
        raise InvalidTarget(f"No card at index {card_index}.")

    hand = list(room.deputy_hand)
    enacted = hand.pop(card_index)
    room.policy_discard = deck.discard(room.policy_discard, *hand)
    room.deputy_hand = []
    room.director_hand = []

    lines: Lines = []
    if _apply_policy(room, enacted, lines):
        return lines

    power = pending_power(room)
    if power:
        lines.append(f"The director must now use {power.value}.")
    else:
        _begin_nomination(room, lines)
    return lines


def auto_enact(room: Room, actor_id: str, rng: random.Random) -> Lines:
    _require_phase(room, Phase.ENACTMENT)
    _require_member(room, actor_id)
    if not room.auto_enactment:
        raise InvalidPhase("No automatic enactment is pending.")

    result = deck.draw(room.policy_deck, room.policy_discard, 1, rng)
    room.policy_deck = result.deck
    room.policy_discard = result.discard
    room.surveillance_peek = []
    room.surveillance_viewer_id = None
    room.auto_enactment = False

    before = room.syndicate_policies_enacted
    lines: Lines = []
    if _apply_policy(room, result.cards[0], lines):
        return lines

    # Powers crossed by the fallback enactment are lost, not deferred.
    for power in powers.crossed_powers(before, room.syndicate_policies_enacted, len(room.players)):
        if power not in room.syndicate_powers_resolved:
            room.syndicate_powers_resolved.append(power)

    _begin_nomination(room, lines, rotate=False)
    return lines


# -- director powers --------------------------------------------------------

def _investigate(room: Room, actor_id: str, target_id: Optional[str], rng: random.Random, lines: Lines) -> None:
    target = _require_target(room, actor_id, target_id)
    if target.id in room.investigation_results:
        raise InvalidTarget(f"{target.name} was already investigated.")
    room.investigation_results[target.id] = target.team
    room.investigated_by[target.id] = actor_id
    lines.append(f"{_name(room, actor_id)} investigated {target.name}.")


def _surveillance(room: Room, actor_id: str, target_id: Optional[str], rng: random.Random, lines: Lines) -> None:
    room.surveillance_peek = deck.peek(room.policy_deck, room.policy_discard, SURVEILLANCE_PEEK_SIZE)
    room.surveillance_viewer_id = actor_id
    lines.append(f"{_name(room, actor_id)} looked at the top of the policy deck.")


def _special_election(room: Room, actor_id: str, target_id: Optional[str], rng: random.Random, lines: Lines) -> None:
    target = _require_target(room, actor_id, target_id)
    room.special_election_director_id = target.id
    lines.append(f"{_name(room, actor_id)} called a special election: {target.name} is next.")


def _purge(room: Room, actor_id: str, target_id: Optional[str], rng: random.Random, lines: Lines) -> None:
    target = _require_target(room, actor_id, target_id)
    target.alive = False
    room.vote_tallies.pop(target.id, None)
    lines.append(f"{_name(room, actor_id)} purged {target.name}.")
    if target.role == Role.MASTERMIND:
        _finish(room, Team.AGENCY, WinReason.MASTERMIND_PURGED, lines)


PowerHandler = Callable[[Room, str, Optional[str], random.Random, Lines], None]

POWER_HANDLERS: Dict[SyndicatePower, PowerHandler] = {
    SyndicatePower.INVESTIGATE: _investigate,
    SyndicatePower.SURVEILLANCE: _surveillance,
    SyndicatePower.SPECIAL_ELECTION: _special_election,
    SyndicatePower.PURGE: _purge,
}


def resolve_power(
    room: Room,
    actor_id: str,
    power: SyndicatePower,
    target_id: Optional[str],
    rng: random.Random,
) -> Lines:
    _require_manual_enactment(room)
    if actor_id != room.director_id or not room.is_alive(actor_id):
        raise Unauthorized("Only the director uses powers.")
    power = SyndicatePower(power)
    if power in room.syndicate_powers_resolved:
        raise AlreadyResolved(f"{power.value} was already used.")
    if pending_power(room) != power:
        raise InvalidPhase(f"{power.value} is not the pending power.")

    lines: Lines = []
    POWER_HANDLERS[power](room, actor_id, target_id, rng, lines)
    room.syndicate_powers_resolved.append(power)

    if not room.finished and pending_power(room) is None:
        _begin_nomination(room, lines)
    return lines


# -- owner overrides --------------------------------------------------------

def _dissolve_government(room: Room, lines: Lines) -> None:
    """Drop an elected government whose member was eliminated mid-round."""
    room.policy_discard = deck.discard(room.policy_discard, *room.director_hand, *room.deputy_hand)
    for power in powers.pending_powers(
        room.syndicate_policies_enacted, room.syndicate_powers_resolved, len(room.players)
    ):
        room.syndicate_powers_resolved.append(power)
    lines.append("The government fell before finishing its round.")
    _begin_nomination(room, lines)


def toggle_alive(room: Room, actor_id: str, player_id: str) -> Lines:
    _require_owner(room, actor_id)
    _require_in_progress(room)
    target = room.player(player_id)
    if not target:
        raise InvalidTarget(f"{player_id} is not in room {room.code}.")

    target.alive = not target.alive
    lines = [f"{target.name} is now {'alive' if target.alive else 'eliminated'}."]
    if target.alive:
        return lines

    room.vote_tallies.pop(target.id, None)
    if room.phase == Phase.VOTING:
        if target.id in (room.director_candidate_id, room.deputy_candidate_id):
            _fail_election(room, lines)
        elif room.vote_tallies:
            _resolve_votes(room, lines)
    elif room.phase == Phase.NOMINATION and room.director_candidate_id == target.id:
        room.director_candidate_id = next_alive_after(room, target.id)
        lines.append(f"{_name(room, room.director_candidate_id)} is the director candidate.")
    elif room.phase == Phase.ENACTMENT and not room.auto_enactment:
        # A dead deputy only matters while a policy is still to be enacted.
        if target.id == room.director_id or (target.id == room.deputy_id and pending_power(room) is None):
            _dissolve_government(room, lines)
    return lines


def end_game(room: Room, actor_id: str) -> Lines:
    _require_owner(room, actor_id)
    if room.finished:
        raise InvalidPhase(f"Room {room.code} is already finished.")
    lines: Lines = []
    _finish(room, None, WinReason.ENDED_BY_OWNER, lines)
    return lines
