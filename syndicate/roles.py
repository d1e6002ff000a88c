from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .errors import ConfigurationError
from .models import MAX_PLAYERS, MIN_PLAYERS, Role, Team

# player count -> (agency, syndicate agents); every table has one mastermind
ROLE_DISTRIBUTION: Dict[int, Tuple[int, int]] = {
    5: (3, 1),
    6: (4, 1),
    7: (4, 2),
    8: (5, 2),
    9: (6, 2),
    10: (6, 3),
}


@dataclass
class Assignment:
    player_id: str
    role: Role
    team: Team
    known_teammate_ids: List[str] = field(default_factory=list)


def team_for(role: Role) -> Team:
    return Team.AGENCY if role == Role.AGENCY else Team.SYNDICATE


def build_role_list(player_count: int) -> List[Role]:
    if player_count not in ROLE_DISTRIBUTION:
        raise ConfigurationError(
            f"Need between {MIN_PLAYERS} and {MAX_PLAYERS} players, got {player_count}."
        )
    agency, agents = ROLE_DISTRIBUTION[player_count]
    return [Role.MASTERMIND] + [Role.SYNDICATE_AGENT] * agents + [Role.AGENCY] * agency


def assign(
    player_ids: Sequence[str],
    rng: random.Random,
    mastermind_knows_team_max: int = 6,
) -> List[Assignment]:
    """Deal a shuffled role list to the roster and wire teammate knowledge.

    Agents see each other but never the mastermind. The mastermind sees the
    agents only in games of ``mastermind_knows_team_max`` players or fewer.
    """
    roles = build_role_list(len(player_ids))
    rng.shuffle(roles)

    assignments = [
        Assignment(player_id=pid, role=role, team=team_for(role))
        for pid, role in zip(player_ids, roles)
    ]

    agent_ids = [a.player_id for a in assignments if a.role == Role.SYNDICATE_AGENT]
    mastermind_sees_agents = len(player_ids) <= mastermind_knows_team_max

    for a in assignments:
        if a.role == Role.MASTERMIND:
            a.known_teammate_ids = list(agent_ids) if mastermind_sees_agents else []
        elif a.role == Role.SYNDICATE_AGENT:
            a.known_teammate_ids = [pid for pid in agent_ids if pid != a.player_id]
    return assignments
