from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import SyndicatePower

LARGE_GROUP = 7

STANDARD_THRESHOLDS: Dict[SyndicatePower, int] = {
    SyndicatePower.INVESTIGATE: 1,
    SyndicatePower.SURVEILLANCE: 2,
    SyndicatePower.SPECIAL_ELECTION: 3,
    SyndicatePower.PURGE: 4,
}

# Larger tables unlock each power one policy later.
DELAYED_THRESHOLDS: Dict[SyndicatePower, int] = {
    power: threshold + 1 for power, threshold in STANDARD_THRESHOLDS.items()
}


def thresholds(player_count: int) -> Dict[SyndicatePower, int]:
    table = DELAYED_THRESHOLDS if player_count >= LARGE_GROUP else STANDARD_THRESHOLDS
    return dict(table)


def _by_threshold(table: Dict[SyndicatePower, int]) -> List[SyndicatePower]:
    return sorted(table, key=lambda power: table[power])


def pending_powers(
    enacted_count: int,
    resolved: Iterable[SyndicatePower],
    player_count: int,
) -> List[SyndicatePower]:
    """Unlocked powers not used yet, lowest threshold first."""
    done = set(resolved)
    table = thresholds(player_count)
    return [p for p in _by_threshold(table) if table[p] <= enacted_count and p not in done]


def next_power(
    enacted_count: int,
    resolved: Iterable[SyndicatePower],
    player_count: int,
) -> Optional[SyndicatePower]:
    pending = pending_powers(enacted_count, resolved, player_count)
    return pending[0] if pending else None


def crossed_powers(before: int, after: int, player_count: int) -> List[SyndicatePower]:
    table = thresholds(player_count)
    return [p for p in _by_threshold(table) if before < table[p] <= after]
