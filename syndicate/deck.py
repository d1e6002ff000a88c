from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .errors import InsufficientCards
from .models import AGENCY_CARDS, SYNDICATE_CARDS, PolicyCard


@dataclass(frozen=True)
class Draw:
    cards: List[PolicyCard]
    deck: List[PolicyCard]
    discard: List[PolicyCard]


def shuffle(items: Iterable[PolicyCard], rng: random.Random) -> List[PolicyCard]:
    cards = list(items)
    rng.shuffle(cards)
    return cards


def build_deck(rng: random.Random) -> List[PolicyCard]:
    cards = [PolicyCard.SYNDICATE] * SYNDICATE_CARDS + [PolicyCard.AGENCY] * AGENCY_CARDS
    return shuffle(cards, rng)


def _refill(deck: Sequence[PolicyCard], discard: Sequence[PolicyCard], n: int, rng: random.Random) -> Draw:
    if len(deck) >= n:
        return Draw(cards=[], deck=list(deck), discard=list(discard))
    return Draw(cards=[], deck=shuffle([*deck, *discard], rng), discard=[])


def draw(deck: Sequence[PolicyCard], discard: Sequence[PolicyCard], n: int, rng: random.Random) -> Draw:
    """Take ``n`` cards off the top, recycling the discard pile when short.

    Raises InsufficientCards rather than handing out fewer than ``n``.
    """
    pool = _refill(deck, discard, n, rng)
    if len(pool.deck) < n:
        raise InsufficientCards(f"Need {n} cards, only {len(pool.deck)} left in deck and discard.")
    return Draw(cards=pool.deck[:n], deck=pool.deck[n:], discard=pool.discard)


def peek(deck: Sequence[PolicyCard], discard: Sequence[PolicyCard], n: int) -> List[PolicyCard]:
    """Read the next ``n`` cards without taking or reordering anything.

    A short deck is read on into the discard pile in its current order.
    """
    return [*deck, *discard][:n]


def discard(pile: Sequence[PolicyCard], *cards: PolicyCard) -> List[PolicyCard]:
    return [*pile, *cards]
