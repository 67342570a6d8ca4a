# src/common/cards.py

import random
from dataclasses import dataclass
from typing import List, Optional

from .constants import SUITS, RANKS, HAND_SIZE


@dataclass(frozen=True)
class Card:
    suit: str  # "♠","♥","♣","♦"
    rank: str  # "4".."7","Q","J","K","A","2","3"

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"


def build_deck() -> List[Card]:
    return [Card(s, r) for s in SUITS for r in RANKS]


def shuffle(cards: List[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """
    Fisher-Yates in place: for i from last down to 1, swap with j in [0, i].
    """
    rng = rng or random
    for i in range(len(cards) - 1, 0, -1):
        j = rng.randint(0, i)
        cards[i], cards[j] = cards[j], cards[i]
    return cards


def build_shuffled_deck(rng: Optional[random.Random] = None) -> List[Card]:
    return shuffle(build_deck(), rng)


class Deck:
    """One hand's worth of cards. Never reshuffled; a new hand builds a new Deck."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._cards: List[Card] = build_shuffled_deck(rng)

    def __len__(self) -> int:
        return len(self._cards)

    def deal(self, n: int = HAND_SIZE) -> List[Card]:
        if n > len(self._cards):
            raise ValueError(f"Cannot deal {n} cards, only {len(self._cards)} left")
        dealt, self._cards = self._cards[:n], self._cards[n:]
        return dealt
