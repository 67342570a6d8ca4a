# src/common/rules.py

from typing import Optional

from .cards import Card
from .constants import STAKE_LADDER

# Strength per rank, strongest first: 3 > 2 > A > K > J > Q > 7 > 6 > 5 > 4
RANK_STRENGTH = {
    "3": 10,
    "2": 9,
    "A": 8,
    "K": 7,
    "J": 6,
    "Q": 5,
    "7": 4,
    "6": 3,
    "5": 2,
    "4": 1,
}


def compare_rank(a: Card, b: Card) -> int:
    # > 0 when a beats b; suit never matters
    return RANK_STRENGTH[a.rank] - RANK_STRENGTH[b.rank]


def next_stake(value: int) -> Optional[int]:
    """Ladder value above `value`, or None once the ladder is exhausted."""
    higher = [v for v in STAKE_LADDER if v > value]
    return higher[0] if higher else None


def quit_payout(accepted: int) -> int:
    # fleeing before anything was accepted still concedes the base point
    return max(accepted, 1)
