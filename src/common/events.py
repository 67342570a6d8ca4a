# src/common/events.py
"""
Structured outbound events produced by a Match.

Delivery is the transport's job: a Match hands every event to a sink
`notify(recipient_id, event)`, one call per recipient.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Tuple, Union

from .cards import Card


@dataclass(frozen=True)
class Standing:
    player_id: int
    score: int
    round_wins: int


Standings = Tuple[Standing, ...]


def scores_of(standings: Standings) -> Dict[int, int]:
    return {s.player_id: s.score for s in standings}


def round_wins_of(standings: Standings) -> Dict[int, int]:
    return {s.player_id: s.round_wins for s in standings}


@dataclass(frozen=True)
class WaitingForOpponent:
    pass


@dataclass(frozen=True)
class HandDealt:
    first_to_act: int
    cards: Tuple[Card, ...]    # recipient's own cards only
    standings: Standings


@dataclass(frozen=True)
class CardPlayed:
    player_id: int
    card: Card


@dataclass(frozen=True)
class TrickResult:
    winner: int
    standings: Standings


@dataclass(frozen=True)
class HandComplete:
    winner: int
    standings: Standings


@dataclass(frozen=True)
class ChangeTurn:
    current_player: int


@dataclass(frozen=True)
class TrucoRequested:
    requested_by: int
    proposed_value: int


@dataclass(frozen=True)
class TrucoAccepted:
    value: int


@dataclass(frozen=True)
class TrucoRaised:
    raised_by: int
    proposed_value: int


@dataclass(frozen=True)
class TrucoQuit:
    quit_by: int
    points_awarded: int
    standings: Standings


@dataclass(frozen=True)
class OpponentLeft:
    pass


Event = Union[
    WaitingForOpponent, HandDealt, CardPlayed, TrickResult, HandComplete,
    ChangeTurn, TrucoRequested, TrucoAccepted, TrucoRaised, TrucoQuit,
    OpponentLeft,
]

Notify = Callable[[int, Event], None]
