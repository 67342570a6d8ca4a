# src/server/truco.py
"""
Truco bet escalation, as plain state transitions.

A hand is either Idle (no bet in flight) or AwaitingResponse (one player
proposed a stake and the other must answer). `accepted` is the last stake
both players agreed on, 0 when nobody accepted anything yet.
"""

from dataclasses import dataclass
from typing import Tuple, Union

from src.common.rules import next_stake, quit_payout
from src.common.constants import MAX_STAKE


class GameError(ValueError):
    """Base class for rejected game actions."""
    pass


class InvalidMove(GameError):
    """Action not allowed in the current state (out of turn, card not held, no bet pending...)."""
    pass


@dataclass(frozen=True)
class Idle:
    accepted: int = 0


@dataclass(frozen=True)
class AwaitingResponse:
    accepted: int
    proposed: int
    requested_by: int


TrucoState = Union[Idle, AwaitingResponse]


def request(state: TrucoState, player_id: int) -> AwaitingResponse:
    if isinstance(state, AwaitingResponse):
        raise InvalidMove("truco already waiting for an answer")
    proposed = next_stake(state.accepted)
    if proposed is None:
        raise InvalidMove(f"stake already at {MAX_STAKE}")
    return AwaitingResponse(state.accepted, proposed, player_id)


def _pending(state: TrucoState, player_id: int) -> AwaitingResponse:
    if not isinstance(state, AwaitingResponse):
        raise InvalidMove("no truco request pending")
    if player_id == state.requested_by:
        raise InvalidMove("a player cannot answer their own truco")
    return state


def accept(state: TrucoState, player_id: int) -> Idle:
    # one rung above the last accepted stake, even after raises
    pending = _pending(state, player_id)
    return Idle(accepted=next_stake(pending.accepted) or MAX_STAKE)


def raise_(state: TrucoState, player_id: int) -> AwaitingResponse:
    pending = _pending(state, player_id)
    proposed = next_stake(pending.proposed)
    if proposed is None:
        raise InvalidMove(f"cannot raise past {MAX_STAKE}")
    return AwaitingResponse(pending.accepted, proposed, player_id)


def quit_(state: TrucoState, player_id: int) -> Tuple[int, int]:
    """Returns (requester, points owed to them) when `player_id` runs from the bet."""
    pending = _pending(state, player_id)
    return pending.requested_by, quit_payout(pending.accepted)
