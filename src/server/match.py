# src/server/match.py

import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from src.common.cards import Card, Deck
from src.common.constants import (
    BASE_HAND_VALUE, NEXT_HAND_DELAY,
    RESPONSE_ACCEPT, RESPONSE_RAISE, RESPONSE_QUIT,
)
from src.common.events import (
    Event, Notify, Standing, Standings,
    HandDealt, CardPlayed, TrickResult, HandComplete, ChangeTurn,
    TrucoRequested, TrucoAccepted, TrucoRaised, TrucoQuit,
)
from src.common.logging_utils import get_logger
from src.common.rules import compare_rank
from src.server import truco
from src.server.truco import AwaitingResponse, Idle, InvalidMove, TrucoState

log = get_logger("server.match")

TimerFactory = Callable[[float, Callable[[], None]], Any]


class Phase(Enum):
    WAITING = "waiting"              # one seat filled
    PLAYING = "playing"
    BETWEEN_HANDS = "between_hands"  # hand scored, next deal scheduled
    CLOSED = "closed"


@dataclass
class Player:
    player_id: int
    seat: int
    hand: List[Card] = field(default_factory=list)


def _daemon_timer(delay: float, fn: Callable[[], None]) -> threading.Timer:
    t = threading.Timer(delay, fn)
    t.daemon = True
    return t


class Match:
    """
    One two-player Truco session.

    Every mutation runs under `self.lock`, so the actions of both seats and
    the delayed deal of the next hand are applied one at a time.
    Rejected actions raise InvalidMove before touching any state.
    """

    def __init__(
        self,
        room_id: str,
        notify: Notify,
        rng: Optional[random.Random] = None,
        next_hand_delay: float = NEXT_HAND_DELAY,
        timer_factory: TimerFactory = _daemon_timer,
    ) -> None:
        self.room_id = room_id
        self.players: List[Player] = []
        self.scores: Dict[int, int] = {}
        self.round_wins: Dict[int, int] = {}
        self.cards_in_play: Dict[int, Card] = {}  # insertion order is play order
        self.current_hand_value = BASE_HAND_VALUE
        self.truco: TrucoState = Idle()
        self.turn: Optional[int] = None
        self.phase = Phase.WAITING
        self.hands_played = 0
        self.lock = threading.RLock()

        self._notify = notify
        self._rng = rng
        self._next_hand_delay = next_hand_delay
        self._timer_factory = timer_factory
        self._next_hand: Optional[Any] = None

    # -------------------------
    # Seats
    # -------------------------
    @property
    def is_open(self) -> bool:
        return self.phase == Phase.WAITING and len(self.players) == 1

    @property
    def player_ids(self) -> List[int]:
        return [p.player_id for p in self.players]

    def player(self, player_id: int) -> Player:
        for p in self.players:
            if p.player_id == player_id:
                return p
        raise InvalidMove(f"player {player_id} is not seated in room {self.room_id}")

    def opponent_of(self, player_id: int) -> Optional[int]:
        for p in self.players:
            if p.player_id != player_id:
                return p.player_id
        return None

    def seat(self, player_id: int) -> int:
        with self.lock:
            if self.phase != Phase.WAITING or len(self.players) >= 2:
                raise InvalidMove(f"room {self.room_id} is not accepting players")
            if player_id in self.player_ids:
                raise InvalidMove(f"player {player_id} already seated")
            seat = len(self.players)
            self.players.append(Player(player_id, seat))
            self.scores[player_id] = 0
            self.round_wins[player_id] = 0
            log.info(f"Room {self.room_id}: player {player_id} seated at {seat}")
            return seat

    def standings(self) -> Standings:
        return tuple(
            Standing(p.player_id, self.scores[p.player_id], self.round_wins[p.player_id])
            for p in self.players
        )

    def _broadcast(self, event: Event) -> None:
        for p in self.players:
            self._notify(p.player_id, event)

    # -------------------------
    # Deal
    # -------------------------
    def start_hand(self) -> None:
        with self.lock:
            if self.phase == Phase.CLOSED:
                raise InvalidMove(f"room {self.room_id} is closed")
            if len(self.players) != 2:
                raise InvalidMove("a hand needs two seated players")
            self._cancel_next_hand()

            self.cards_in_play = {}
            self.round_wins = {pid: 0 for pid in self.player_ids}
            self.truco = Idle()
            self.current_hand_value = BASE_HAND_VALUE

            deck = Deck(self._rng)
            for p in self.players:  # seat 0 first
                p.hand = deck.deal()

            first = self.players[0].player_id
            self.turn = first
            self.phase = Phase.PLAYING
            self.hands_played += 1
            log.info(f"Room {self.room_id}: hand #{self.hands_played} dealt, player {first} leads")

            standings = self.standings()
            for p in self.players:
                self._notify(p.player_id, HandDealt(first, tuple(p.hand), standings))

    def _schedule_next_hand(self) -> None:
        self._next_hand = self._timer_factory(self._next_hand_delay, self._deal_scheduled_hand)
        self._next_hand.start()

    def _cancel_next_hand(self) -> None:
        if self._next_hand is not None:
            self._next_hand.cancel()
            self._next_hand = None

    def _deal_scheduled_hand(self) -> None:
        with self.lock:
            if self.phase != Phase.BETWEEN_HANDS:
                log.debug(f"Room {self.room_id}: scheduled deal dropped ({self.phase.value})")
                return
            self._next_hand = None
            self.start_hand()

    def close(self) -> None:
        with self.lock:
            self._cancel_next_hand()
            self.phase = Phase.CLOSED
            log.info(f"Room {self.room_id}: closed after {self.hands_played} hand(s), scores={self.scores}")

    # -------------------------
    # Tricks
    # -------------------------
    def _require_playing(self, player_id: int) -> Player:
        player = self.player(player_id)
        if self.phase != Phase.PLAYING:
            raise InvalidMove(f"room {self.room_id} is {self.phase.value}")
        return player

    def play_card(self, player_id: int, card: Card) -> None:
        with self.lock:
            player = self._require_playing(player_id)
            if isinstance(self.truco, AwaitingResponse):
                raise InvalidMove("truco is waiting for an answer")
            if player_id != self.turn:
                raise InvalidMove(f"not player {player_id}'s turn")
            if card not in player.hand:
                raise InvalidMove(f"player {player_id} does not hold {card}")

            player.hand.remove(card)
            self.cards_in_play[player_id] = card
            self.turn = self.opponent_of(player_id)
            log.info(f"Room {self.room_id}: player {player_id} played {card}")
            self._broadcast(CardPlayed(player_id, card))

            if len(self.cards_in_play) < 2:
                self._broadcast(ChangeTurn(self.turn))
                return
            self._resolve_trick()

    def _resolve_trick(self) -> None:
        (lead_id, lead), (reply_id, reply) = self.cards_in_play.items()
        # equal ranks go to the card played first
        winner = reply_id if compare_rank(reply, lead) > 0 else lead_id

        self.round_wins[winner] += 1
        self.cards_in_play = {}
        log.info(f"Room {self.room_id}: trick {lead} vs {reply} won by {winner}, round_wins={self.round_wins}")
        self._broadcast(TrickResult(winner, self.standings()))

        if all(not p.hand for p in self.players):
            self._complete_hand()
            return
        self.turn = winner
        self._broadcast(ChangeTurn(winner))

    def _complete_hand(self) -> None:
        a, b = self.players
        winner = a if self.round_wins[a.player_id] >= self.round_wins[b.player_id] else b
        self.scores[winner.player_id] += self.current_hand_value

        self.truco = Idle()
        self.turn = None
        self.phase = Phase.BETWEEN_HANDS
        log.info(
            f"Room {self.room_id}: hand won by {winner.player_id} "
            f"for {self.current_hand_value} point(s), scores={self.scores}"
        )
        self._broadcast(HandComplete(winner.player_id, self.standings()))
        self._schedule_next_hand()

    # -------------------------
    # Truco
    # -------------------------
    def request_truco(self, player_id: int) -> None:
        with self.lock:
            self._require_playing(player_id)
            pending = truco.request(self.truco, player_id)
            self.truco = pending
            log.info(f"Room {self.room_id}: player {player_id} asks truco for {pending.proposed}")
            self._broadcast(TrucoRequested(player_id, pending.proposed))

    def respond_truco(self, player_id: int, response: str) -> None:
        with self.lock:
            self._require_playing(player_id)
            if response == RESPONSE_ACCEPT:
                accepted = truco.accept(self.truco, player_id)
                self.truco = accepted
                self.current_hand_value = accepted.accepted
                log.info(f"Room {self.room_id}: player {player_id} accepts, hand worth {accepted.accepted}")
                self._broadcast(TrucoAccepted(accepted.accepted))
            elif response == RESPONSE_RAISE:
                raised = truco.raise_(self.truco, player_id)
                self.truco = raised
                log.info(f"Room {self.room_id}: player {player_id} raises to {raised.proposed}")
                self._broadcast(TrucoRaised(player_id, raised.proposed))
            elif response == RESPONSE_QUIT:
                requester, points = truco.quit_(self.truco, player_id)
                self.scores[requester] += points
                log.info(f"Room {self.room_id}: player {player_id} runs, {requester} takes {points} point(s)")
                self._broadcast(TrucoQuit(player_id, points, self.standings()))
                self.start_hand()
            else:
                raise InvalidMove(f"unknown truco response: {response!r}")
