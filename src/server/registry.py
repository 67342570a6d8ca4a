# src/server/registry.py

import itertools
import random
import threading
from typing import Callable, Dict, Optional

from src.common.events import Notify, OpponentLeft, WaitingForOpponent
from src.common.logging_utils import get_logger
from src.common.protocol import Action, Join, PlayCard, RequestTruco, RespondTruco
from src.common.cards import Card
from src.server.match import Match
from src.server.truco import GameError, InvalidMove

log = get_logger("server.registry")

MatchFactory = Callable[[str, Notify], Match]


class NoSuchRoom(GameError):
    """The participant is not seated in any live room."""
    pass


class SessionRegistry:
    """
    Live rooms: room id -> Match, plus participant id -> room id.
    Rooms iterate in creation order.
    """

    def __init__(self, match_factory: MatchFactory = Match) -> None:
        self._rooms: Dict[str, Match] = {}
        self._room_of: Dict[int, str] = {}
        self._ids = itertools.count(1)
        self._match_factory = match_factory
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._rooms)

    def create(self, notify: Notify) -> Match:
        with self.lock:
            room_id = f"room-{next(self._ids)}"
            match = self._match_factory(room_id, notify)
            self._rooms[room_id] = match
            log.info(f"Created {room_id}")
            return match

    def bind(self, player_id: int, match: Match) -> None:
        with self.lock:
            self._room_of[player_id] = match.room_id

    def room_id_of(self, player_id: int) -> Optional[str]:
        return self._room_of.get(player_id)

    def match_of(self, player_id: int) -> Match:
        with self.lock:
            room_id = self._room_of.get(player_id)
            match = self._rooms.get(room_id) if room_id is not None else None
        if match is None:
            raise NoSuchRoom(f"player {player_id} has no room")
        return match

    def first_open(self) -> Optional[Match]:
        with self.lock:
            for match in self._rooms.values():
                if match.is_open:
                    return match
            return None

    def destroy(self, room_id: str) -> Optional[Match]:
        with self.lock:
            match = self._rooms.pop(room_id, None)
            if match is None:
                return None
            for pid in match.player_ids:
                self._room_of.pop(pid, None)
            log.info(f"Destroyed {room_id}")
            return match


class Matchmaker:
    """
    Seats participants and routes their actions to the owning Match.
    `notify` is the delivery sink shared by every Match it creates.
    """

    def __init__(self, registry: SessionRegistry, notify: Notify) -> None:
        self.registry = registry
        self.notify = notify

    def join(self, player_id: int) -> Match:
        with self.registry.lock:
            if self.registry.room_id_of(player_id) is not None:
                raise InvalidMove(f"player {player_id} is already seated")

            match = self.registry.first_open()
            starting = match is not None
            if match is None:
                match = self.registry.create(self.notify)
            match.seat(player_id)
            self.registry.bind(player_id, match)

        # dealing sends to both peers; only the room's own lock is held
        if starting:
            log.info(f"Player {player_id} joins {match.room_id}, starting game")
            match.start_hand()
            return match

        log.info(f"Player {player_id} waits in {match.room_id}")
        self.notify(player_id, WaitingForOpponent())
        return match

    def leave(self, player_id: int) -> None:
        with self.registry.lock:
            room_id = self.registry.room_id_of(player_id)
            if room_id is None:
                log.debug(f"Player {player_id} left without a room")
                return
            match = self.registry.destroy(room_id)
            if match is None:
                return
            match.close()

        opponent = match.opponent_of(player_id)
        log.info(f"Player {player_id} left {room_id}")
        if opponent is not None:
            self.notify(opponent, OpponentLeft())

    def play_card(self, player_id: int, card: Card) -> None:
        self.registry.match_of(player_id).play_card(player_id, card)

    def request_truco(self, player_id: int) -> None:
        self.registry.match_of(player_id).request_truco(player_id)

    def respond_truco(self, player_id: int, response: str) -> None:
        self.registry.match_of(player_id).respond_truco(player_id, response)

    def dispatch(self, player_id: int, action: Action) -> None:
        """Apply one inbound action; rejected actions are logged and dropped."""
        try:
            if isinstance(action, Join):
                self.join(player_id)
            elif isinstance(action, PlayCard):
                self.play_card(player_id, action.card)
            elif isinstance(action, RequestTruco):
                self.request_truco(player_id)
            elif isinstance(action, RespondTruco):
                self.respond_truco(player_id, action.response)
            else:
                raise InvalidMove(f"unknown action {action!r}")
        except GameError as e:
            log.warning(f"Dropped {type(action).__name__} from player {player_id}: {type(e).__name__}: {e}")


def seeded_match_factory(seed: int, **kwargs) -> MatchFactory:
    """Match factory with a reproducible shuffle, one Random shared by all rooms."""
    rng = random.Random(seed)

    def factory(room_id: str, notify: Notify) -> Match:
        return Match(room_id, notify, rng=rng, **kwargs)

    return factory
