import random
from typing import Dict, List, Tuple

import pytest

from src.common.cards import Card
from src.common.events import Event
from src.server.match import Match


class Recorder:
    """Event sink that keeps (recipient, event) pairs in delivery order."""

    def __init__(self) -> None:
        self.events: List[Tuple[int, Event]] = []

    def __call__(self, player_id: int, event: Event) -> None:
        self.events.append((player_id, event))

    def of_type(self, cls) -> List[Tuple[int, Event]]:
        return [(pid, e) for pid, e in self.events if isinstance(e, cls)]

    def to(self, player_id: int) -> List[Event]:
        return [e for pid, e in self.events if pid == player_id]

    def clear(self) -> None:
        self.events.clear()


class ManualTimer:
    def __init__(self, delay: float, fn) -> None:
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.fn()


class ManualTimers:
    def __init__(self) -> None:
        self.created: List[ManualTimer] = []

    def __call__(self, delay: float, fn) -> ManualTimer:
        t = ManualTimer(delay, fn)
        self.created.append(t)
        return t

    @property
    def last(self) -> ManualTimer:
        return self.created[-1]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def match(recorder, timers) -> Match:
    """Two seated players (1 at seat 0, 2 at seat 1), first hand dealt."""
    m = Match("room-test", recorder, rng=random.Random(1234), timer_factory=timers)
    m.seat(1)
    m.seat(2)
    m.start_hand()
    recorder.clear()
    return m


def c(text: str) -> Card:
    """c("3♠") -> Card("♠", "3")"""
    return Card(text[-1], text[:-1])


def rig(m: Match, hands: Dict[int, List[str]]) -> None:
    for pid, cards in hands.items():
        m.player(pid).hand = [c(t) for t in cards]
