import logging
import threading

import pytest

from conftest import c, rig
from src.common.events import (
    HandDealt, OpponentLeft, TrickResult, TrucoQuit, TrucoRaised, TrucoRequested,
    WaitingForOpponent, round_wins_of,
)
from src.common.protocol import Join, PlayCard, RequestTruco, RespondTruco
from src.server.match import Phase
from src.server.registry import Matchmaker, NoSuchRoom, SessionRegistry, seeded_match_factory
from src.server.truco import InvalidMove


@pytest.fixture
def mm(recorder, timers):
    registry = SessionRegistry(seeded_match_factory(42, timer_factory=timers))
    return Matchmaker(registry, recorder)


def test_first_join_waits(mm, recorder):
    match = mm.join(1)
    assert recorder.events == [(1, WaitingForOpponent())]
    assert match.is_open
    assert mm.registry.room_id_of(1) == match.room_id


def test_second_join_starts_the_game(mm, recorder):
    first = mm.join(1)
    second = mm.join(2)
    assert first is second
    assert len(mm.registry) == 1

    dealt = recorder.of_type(HandDealt)
    assert [pid for pid, _ in dealt] == [1, 2]
    assert all(len(e.cards) == 3 and e.first_to_act == 1 for _, e in dealt)
    assert not set(dealt[0][1].cards) & set(dealt[1][1].cards)


def test_pairs_fill_in_arrival_order(mm):
    a = mm.join(1)
    mm.join(2)
    b = mm.join(3)
    mm.join(4)
    assert a is not b
    assert a.player_ids == [1, 2]
    assert b.player_ids == [3, 4]


def test_earliest_open_room_is_filled_first(mm, recorder):
    older = mm.registry.create(recorder)
    older.seat(10)
    mm.registry.bind(10, older)
    newer = mm.registry.create(recorder)
    newer.seat(11)
    mm.registry.bind(11, newer)

    assert mm.join(12) is older
    assert newer.is_open


def test_join_twice_is_rejected(mm):
    mm.join(1)
    with pytest.raises(InvalidMove):
        mm.join(1)


def test_leave_tears_down_the_room(mm, recorder):
    match = mm.join(1)
    mm.join(2)
    recorder.clear()
    mm.leave(1)

    assert recorder.events == [(2, OpponentLeft())]
    assert len(mm.registry) == 0
    assert mm.registry.room_id_of(1) is None
    assert mm.registry.room_id_of(2) is None
    assert match.phase == Phase.CLOSED


def test_leave_while_waiting(mm, recorder):
    mm.join(1)
    recorder.clear()
    mm.leave(1)
    assert recorder.events == []
    assert len(mm.registry) == 0


def test_leave_unknown_player_is_ignored(mm):
    mm.leave(99)
    assert len(mm.registry) == 0


def test_leave_cancels_pending_deal(mm, recorder, timers):
    match = mm.join(1)
    mm.join(2)
    rig(match, {1: ["3♠", "2♠", "A♠"], 2: ["4♥", "5♥", "6♥"]})
    for card_1, card_2 in [("3♠", "4♥"), ("2♠", "5♥"), ("A♠", "6♥")]:
        mm.play_card(1, c(card_1))
        mm.play_card(2, c(card_2))
    assert match.phase == Phase.BETWEEN_HANDS

    mm.leave(2)
    recorder.clear()
    timers.last.fire()
    assert timers.last.cancelled
    assert recorder.events == []


def test_actions_after_teardown_hit_no_room(mm, recorder):
    mm.join(1)
    mm.join(2)
    mm.leave(2)
    with pytest.raises(NoSuchRoom):
        mm.request_truco(1)
    with pytest.raises(NoSuchRoom):
        mm.play_card(1, c("3♠"))


def test_dispatch_drops_rejected_actions(mm, recorder, caplog):
    mm.dispatch(1, Join())
    mm.dispatch(2, Join())
    recorder.clear()

    with caplog.at_level(logging.WARNING, logger="server.registry"):
        mm.dispatch(2, PlayCard(c("3♠")))      # not 2's turn
        mm.dispatch(1, RespondTruco("accept"))  # nothing pending
        mm.dispatch(7, RequestTruco())          # no room
        mm.dispatch(1, Join())                  # already seated

    assert recorder.events == []
    assert len([r for r in caplog.records if r.name == "server.registry"]) == 4
    assert "NoSuchRoom" in caplog.text


def test_join_trick_truco_raise_quit(mm, recorder):
    match = mm.join(1)
    mm.join(2)
    rig(match, {1: ["3♠", "2♠", "A♠"], 2: ["4♥", "5♥", "6♥"]})
    recorder.clear()

    mm.dispatch(1, PlayCard(c("3♠")))
    mm.dispatch(2, PlayCard(c("4♥")))
    _, trick = recorder.of_type(TrickResult)[0]
    assert trick.winner == 1
    assert round_wins_of(trick.standings) == {1: 1, 2: 0}
    assert match.turn == 1

    mm.dispatch(1, RequestTruco())
    assert recorder.to(2)[-1] == TrucoRequested(requested_by=1, proposed_value=3)

    mm.dispatch(2, RespondTruco("raise"))
    assert recorder.to(1)[-1] == TrucoRaised(raised_by=2, proposed_value=6)
    assert match.truco.requested_by == 2

    recorder.clear()
    mm.dispatch(1, RespondTruco("quit"))
    _, quit_event = recorder.of_type(TrucoQuit)[0]
    assert quit_event.points_awarded == 1
    assert match.scores == {1: 0, 2: 1}
    assert len(recorder.of_type(HandDealt)) == 2
    assert match.round_wins == {1: 0, 2: 0}
    assert match.current_hand_value == 1


class StallingSink:
    """Records events but hangs on delivery to one player until released."""

    def __init__(self, recorder, stalled_player: int) -> None:
        self.recorder = recorder
        self.stalled_player = stalled_player
        self.entered = threading.Event()
        self.release = threading.Event()

    def __call__(self, player_id, event) -> None:
        if player_id == self.stalled_player:
            self.entered.set()
            self.release.wait(5)
        self.recorder(player_id, event)


def test_stalled_deal_in_one_room_does_not_block_another(recorder, timers):
    sink = StallingSink(recorder, stalled_player=4)
    mm = Matchmaker(SessionRegistry(seeded_match_factory(42, timer_factory=timers)), sink)
    first = mm.join(1)
    mm.join(2)
    rig(first, {1: ["3♠", "2♠", "A♠"], 2: ["4♥", "5♥", "6♥"]})
    mm.join(3)

    joining = threading.Thread(target=mm.join, args=(4,), daemon=True)
    joining.start()
    try:
        assert sink.entered.wait(2)
        playing = threading.Thread(target=mm.play_card, args=(1, c("3♠")), daemon=True)
        playing.start()
        playing.join(timeout=1)
        assert not playing.is_alive()
        assert first.cards_in_play == {1: c("3♠")}
    finally:
        sink.release.set()
        joining.join(timeout=5)


def test_leave_closes_the_match_before_releasing_the_registry(mm):
    match = mm.join(1)
    mm.join(2)
    registry_free = []
    close = match.close

    def closing():
        def try_lock():
            got = mm.registry.lock.acquire(blocking=False)
            registry_free.append(got)
            if got:
                mm.registry.lock.release()

        t = threading.Thread(target=try_lock)
        t.start()
        t.join()
        close()

    match.close = closing
    mm.leave(2)
    assert registry_free == [False]
    assert match.phase == Phase.CLOSED
