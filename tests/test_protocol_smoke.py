import struct

import pytest

from src.common.protocol import *
from src.common.constants import *
from src.common.cards import Card
from src.common.events import *


def test_join_frame_is_header_only():
    b = build_action(Join())
    assert len(b) == HEADER_LEN
    assert parse_frame(b) == (TYPE_JOIN, b"")


def test_play_card_roundtrip():
    b = build_action(PlayCard(Card("♦", "A")))
    msg_type, body = parse_frame(b)
    assert msg_type == TYPE_PLAY_CARD
    assert body == bytes([RANK_TO_CODE["A"], SUIT_TO_CODE["♦"]])
    assert parse_action(msg_type, body) == PlayCard(Card("♦", "A"))


def test_respond_truco_roundtrip():
    b = build_action(RespondTruco("raise"))
    assert parse_action(*parse_frame(b)) == RespondTruco("raise")


def test_hand_dealt_roundtrip():
    event = HandDealt(
        first_to_act=7,
        cards=(Card("♠", "3"), Card("♥", "Q"), Card("♣", "4")),
        standings=(Standing(7, 12, 0), Standing(8, 3, 0)),
    )
    b = build_event(event)
    assert parse_event(*parse_frame(b)) == event


def test_truco_quit_roundtrip():
    event = TrucoQuit(quit_by=8, points_awarded=1, standings=(Standing(7, 1, 1), Standing(8, 0, 0)))
    assert parse_event(*parse_frame(build_event(event))) == event


def test_bad_cookie_rejected():
    b = struct.pack("!I B H", 0xabcddcba, TYPE_JOIN, 0)
    with pytest.raises(ProtocolError):
        parse_header(b)


def test_unknown_type_rejected():
    with pytest.raises(ProtocolError):
        parse_action(0x7F, b"")
    with pytest.raises(ProtocolError):
        parse_event(TYPE_JOIN, b"")


def test_bad_card_codes_rejected():
    with pytest.raises(ProtocolError):
        parse_action(TYPE_PLAY_CARD, bytes([10, 0]))
    with pytest.raises(ProtocolError):
        parse_action(TYPE_PLAY_CARD, bytes([0, 4]))
    with pytest.raises(ProtocolError):
        build_action(PlayCard(Card("♠", "9")))


def test_trailing_or_missing_bytes_rejected():
    with pytest.raises(ProtocolError):
        parse_action(TYPE_JOIN, b"\x00")
    with pytest.raises(ProtocolError):
        parse_action(TYPE_RESPOND_TRUCO, b"")
    with pytest.raises(ProtocolError):
        parse_action(TYPE_RESPOND_TRUCO, b"\x03")
    with pytest.raises(ProtocolError):
        parse_frame(build_action(Join()) + b"\x00")
