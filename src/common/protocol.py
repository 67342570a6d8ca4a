# src/common/protocol.py

import struct
from dataclasses import dataclass
from typing import List, Literal, Tuple, Union

from .logging_utils import get_logger
from .cards import Card
from .constants import (
    MAGIC_COOKIE, HEADER_LEN, MAX_BODY_LEN,
    TYPE_JOIN, TYPE_PLAY_CARD, TYPE_REQUEST_TRUCO, TYPE_RESPOND_TRUCO,
    TYPE_WAITING, TYPE_HAND_DEALT, TYPE_CARD_PLAYED, TYPE_TRICK_RESULT,
    TYPE_HAND_COMPLETE, TYPE_CHANGE_TURN, TYPE_TRUCO_REQUESTED,
    TYPE_TRUCO_ACCEPTED, TYPE_TRUCO_RAISED, TYPE_TRUCO_QUIT, TYPE_OPPONENT_LEFT,
    SUIT_TO_CODE, CODE_TO_SUIT, RANK_TO_CODE, CODE_TO_RANK,
    RESPONSE_TO_CODE, CODE_TO_RESPONSE,
)
from .events import (
    Event, Standing, Standings,
    WaitingForOpponent, HandDealt, CardPlayed, TrickResult, HandComplete,
    ChangeTurn, TrucoRequested, TrucoAccepted, TrucoRaised, TrucoQuit,
    OpponentLeft,
)

_log = get_logger("protocol")

# -------------------------
# Errors
# -------------------------
class ProtocolError(ValueError):
    """Raised when a frame is malformed or invalid."""
    pass


def _require(condition: bool, msg: str) -> None:
    if not condition:
        _log.warning(f"ProtocolError: {msg}")
        raise ProtocolError(msg)


# -------------------------
# Inbound actions (client -> server)
# -------------------------
@dataclass(frozen=True)
class Join:
    pass


@dataclass(frozen=True)
class PlayCard:
    card: Card


@dataclass(frozen=True)
class RequestTruco:
    pass


@dataclass(frozen=True)
class RespondTruco:
    response: Literal["accept", "raise", "quit"]


Action = Union[Join, PlayCard, RequestTruco, RespondTruco]


# -------------------------
# FRAME: cookie(4) type(1) body_len(2) body(body_len)
# -------------------------
def build_frame(msg_type: int, body: bytes = b"") -> bytes:
    _require(len(body) <= MAX_BODY_LEN, "body too long for uint16 length")
    return struct.pack("!I B H", MAGIC_COOKIE, msg_type, len(body)) + body


def parse_header(data: bytes) -> Tuple[int, int]:
    """Returns (msg_type, body_len)."""
    _require(len(data) == HEADER_LEN, f"Invalid header length: expected {HEADER_LEN}, got {len(data)}")
    cookie, msg_type, body_len = struct.unpack("!I B H", data)
    _require(cookie == MAGIC_COOKIE, "Bad magic cookie")
    return msg_type, body_len


def parse_frame(data: bytes) -> Tuple[int, bytes]:
    msg_type, body_len = parse_header(data[:HEADER_LEN])
    body = data[HEADER_LEN:]
    _require(len(body) == body_len, f"Invalid body length: expected {body_len}, got {len(body)}")
    return msg_type, body


# -------------------------
# Field codecs
# card(2): rank_code uint8 + suit_code uint8
# standings: count uint8, then count x (player_id uint32, score uint16, round_wins uint8)
# -------------------------
_CARD = struct.Struct("!B B")
_PLAYER = struct.Struct("!I")
_VALUE = struct.Struct("!B")
_STANDING = struct.Struct("!I H B")


def _pack_card(card: Card) -> bytes:
    _require(card.rank in RANK_TO_CODE, f"Unknown rank: {card.rank!r}")
    _require(card.suit in SUIT_TO_CODE, f"Unknown suit: {card.suit!r}")
    return _CARD.pack(RANK_TO_CODE[card.rank], SUIT_TO_CODE[card.suit])


def _unpack_card(body: bytes, offset: int) -> Tuple[Card, int]:
    _require(len(body) >= offset + _CARD.size, "Truncated card")
    rank_code, suit_code = _CARD.unpack_from(body, offset)
    _require(rank_code in CODE_TO_RANK, f"Invalid rank code: {rank_code}")
    _require(suit_code in CODE_TO_SUIT, f"Invalid suit code: {suit_code}")
    return Card(CODE_TO_SUIT[suit_code], CODE_TO_RANK[rank_code]), offset + _CARD.size


def _unpack_player(body: bytes, offset: int) -> Tuple[int, int]:
    _require(len(body) >= offset + _PLAYER.size, "Truncated player id")
    return _PLAYER.unpack_from(body, offset)[0], offset + _PLAYER.size


def _unpack_value(body: bytes, offset: int) -> Tuple[int, int]:
    _require(len(body) >= offset + _VALUE.size, "Truncated value")
    return _VALUE.unpack_from(body, offset)[0], offset + _VALUE.size


def _pack_standings(standings: Standings) -> bytes:
    out = _VALUE.pack(len(standings))
    for s in standings:
        out += _STANDING.pack(s.player_id, s.score, s.round_wins)
    return out


def _unpack_standings(body: bytes, offset: int) -> Tuple[Standings, int]:
    count, offset = _unpack_value(body, offset)
    _require(len(body) >= offset + count * _STANDING.size, "Truncated standings")
    items: List[Standing] = []
    for _ in range(count):
        player_id, score, round_wins = _STANDING.unpack_from(body, offset)
        items.append(Standing(player_id, score, round_wins))
        offset += _STANDING.size
    return tuple(items), offset


def _done(body: bytes, offset: int, what: str) -> None:
    _require(offset == len(body), f"Trailing bytes in {what}: {len(body) - offset}")


# -------------------------
# Client -> Server
# JOIN 0x10 {} | PLAY_CARD 0x11 {card} | REQUEST_TRUCO 0x12 {} | RESPOND_TRUCO 0x13 {response(1)}
# -------------------------
def build_action(action: Action) -> bytes:
    if isinstance(action, Join):
        return build_frame(TYPE_JOIN)
    if isinstance(action, PlayCard):
        return build_frame(TYPE_PLAY_CARD, _pack_card(action.card))
    if isinstance(action, RequestTruco):
        return build_frame(TYPE_REQUEST_TRUCO)
    if isinstance(action, RespondTruco):
        _require(action.response in RESPONSE_TO_CODE, 'response must be "accept", "raise" or "quit"')
        return build_frame(TYPE_RESPOND_TRUCO, _VALUE.pack(RESPONSE_TO_CODE[action.response]))
    raise ProtocolError(f"Unknown action: {action!r}")


def parse_action(msg_type: int, body: bytes) -> Action:
    if msg_type == TYPE_JOIN:
        _done(body, 0, "JOIN")
        return Join()
    if msg_type == TYPE_PLAY_CARD:
        card, offset = _unpack_card(body, 0)
        _done(body, offset, "PLAY_CARD")
        return PlayCard(card)
    if msg_type == TYPE_REQUEST_TRUCO:
        _done(body, 0, "REQUEST_TRUCO")
        return RequestTruco()
    if msg_type == TYPE_RESPOND_TRUCO:
        code, offset = _unpack_value(body, 0)
        _done(body, offset, "RESPOND_TRUCO")
        _require(code in CODE_TO_RESPONSE, f"Invalid response code: {code}")
        return RespondTruco(CODE_TO_RESPONSE[code])  # type: ignore[arg-type]
    raise ProtocolError(f"Unknown client message type: {msg_type:#x}")


# -------------------------
# Server -> Client
# -------------------------
def build_event(event: Event) -> bytes:
    if isinstance(event, WaitingForOpponent):
        return build_frame(TYPE_WAITING)
    if isinstance(event, HandDealt):
        body = _PLAYER.pack(event.first_to_act) + _VALUE.pack(len(event.cards))
        body += b"".join(_pack_card(c) for c in event.cards)
        return build_frame(TYPE_HAND_DEALT, body + _pack_standings(event.standings))
    if isinstance(event, CardPlayed):
        return build_frame(TYPE_CARD_PLAYED, _PLAYER.pack(event.player_id) + _pack_card(event.card))
    if isinstance(event, TrickResult):
        return build_frame(TYPE_TRICK_RESULT, _PLAYER.pack(event.winner) + _pack_standings(event.standings))
    if isinstance(event, HandComplete):
        return build_frame(TYPE_HAND_COMPLETE, _PLAYER.pack(event.winner) + _pack_standings(event.standings))
    if isinstance(event, ChangeTurn):
        return build_frame(TYPE_CHANGE_TURN, _PLAYER.pack(event.current_player))
    if isinstance(event, TrucoRequested):
        return build_frame(TYPE_TRUCO_REQUESTED, _PLAYER.pack(event.requested_by) + _VALUE.pack(event.proposed_value))
    if isinstance(event, TrucoAccepted):
        return build_frame(TYPE_TRUCO_ACCEPTED, _VALUE.pack(event.value))
    if isinstance(event, TrucoRaised):
        return build_frame(TYPE_TRUCO_RAISED, _PLAYER.pack(event.raised_by) + _VALUE.pack(event.proposed_value))
    if isinstance(event, TrucoQuit):
        body = _PLAYER.pack(event.quit_by) + _VALUE.pack(event.points_awarded)
        return build_frame(TYPE_TRUCO_QUIT, body + _pack_standings(event.standings))
    if isinstance(event, OpponentLeft):
        return build_frame(TYPE_OPPONENT_LEFT)
    raise ProtocolError(f"Unknown event: {event!r}")


def parse_event(msg_type: int, body: bytes) -> Event:
    event: Event
    offset = 0
    if msg_type == TYPE_WAITING:
        event = WaitingForOpponent()
    elif msg_type == TYPE_HAND_DEALT:
        first, offset = _unpack_player(body, offset)
        n, offset = _unpack_value(body, offset)
        cards = []
        for _ in range(n):
            card, offset = _unpack_card(body, offset)
            cards.append(card)
        standings, offset = _unpack_standings(body, offset)
        event = HandDealt(first_to_act=first, cards=tuple(cards), standings=standings)
    elif msg_type == TYPE_CARD_PLAYED:
        player, offset = _unpack_player(body, offset)
        card, offset = _unpack_card(body, offset)
        event = CardPlayed(player_id=player, card=card)
    elif msg_type in (TYPE_TRICK_RESULT, TYPE_HAND_COMPLETE):
        winner, offset = _unpack_player(body, offset)
        standings, offset = _unpack_standings(body, offset)
        cls = TrickResult if msg_type == TYPE_TRICK_RESULT else HandComplete
        event = cls(winner=winner, standings=standings)
    elif msg_type == TYPE_CHANGE_TURN:
        player, offset = _unpack_player(body, offset)
        event = ChangeTurn(current_player=player)
    elif msg_type == TYPE_TRUCO_REQUESTED:
        player, offset = _unpack_player(body, offset)
        value, offset = _unpack_value(body, offset)
        event = TrucoRequested(requested_by=player, proposed_value=value)
    elif msg_type == TYPE_TRUCO_ACCEPTED:
        value, offset = _unpack_value(body, offset)
        event = TrucoAccepted(value=value)
    elif msg_type == TYPE_TRUCO_RAISED:
        player, offset = _unpack_player(body, offset)
        value, offset = _unpack_value(body, offset)
        event = TrucoRaised(raised_by=player, proposed_value=value)
    elif msg_type == TYPE_TRUCO_QUIT:
        player, offset = _unpack_player(body, offset)
        points, offset = _unpack_value(body, offset)
        standings, offset = _unpack_standings(body, offset)
        event = TrucoQuit(quit_by=player, points_awarded=points, standings=standings)
    elif msg_type == TYPE_OPPONENT_LEFT:
        event = OpponentLeft()
    else:
        raise ProtocolError(f"Unknown server message type: {msg_type:#x}")
    _done(body, offset, type(event).__name__)
    return event
