# src/server/session.py

import itertools
import socket
import threading
from typing import Dict, Tuple

from src.common.protocol import (
    parse_header,
    parse_action,
    build_event,
    ProtocolError,
)
from src.common.constants import HEADER_LEN
from src.common.events import Event
from src.common.logging_utils import get_logger, log_frame
from src.server.registry import Matchmaker

log = get_logger("server.session")

_player_ids = itertools.count(1)


def recv_exact(sock: socket.socket, n: int) -> bytes:
    chunks = []
    remaining = n
    while remaining > 0:
        data = sock.recv(remaining)
        if not data:
            raise ConnectionError("Client disconnected while receiving data")
        chunks.append(data)
        remaining -= len(data)
    return b"".join(chunks)


def recv_frame(sock: socket.socket) -> Tuple[int, bytes, bytes]:
    """Returns (msg_type, body, raw frame)."""
    header = recv_exact(sock, HEADER_LEN)
    msg_type, body_len = parse_header(header)
    body = recv_exact(sock, body_len) if body_len else b""
    return msg_type, body, header + body


class Connections:
    """
    Participant id -> socket. Used as the event sink of every Match:
    `connections.send(player_id, event)` encodes and writes one frame.
    """

    def __init__(self) -> None:
        self._socks: Dict[int, Tuple[socket.socket, Tuple[str, int]]] = {}
        self._send_locks: Dict[int, threading.Lock] = {}
        self._lock = threading.Lock()

    def add(self, player_id: int, conn: socket.socket, addr: Tuple[str, int]) -> None:
        with self._lock:
            self._socks[player_id] = (conn, addr)
            self._send_locks[player_id] = threading.Lock()

    def remove(self, player_id: int) -> None:
        with self._lock:
            self._socks.pop(player_id, None)
            self._send_locks.pop(player_id, None)

    def send(self, player_id: int, event: Event) -> None:
        with self._lock:
            entry = self._socks.get(player_id)
            send_lock = self._send_locks.get(player_id)
        if entry is None or send_lock is None:
            log.debug(f"Event {type(event).__name__} for gone player {player_id} dropped")
            return

        conn, addr = entry
        msg = build_event(event)
        try:
            with send_lock:
                conn.sendall(msg)
        except OSError as e:
            # the reader thread of that connection sees the failure and leaves
            log.warning(f"Send to player {player_id} at {addr[0]}:{addr[1]} failed: {e}")
            return
        log_frame(log, "OUT", addr, msg, parsed=event, player_id=player_id)


def handle_client(
    conn: socket.socket,
    addr: Tuple[str, int],
    matchmaker: Matchmaker,
    connections: Connections,
) -> None:
    player_id = next(_player_ids)
    connections.add(player_id, conn, addr)
    log.info(f"Client connected: {addr[0]}:{addr[1]} as player {player_id}")
    try:
        while True:
            msg_type, body, raw = recv_frame(conn)
            action = parse_action(msg_type, body)
            log_frame(log, "IN", addr, raw, parsed=action, player_id=player_id)
            matchmaker.dispatch(player_id, action)

    except (ProtocolError, ConnectionError, OSError) as e:
        log.warning(f"Session error with {addr[0]}:{addr[1]} (player {player_id}): {e}")
    finally:
        matchmaker.leave(player_id)
        connections.remove(player_id)
        conn.close()
        log.info(f"Client disconnected: {addr[0]}:{addr[1]} (player {player_id})")
