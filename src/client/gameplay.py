# src/client/gameplay.py

import socket
from typing import Tuple

from src.common.constants import HEADER_LEN
from src.common.events import Event
from src.common.protocol import (
    Action,
    build_action,
    parse_header,
    parse_event,
    ProtocolError,
)
from src.common.logging_utils import get_logger, log_frame

log = get_logger("client.gameplay")


def recv_exact(sock: socket.socket, n: int) -> bytes:
    chunks = []
    remaining = n
    while remaining > 0:
        data = sock.recv(remaining)
        if not data:
            raise ConnectionError("Server disconnected while receiving data")
        chunks.append(data)
        remaining -= len(data)
    return b"".join(chunks)


def send_action(sock: socket.socket, server_addr: Tuple[str, int], action: Action) -> None:
    raw = build_action(action)
    sock.sendall(raw)
    log_frame(log, "OUT", server_addr, raw, parsed=action)


def recv_event(sock: socket.socket, server_addr: Tuple[str, int]) -> Event:
    header = recv_exact(sock, HEADER_LEN)
    msg_type, body_len = parse_header(header)
    body = recv_exact(sock, body_len) if body_len else b""
    log_frame(log, "IN", server_addr, header + body, note="server event received")
    try:
        return parse_event(msg_type, body)
    except ProtocolError as e:
        raise ProtocolError(f"Bad server event: {e}") from e
