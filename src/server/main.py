# src/server/main.py
import socket
import threading
from typing import Optional, Tuple

from src.common.constants import SERVER_HOST, SERVER_PORT, NEXT_HAND_DELAY, DECK_SEED
from src.common.logging_utils import setup_logging, get_logger
from src.server.registry import Matchmaker, SessionRegistry, seeded_match_factory
from src.server.session import Connections, handle_client


log = get_logger("server.main")


def _create_tcp_listener(host: str = SERVER_HOST, port: int = SERVER_PORT) -> socket.socket:
    """
    Create the TCP listening socket. Port 0 picks any free port.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    s.bind((host, port))
    s.listen()
    return s


def build_matchmaker(connections: Connections, seed: Optional[int] = DECK_SEED) -> Matchmaker:
    if seed is not None:
        registry = SessionRegistry(seeded_match_factory(seed, next_hand_delay=NEXT_HAND_DELAY))
    else:
        registry = SessionRegistry()
    return Matchmaker(registry, connections.send)


def serve(
    listener: socket.socket,
    matchmaker: Matchmaker,
    connections: Connections,
    stop_event: threading.Event,
) -> None:
    """Accept loop: one daemon thread per connection until stop_event is set."""
    listener.settimeout(0.5)
    while not stop_event.is_set():
        try:
            conn, addr = listener.accept()
        except socket.timeout:
            continue
        except OSError as e:
            if stop_event.is_set():
                break
            log.warning(f"Accept failed: {e}")
            continue
        conn.settimeout(None)
        t_client = threading.Thread(
            target=handle_client,
            args=(conn, addr, matchmaker, connections),
            daemon=True,
        )
        t_client.start()


def start_background(
    host: str = "127.0.0.1", port: int = 0, seed: Optional[int] = None
) -> Tuple[Tuple[str, int], threading.Event, threading.Thread]:
    """Run a server on a background thread; returns ((host, port), stop_event, thread)."""
    connections = Connections()
    matchmaker = build_matchmaker(connections, seed)
    listener = _create_tcp_listener(host, port)
    stop_event = threading.Event()

    def run() -> None:
        try:
            serve(listener, matchmaker, connections, stop_event)
        finally:
            listener.close()

    t = threading.Thread(target=run, daemon=True)
    t.start()
    return listener.getsockname()[:2], stop_event, t


def main() -> None:
    setup_logging()

    stop_event = threading.Event()
    connections = Connections()
    matchmaker = build_matchmaker(connections)

    tcp_listener = _create_tcp_listener()
    tcp_port = tcp_listener.getsockname()[1]
    log.info(f"TCP listening on port {tcp_port}")
    print(f"Truco server started, listening on port {tcp_port}")

    log.info("Waiting for players. Press Ctrl+C to stop.")

    try:
        serve(tcp_listener, matchmaker, connections, stop_event)
    except KeyboardInterrupt:
        log.info("Shutting down...")
    finally:
        stop_event.set()
        tcp_listener.close()


if __name__ == "__main__":
    main()
