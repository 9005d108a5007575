from __future__ import annotations

import logging
import socket
import threading

from ..config import Config
from ..game.match import Envelope, Match
from . import events
from .connection import Connection
from .handlers import dispatch_line

logger = logging.getLogger(__name__)


def validate_name(name: str) -> str | None:
    """Return why ``name`` is unusable, or None when it is fine."""
    n = (name or "").strip()
    if not n:
        return "Your name cannot be empty."
    if len(n) > 16:
        return "Your name must be at most 16 characters."
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return "Your name cannot contain '<' or '>'."
    for ch in n:
        if ord(ch) < 32:
            return "Your name cannot contain control characters."
    return None


class SessionManager:
    """Accepts players, runs the pre-game countdown and fans messages out.

    The manager's own lock only guards the connection registry and is never
    held while calling into the Match, so Match transitions can deliver
    through ``deliver`` from any thread.
    """

    def __init__(self, match: Match, config=Config):
        self.match = match
        self.config = config
        match.transport = self

        self._lock = threading.Lock()
        self._connections: list[Connection] = []
        self._by_name: dict[str, Connection] = {}
        self._listener: socket.socket | None = None
        self._stopping = threading.Event()
        self._countdown_thread: threading.Thread | None = None
        self.address: tuple[str, int] | None = None

    # ------------------------------------------------------------------
    # fan-out

    def connections(self) -> list[Connection]:
        with self._lock:
            return list(self._connections)

    def broadcast(self, message: str, exclude: Connection | None = None) -> None:
        for conn in self.connections():
            if conn is not exclude and conn.active:
                conn.send_async(message)

    def deliver(self, envelopes: list[Envelope]) -> None:
        with self._lock:
            by_name = dict(self._by_name)
            everyone = list(self._connections)
        names = {id(c): n for n, c in by_name.items()}
        for env in envelopes:
            if env.to is not None:
                conn = by_name.get(env.to)
                if conn is not None:
                    conn.send_async(env.message)
                continue
            for conn in everyone:
                if names.get(id(conn)) in env.exclude:
                    continue
                conn.send_async(env.message)

    # ------------------------------------------------------------------
    # accepting

    def start(self, host: str | None = None, port: int | None = None) -> tuple[str, int]:
        """Bind the listening socket and accept in a background thread."""
        self._bind(host, port)
        threading.Thread(target=self._accept_loop, name="accept", daemon=True).start()
        return self.address

    def serve_forever(self, host: str | None = None, port: int | None = None) -> None:
        self._bind(host, port)
        self._accept_loop()

    def _bind(self, host: str | None, port: int | None) -> None:
        host = self.config.HOST if host is None else host
        port = self.config.PORT if port is None else port
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((host, port))
        listener.listen()
        self._listener = listener
        self.address = listener.getsockname()[:2]
        logger.info("Game server listening on %s:%s", *self.address)

    def _accept_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                sock, address = self._listener.accept()
            except OSError as exc:
                if not self._stopping.is_set():
                    logger.error("Accept failed: %s", exc)
                break
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self.accept(sock, address)

    def accept(self, sock: socket.socket, address) -> Connection | None:
        reason = self._rejection_reason()
        if reason:
            logger.info("Rejecting %s: %s", address, reason)
            try:
                sock.sendall((events.notification(reason) + "\n").encode("utf-8"))
            except OSError:
                pass
            finally:
                sock.close()
            return None

        conn = Connection(sock, address, self)
        with self._lock:
            self._connections.append(conn)
            count = len(self._connections)
        logger.info("Client %s connected (%d connections)", conn.peer, count)
        threading.Thread(target=conn.receive_loop, name=f"recv-{conn.peer}", daemon=True).start()
        return conn

    def _rejection_reason(self) -> str | None:
        if self.match.over:
            return "The game is over."
        with self._lock:
            count = len(self._connections)
        if count >= self.config.MAX_PLAYERS:
            return f"The game is full (maximum {self.config.MAX_PLAYERS} players)."
        return None

    # ------------------------------------------------------------------
    # connection callbacks

    def on_handshake(self, conn: Connection, name: str) -> bool:
        problem = validate_name(name)
        if problem is None:
            with self._lock:
                if name in self._by_name:
                    problem = f"The name '{name}' is already taken."
                else:
                    self._by_name[name] = conn
        if problem is not None:
            conn.send_async(events.notification(problem))
            return False

        if self.match.add_player(name) is None:
            with self._lock:
                self._by_name.pop(name, None)
            conn.send_async(events.notification(f"The name '{name}' is already taken."))
            return False

        logger.info("Player %s joined from %s", name, conn.peer)
        conn.send_async(events.notification(f"Welcome {name}!"))
        self.maybe_start_countdown()
        return True

    def on_line(self, conn: Connection, line: str) -> None:
        dispatch_line(self, conn, line)

    def on_disconnect(self, conn: Connection) -> None:
        with self._lock:
            if conn in self._connections:
                self._connections.remove(conn)
            name = next((n for n, c in self._by_name.items() if c is conn), None)
            if name is not None:
                del self._by_name[name]
        if name is not None:
            self.match.remove_player(name)
        # an unnamed connection leaving can complete the lobby
        if not self.match.started and not self._stopping.is_set():
            self.maybe_start_countdown()

    # ------------------------------------------------------------------
    # countdown

    def everyone_named(self) -> bool:
        with self._lock:
            registered = {id(c) for c in self._by_name.values()}
            return all(id(c) in registered for c in self._connections)

    def maybe_start_countdown(self) -> bool:
        if self.match.player_count < self.config.MIN_PLAYERS or not self.everyone_named():
            return False
        if not self.match.start_countdown():
            return False
        logger.info("Starting %ss countdown with %d players", self.config.COUNTDOWN_SEC, self.match.player_count)
        thread = threading.Thread(target=self._run_countdown, name="countdown", daemon=True)
        self._countdown_thread = thread
        thread.start()
        return True

    def _run_countdown(self) -> None:
        for remaining in range(self.config.COUNTDOWN_SEC, 0, -1):
            if self.match.state != "countdown":
                logger.info("Countdown cancelled")
                return
            self.broadcast(events.notification(f"The game starts in {remaining} seconds!"))
            if self._stopping.wait(self.config.TICK_INTERVAL_SEC):
                return
        if self.match.state != "countdown":
            logger.info("Countdown cancelled")
            return
        self.broadcast(events.notification("The game starts now!"))
        if not self.match.start(from_countdown=True):
            logger.info("Match did not start after countdown (state=%s)", self.match.state)

    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        self._stopping.set()
        self.match.shutdown()
        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass
        for conn in self.connections():
            conn.send_async(events.notification("The server is shutting down."))
            conn.close("server shutdown")
