from __future__ import annotations

import logging
import queue
import socket
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """A client line that cannot be acted upon. The connection stays open."""


class ConnectionHandler(Protocol):
    def on_handshake(self, conn: "Connection", name: str) -> bool: ...

    def on_line(self, conn: "Connection", line: str) -> None: ...

    def on_disconnect(self, conn: "Connection") -> None: ...


_CLOSE = object()


class Connection:
    """One client socket.

    ``receive_loop`` runs in the connection's reader thread. Outgoing lines go
    through ``send_async`` onto a queue drained by a dedicated writer thread,
    so producers never block on the network and lines never interleave.
    """

    def __init__(self, sock: socket.socket, address, handler: ConnectionHandler):
        self._sock = sock
        self.address = address
        self._handler = handler
        self._reader = sock.makefile("r", encoding="utf-8", errors="replace", newline="\n")
        self._outbox: queue.Queue = queue.Queue()
        self._state_lock = threading.Lock()
        self._active = True
        self.name: str | None = None
        self._writer = threading.Thread(target=self._drain, name=f"send-{self.peer}", daemon=True)
        self._writer.start()

    @property
    def peer(self) -> str:
        if isinstance(self.address, tuple) and len(self.address) >= 2:
            return f"{self.address[0]}:{self.address[1]}"
        return str(self.address or "local")

    @property
    def active(self) -> bool:
        return self._active

    @property
    def label(self) -> str:
        return self.name or self.peer

    def send_async(self, message: str) -> None:
        if not self._active:
            return
        self._outbox.put(message)

    def close(self, reason: str | None = None) -> None:
        """Stop accepting messages, flush what is queued, then close the socket."""
        if self._mark_closed(reason):
            self._outbox.put(_CLOSE)

    def receive_loop(self) -> None:
        try:
            for raw in self._reader:
                if not self._active:
                    break
                line = raw.rstrip("\r\n")
                if not line.strip():
                    continue
                self._dispatch(line)
        except (OSError, ValueError) as exc:
            if self._active:
                logger.info("Read from %s failed: %s", self.label, exc)
        finally:
            self.close("end of stream")
            try:
                self._reader.close()
            except OSError:
                pass

    def _dispatch(self, line: str) -> None:
        try:
            if self.name is None:
                name = line.strip()
                if self._handler.on_handshake(self, name):
                    self.name = name
                return
            self._handler.on_line(self, line)
        except ProtocolError as exc:
            logger.warning("Protocol error from %s: %s (line %r)", self.label, exc, line[:80])
        except Exception:
            logger.exception("Failed to handle line from %s", self.label)

    def _mark_closed(self, reason: str | None) -> bool:
        with self._state_lock:
            if not self._active:
                return False
            self._active = False
        logger.info("Connection %s closed (%s)", self.label, reason or "closed")
        try:
            self._handler.on_disconnect(self)
        except Exception:
            logger.exception("Disconnect handling failed for %s", self.label)
        return True

    def _drain(self) -> None:
        while True:
            message = self._outbox.get()
            if message is _CLOSE:
                break
            try:
                self._sock.sendall((message + "\n").encode("utf-8"))
            except OSError as exc:
                self._mark_closed(f"send failed: {exc}")
                break
        self._release_socket()

    def _release_socket(self) -> None:
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
