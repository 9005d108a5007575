from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from . import events
from .connection import Connection, ProtocolError

if TYPE_CHECKING:
    from .session import SessionManager

logger = logging.getLogger(__name__)


Handler = Callable[["SessionManager", Connection, str], None]


def _on_draw(session: "SessionManager", conn: Connection, line: str) -> None:
    # Stroke payloads are relayed verbatim, never parsed.
    if not session.match.is_drawer(conn.name):
        raise ProtocolError("only the drawer can draw")
    session.broadcast(line, exclude=conn)


def _on_clear(session: "SessionManager", conn: Connection, line: str) -> None:
    if not session.match.is_drawer(conn.name):
        raise ProtocolError("only the drawer can clear the board")
    session.broadcast(events.clear())


def _on_chosen_word(session: "SessionManager", conn: Connection, line: str) -> None:
    word = line[len(events.CHOSEN_WORD):].strip()
    if not word:
        raise ProtocolError("empty word choice")
    session.match.choose_word(conn.name, word)


def _on_chat(session: "SessionManager", conn: Connection, line: str) -> None:
    session.match.verify_guess(conn.name, line[len(events.CHAT):])


_HANDLERS: list[tuple[str, Handler]] = [
    (events.DRAW, _on_draw),
    (events.CLEAR, _on_clear),
    (events.CHOSEN_WORD, _on_chosen_word),
    (events.CHAT, _on_chat),
]


def dispatch_line(session: "SessionManager", conn: Connection, line: str) -> None:
    """Route one line from a named player. Unprefixed text is a chat/guess."""
    for prefix, handler in _HANDLERS:
        if line.startswith(prefix):
            handler(session, conn, line)
            return
    session.match.verify_guess(conn.name, line)
