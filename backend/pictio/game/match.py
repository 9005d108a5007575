from __future__ import annotations

import logging
import random
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterator, Optional, Protocol

from ..config import Config
from ..realtime import events
from .models import MatchState, Player, Word
from .scoring import compute_score, is_near_miss, normalize_guess, standings
from .timer import RoundTimer
from .words import Lexicon, LexiconExhausted

logger = logging.getLogger(__name__)


ROUND_STATES = ("choosing", "drawing")
OVER_STATES = ("game_over", "aborted")


@dataclass(frozen=True)
class Envelope:
    """One outgoing line: to a single player, or to everyone minus ``exclude``."""

    message: str
    to: Optional[str] = None
    exclude: tuple[str, ...] = ()


class Transport(Protocol):
    def deliver(self, envelopes: list[Envelope]) -> None:
        """Hand envelopes to the players' send queues, in order, without blocking."""


class GuessOutcome(str, Enum):
    CORRECT = "correct"
    ALREADY_FOUND = "already_found"
    NEAR_MISS = "near_miss"
    LEAKED = "leaked"
    CHAT = "chat"
    IGNORED = "ignored"


class Outbox(list):
    def broadcast(self, message: str, exclude: tuple[str, ...] = ()) -> None:
        self.append(Envelope(message, exclude=tuple(e for e in exclude if e)))

    def send(self, name: str | None, message: str) -> None:
        if name:
            self.append(Envelope(message, to=name))


class Match:
    """Authoritative game state for the single match this server runs.

    Every public operation is one transition: state is mutated under the match
    lock while outgoing messages are collected, then the messages are handed to
    the transport after the lock is released. Transitions deliver in the order
    they ran, so every player sees one transition's messages in causal order.
    """

    def __init__(
        self,
        lexicon: Lexicon,
        transport: Transport | None = None,
        config=Config,
        rng: random.Random | None = None,
    ):
        self.lexicon = lexicon
        self.transport = transport
        self.config = config
        self._rng = rng or random.Random()

        self._lock = threading.RLock()
        self._delivery_lock = threading.Lock()
        self._held = Outbox()

        self.state: MatchState = "waiting"
        self._players: dict[str, Player] = {}
        self._roster: list[str] = []
        self.used_words: set[str] = set()

        self.round_index = 0
        self.drawer: str | None = None
        self.word_options: list[Word] = []
        self.current_word: Word | None = None
        self.last_word: Word | None = None
        self.remaining_seconds = 0
        self.found: list[str] = []
        self.revealed: set[int] = set()

        self._timer: RoundTimer | None = None
        self._pending: threading.Timer | None = None
        self._epoch = 0

    # ------------------------------------------------------------------
    # transitions

    @contextmanager
    def _transition(self) -> Iterator[Outbox]:
        out = Outbox()
        with self._lock:
            yield out
            self._held.extend(out)
            # A timer tick runs with the lock held: its messages wait for
            # _flush_held, or for the next transition, whichever runs first.
            if self._timer is not None and self._timer.ticking:
                return
            out, self._held = self._held, Outbox()
            self._delivery_lock.acquire()
        try:
            self._deliver(out)
        finally:
            self._delivery_lock.release()

    def _flush_held(self) -> None:
        with self._transition():
            pass

    def _deliver(self, envelopes: list[Envelope]) -> None:
        if not envelopes or self.transport is None:
            return
        self.transport.deliver(envelopes)

    # ------------------------------------------------------------------
    # read helpers

    @property
    def players(self) -> list[Player]:
        with self._lock:
            return list(self._players.values())

    @property
    def roster(self) -> list[str]:
        with self._lock:
            return list(self._roster)

    @property
    def player_count(self) -> int:
        with self._lock:
            return len(self._roster)

    @property
    def started(self) -> bool:
        return self.state not in ("waiting", "countdown")

    @property
    def over(self) -> bool:
        return self.state in OVER_STATES

    @property
    def total_rounds(self) -> int:
        return self.config.DRAWS_PER_PLAYER * len(self._roster)

    @property
    def timer(self) -> RoundTimer | None:
        return self._timer

    def get_player(self, name: str) -> Player | None:
        with self._lock:
            return self._players.get(name)

    def is_drawer(self, name: str) -> bool:
        with self._lock:
            return self.state in ROUND_STATES and name == self.drawer

    def snapshot(self, reveal_word: bool = False) -> dict:
        with self._lock:
            payload = {
                "state": self.state,
                "round": min(self.round_index + 1, self.total_rounds) if self.started else 0,
                "totalRounds": self.total_rounds,
                "drawer": self.drawer,
                "remainingSeconds": self.remaining_seconds if self.state == "drawing" else None,
                "players": [asdict(p) for p in self._players.values()],
                "found": list(self.found),
                "wordHint": None,
                "usedWords": len(self.used_words),
            }
            if self.current_word is not None:
                payload["wordHint"] = events.mask_word(self.current_word.text, self.revealed)
                if reveal_word:
                    payload["word"] = self.current_word.text
            if self.state in ("round_end", *OVER_STATES) and self.last_word is not None:
                payload["lastWord"] = self.last_word.text
            if reveal_word and self.word_options:
                payload["wordOptions"] = [w.text for w in self.word_options]
            return payload

    # ------------------------------------------------------------------
    # lobby

    def add_player(self, name: str) -> Player | None:
        """Register ``name``; None when a connected player already holds it.

        A disconnected player rejoining under the same name keeps their score.
        """
        with self._transition() as out:
            player = self._players.get(name)
            if player is not None and player.connected:
                return None
            if player is None:
                player = Player(name=name)
                self._players[name] = player
            else:
                player.connected = True
            self._roster.append(name)

            out.broadcast(
                events.notification(f"{name} joined the game! ({len(self._roster)} players)"),
                exclude=(name,),
            )
            if self.started and not self.over:
                out.send(name, events.notification("A game is in progress, you will play from the next round."))
            logger.info("Player %s joined (%d in roster)", name, len(self._roster))
            return player

    def start_countdown(self) -> bool:
        with self._lock:
            if self.state != "waiting":
                return False
            if len(self._roster) < self.config.MIN_PLAYERS:
                return False
            self.state = "countdown"
            return True

    def cancel_countdown(self) -> bool:
        with self._lock:
            if self.state != "countdown":
                return False
            self.state = "waiting"
            return True

    def start(self, from_countdown: bool = False) -> bool:
        """Leave the lobby and begin round one. Starting twice is a no-op."""
        with self._transition() as out:
            if from_countdown and self.state != "countdown":
                return False
            if self.state not in ("waiting", "countdown"):
                return False
            if len(self._roster) < self.config.MIN_PLAYERS:
                logger.info("Not starting: %d players, need %d", len(self._roster), self.config.MIN_PLAYERS)
                self.state = "waiting"
                return False

            logger.info("Match starting with %s", ", ".join(self._roster))
            self.round_index = 0
            out.broadcast(events.clear())
            self._begin_round(out)
            return True

    # ------------------------------------------------------------------
    # rounds

    def begin_round(self) -> bool:
        with self._transition() as out:
            if not self.started or self.over:
                return False
            self._begin_round(out)
            return True

    def _begin_round(self, out: Outbox) -> None:
        self._stop_timer()
        self._cancel_pending()
        self._epoch += 1

        self.drawer = self._roster[self.round_index % len(self._roster)]
        self.current_word = None
        self.word_options = []
        self.found = []
        self.revealed = set()
        self.remaining_seconds = 0

        try:
            options = self.lexicon.pick_options(self.config.WORD_CHOICES_COUNT, self.used_words)
        except LexiconExhausted as exc:
            logger.warning("Ending match, word list exhausted: %s", exc)
            out.broadcast(events.notification("No words left to draw!"))
            self._finish(out)
            return

        self.word_options = options
        self.state = "choosing"
        logger.info("Round %d: %s draws, options %s", self.round_index + 1, self.drawer,
                    ", ".join(w.text for w in options))

        out.broadcast(events.new_drawer(self.drawer))
        out.broadcast(events.clear())
        for name in self._roster:
            out.send(name, events.role(name == self.drawer))
        out.send(self.drawer, events.word_choices(w.text for w in options))

        if self.config.CHOOSE_DURATION_SEC > 0:
            self._schedule(self.config.CHOOSE_DURATION_SEC, self._auto_choose, self._epoch)

    def choose_word(self, name: str, text: str) -> bool:
        with self._transition() as out:
            if self.state != "choosing" or name != self.drawer:
                logger.info("Ignoring word choice from %s (state=%s, drawer=%s)", name, self.state, self.drawer)
                return False
            key = (text or "").strip().lower()
            choice = next((w for w in self.word_options if w.key == key), None)
            if choice is None:
                logger.info("Ignoring word %r from %s: not one of the options", text, name)
                return False
            self._lock_in_word(out, choice)
            return True

    def _auto_choose(self, epoch: int) -> None:
        with self._transition() as out:
            if epoch != self._epoch or self.state != "choosing" or not self.word_options:
                return
            logger.info("%s did not choose in time, picking %s", self.drawer, self.word_options[0].text)
            out.send(self.drawer, events.notification("Time to choose is over, a word was picked for you."))
            self._lock_in_word(out, self.word_options[0])

    def _lock_in_word(self, out: Outbox, word: Word) -> None:
        self._cancel_pending()
        self._epoch += 1
        self.current_word = word
        self.used_words.add(word.key)
        self.word_options = []
        self.found = []
        self.revealed = set()
        self.state = "drawing"
        self.remaining_seconds = self.config.ROUND_DURATION_SEC

        out.send(self.drawer, events.word_confirmed(word.text))
        out.broadcast(events.word_confirmed(events.mask_word(word.text)), exclude=(self.drawer,))
        self._start_timer(self.config.ROUND_DURATION_SEC)

    def end_round(self) -> bool:
        with self._transition() as out:
            if self.state not in ROUND_STATES:
                self._stop_timer()
                return False
            self._end_round(out)
            return True

    def _end_round(self, out: Outbox) -> None:
        self._stop_timer()
        self._cancel_pending()
        self._epoch += 1

        if self.current_word is not None:
            out.broadcast(events.round_over(self.current_word.text))
            self.last_word = self.current_word
        out.broadcast(events.podium(standings(self._players.values())))

        self.current_word = None
        self.word_options = []
        self.state = "round_end"
        self.round_index += 1

        if self.round_index >= self.total_rounds:
            self._finish(out)
            return
        self._schedule(self.config.ROUND_END_PAUSE_SEC, self._continue_after_round, self._epoch)

    def _continue_after_round(self, epoch: int) -> None:
        with self._transition() as out:
            if epoch != self._epoch or self.state != "round_end":
                return
            # the roster may have shrunk during the pause
            if self.round_index >= self.total_rounds:
                self._finish(out)
                return
            self._begin_round(out)

    def _finish(self, out: Outbox) -> None:
        self._stop_timer()
        self._cancel_pending()
        self._epoch += 1
        self.state = "game_over"
        self.drawer = None
        self.current_word = None
        self.word_options = []
        logger.info("Match over after %d rounds", self.round_index)
        out.broadcast(events.notification("Game over!"))
        out.broadcast(events.podium(standings(self._players.values())))

    def _abort(self, out: Outbox) -> None:
        self._stop_timer()
        self._cancel_pending()
        self._epoch += 1
        self.state = "aborted"
        self.drawer = None
        self.current_word = None
        self.word_options = []
        logger.warning("Match aborted, %d players left", len(self._roster))
        out.broadcast(events.notification("Too few players to continue. The game is over."))

    # ------------------------------------------------------------------
    # guesses

    def verify_guess(self, name: str, text: str) -> GuessOutcome:
        text = (text or "").strip()
        with self._transition() as out:
            player = self._players.get(name)
            if player is None or not player.connected or not text or self.state == "aborted":
                return GuessOutcome.IGNORED

            word = self.current_word
            if word is None or self.state != "drawing":
                out.broadcast(events.chat(name, text))
                return GuessOutcome.CHAT

            secret = normalize_guess(word.text)
            guess = normalize_guess(text)

            if name == self.drawer or name in self.found:
                if guess == secret and name in self.found:
                    return GuessOutcome.ALREADY_FOUND
                if secret in guess:
                    out.send(name, events.notification("You cannot give the word away in the chat."))
                    return GuessOutcome.LEAKED
                out.broadcast(events.chat(name, text))
                return GuessOutcome.CHAT

            if guess == secret:
                self._credit(out, player, word)
                return GuessOutcome.CORRECT

            outcome = GuessOutcome.CHAT
            if is_near_miss(secret, guess):
                out.send(name, events.near_miss())
                outcome = GuessOutcome.NEAR_MISS
            out.broadcast(events.chat(name, text))
            return outcome

    def _credit(self, out: Outbox, player: Player, word: Word) -> None:
        order = len(self.found) + 1
        points = compute_score(word, self.remaining_seconds, order, len(self._roster))
        player.add_points(points)
        self.found.append(player.name)
        logger.info("%s found %r in position %d for %d points", player.name, word.text, order, points)

        out.send(player.name, events.guess_correct(f"You found the word '{word.text}'! (+{points} points)"))
        out.send(self.drawer, events.guess_correct(f"{player.name} found the word '{word.text}'!"))
        out.broadcast(
            events.notification(f"{player.name} found the word in position {order} and earns {points} points!"),
            exclude=(player.name, self.drawer),
        )

        if self._everyone_found():
            self._end_round(out)

    def _everyone_found(self) -> bool:
        guessers = [n for n in self._roster if n != self.drawer]
        return bool(guessers) and all(n in self.found for n in guessers)

    # ------------------------------------------------------------------
    # departures

    def remove_player(self, name: str) -> None:
        with self._transition() as out:
            player = self._players.get(name)
            if player is None or not player.connected:
                return
            if name in self._roster:
                self._roster.remove(name)
            out.broadcast(events.notification(f"{name} left the game."), exclude=(name,))
            logger.info("Player %s left (%d in roster)", name, len(self._roster))

            if not self.started:
                del self._players[name]
                if self.state == "countdown" and len(self._roster) < self.config.MIN_PLAYERS:
                    self.state = "waiting"
                    out.broadcast(events.notification("Not enough players, countdown cancelled."))
                return

            player.connected = False
            if self.over:
                return

            if len(self._roster) < self.config.MIN_PLAYERS:
                self._abort(out)
                return

            if name == self.drawer and self.state in ROUND_STATES:
                out.broadcast(events.notification(f"{name} was drawing, starting a new round."))
                self._begin_round(out)
            elif self.state == "drawing" and self._everyone_found():
                self._end_round(out)

    # ------------------------------------------------------------------
    # timer

    def _start_timer(self, duration: int) -> None:
        self._stop_timer()
        self._timer = RoundTimer(
            on_tick=self._on_tick,
            on_expired=self._on_expired,
            on_reveal=self._on_reveal,
            on_warning=self._on_warning,
            after_tick=self._flush_held,
            guard=self._lock,
            interval=self.config.TICK_INTERVAL_SEC,
            warning_threshold=self.config.LOW_TIME_WARNING_SEC,
        )
        self._timer.start(duration)

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()

    def _on_tick(self, remaining: int) -> None:
        with self._transition() as out:
            self.remaining_seconds = remaining
            out.broadcast(events.time_left(remaining))

    def _on_reveal(self, n: int) -> None:
        with self._transition() as out:
            word = self.current_word
            if word is None:
                return
            hidden = [i for i, ch in enumerate(word.text) if ch.isalnum() and i not in self.revealed]
            # never give away the last hidden letter
            if len(hidden) > 1:
                self.revealed.add(self._rng.choice(hidden))
            out.broadcast(events.reveal_letter(n))
            mask = events.hint(events.mask_word(word.text, self.revealed))
            for name in self._roster:
                if name != self.drawer and name not in self.found:
                    out.send(name, mask)

    def _on_warning(self, remaining: int) -> None:
        if remaining <= 0:
            return
        with self._transition() as out:
            out.broadcast(events.notification(f"Only {remaining} seconds left!"))

    def _on_expired(self) -> None:
        with self._transition() as out:
            if self.state != "drawing":
                return
            out.broadcast(events.time_up())
            self._end_round(out)

    # ------------------------------------------------------------------
    # deferred continuations

    def _schedule(self, delay: float, callback, *args) -> None:
        self._cancel_pending()
        pending = threading.Timer(delay, callback, args=args)
        pending.daemon = True
        self._pending = pending
        pending.start()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def shutdown(self) -> None:
        with self._lock:
            self._stop_timer()
            self._cancel_pending()
            self._epoch += 1
