import os
import random
import sys
import threading
import time

import pytest

# Ensure the backend root (containing the `pictio` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from pictio.config import Config
from pictio.game.match import Match
from pictio.game.models import Word
from pictio.game.words import Lexicon
from pictio.server import create_app


class TestConfig(Config):
    TESTING = True
    ADMIN_TOKEN = ""
    HOST = "127.0.0.1"
    PORT = 0
    MIN_PLAYERS = 3
    MAX_PLAYERS = 10
    COUNTDOWN_SEC = 2
    ROUND_DURATION_SEC = 60
    WORD_CHOICES_COUNT = 2
    CHOOSE_DURATION_SEC = 0
    # Long enough that nothing fires unless a test asks for it.
    ROUND_END_PAUSE_SEC = 60
    DRAWS_PER_PLAYER = 3
    LOW_TIME_WARNING_SEC = 10
    TICK_INTERVAL_SEC = 60


TEST_WORDS = [
    Word("Éléphant", "hard"),
    Word("chat", "easy"),
    Word("maison", "easy"),
    Word("bateau", "easy"),
    Word("girafe", "hard"),
    Word("pomme", "1"),
    Word("château", "2"),
    Word("soleil", "easy"),
]


class RecordingTransport:
    """Stands in for the SessionManager: keeps every envelope in order."""

    def __init__(self):
        self._lock = threading.Lock()
        self.envelopes = []

    def deliver(self, envelopes):
        with self._lock:
            self.envelopes.extend(envelopes)

    def received(self, name):
        with self._lock:
            return [
                e.message
                for e in self.envelopes
                if e.to == name or (e.to is None and name not in e.exclude)
            ]

    def matching(self, name, prefix):
        return [m for m in self.received(name) if m.startswith(prefix)]

    def clear(self):
        with self._lock:
            self.envelopes.clear()


def _wait_until(predicate, timeout=3.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture()
def wait_until():
    return _wait_until


@pytest.fixture()
def make_config():
    def _make(**overrides):
        return type("OverriddenConfig", (TestConfig,), overrides)

    return _make


@pytest.fixture()
def lexicon():
    return Lexicon(TEST_WORDS, rng=random.Random(7))


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def make_match(lexicon, transport):
    created = []

    def _make(players=("alice", "bob", "carol"), config=TestConfig, start=True, words=None):
        lex = Lexicon(words, rng=random.Random(3)) if words is not None else lexicon
        match = Match(lex, transport=transport, config=config, rng=random.Random(11))
        for name in players:
            match.add_player(name)
        if start:
            assert match.start()
        created.append(match)
        return match

    yield _make
    for match in created:
        match.shutdown()


@pytest.fixture()
def flask_app(make_config, lexicon):
    app, session = create_app(make_config(ADMIN_TOKEN="s3cret"), lexicon=lexicon)
    yield app
    session.shutdown()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()
