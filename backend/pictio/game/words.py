from __future__ import annotations

import logging
import random
from collections import Counter
from pathlib import Path
from typing import Iterable

from .models import Word

logger = logging.getLogger(__name__)


DEFAULT_WORDS: list[tuple[str, str]] = [
    ("chat", "easy"),
    ("chien", "easy"),
    ("maison", "easy"),
    ("soleil", "easy"),
    ("arbre", "easy"),
    ("pomme", "easy"),
    ("voiture", "easy"),
    ("bateau", "easy"),
    ("fleur", "easy"),
    ("livre", "easy"),
    ("lune", "easy"),
    ("poisson", "easy"),
    ("éléphant", "hard"),
    ("girafe", "hard"),
    ("hélicoptère", "hard"),
    ("château", "hard"),
    ("parapluie", "hard"),
    ("bibliothèque", "hard"),
    ("pyramide", "hard"),
    ("kangourou", "hard"),
    ("télescope", "hard"),
    ("crocodile", "hard"),
    ("épouvantail", "hard"),
    ("montgolfière", "hard"),
]


class LoadError(Exception):
    """The word source could not be read."""


class LexiconExhausted(Exception):
    """Fewer eligible words remain than were requested."""


def parse_line(line: str) -> Word | None:
    parts = line.split(",")
    if len(parts) != 2:
        return None
    text, difficulty = parts[0].strip(), parts[1].strip()
    if not text or not difficulty:
        return None
    return Word(text=text, difficulty=difficulty)


def load_words(source: str | Path | Iterable[str]) -> set[Word]:
    """Read ``word,difficulty`` lines.

    ``source`` is a path or an iterable of lines. Blank lines and ``#`` comments
    are ignored, malformed lines are skipped with a warning, and a word seen
    twice (case-insensitively) keeps its first difficulty.
    """
    if isinstance(source, (str, Path)):
        try:
            lines = Path(source).read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise LoadError(f"cannot read word list {source}: {exc}") from exc
    else:
        lines = source

    words: dict[str, Word] = {}
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        word = parse_line(line)
        if word is None:
            logger.warning("Skipping malformed word line %d: %r", lineno, raw)
            continue
        words.setdefault(word.key, word)
    return set(words.values())


class Lexicon:
    def __init__(self, words: Iterable[Word], rng: random.Random | None = None):
        by_key: dict[str, Word] = {}
        for w in words:
            by_key.setdefault(w.key, w)
        self._words: tuple[Word, ...] = tuple(sorted(by_key.values(), key=lambda w: w.key))
        self._index = by_key
        self._rng = rng or random.Random()

    @classmethod
    def from_file(cls, path: str | Path, rng: random.Random | None = None) -> "Lexicon":
        return cls(load_words(path), rng=rng)

    @classmethod
    def default(cls, rng: random.Random | None = None) -> "Lexicon":
        return cls((Word(text, diff) for text, diff in DEFAULT_WORDS), rng=rng)

    def __len__(self) -> int:
        return len(self._words)

    @property
    def is_empty(self) -> bool:
        return not self._words

    @property
    def words(self) -> tuple[Word, ...]:
        return self._words

    def find(self, text: str) -> Word | None:
        return self._index.get((text or "").strip().lower())

    def eligible(self, excluding: Iterable[str] = ()) -> list[Word]:
        excluded = {t.lower() for t in excluding}
        return [w for w in self._words if w.key not in excluded]

    def pick_random(self, excluding: Iterable[str] = ()) -> Word | None:
        candidates = self.eligible(excluding)
        if not candidates:
            return None
        return self._rng.choice(candidates)

    def pick_options(self, count: int, excluding: Iterable[str] = ()) -> list[Word]:
        candidates = self.eligible(excluding)
        if len(candidates) < count:
            raise LexiconExhausted(
                f"{count} words requested, {len(candidates)} unused left out of {len(self._words)}"
            )
        return self._rng.sample(candidates, count)

    def stats(self, excluding: Iterable[str] = ()) -> dict:
        by_difficulty = Counter("easy" if w.is_easy else "hard" for w in self._words)
        return {
            "total": len(self._words),
            "remaining": len(self.eligible(excluding)),
            "byDifficulty": dict(by_difficulty),
        }
