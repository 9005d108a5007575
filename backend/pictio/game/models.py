from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


MatchState = Literal[
    "waiting",
    "countdown",
    "choosing",
    "drawing",
    "round_end",
    "game_over",
    "aborted",
]

EASY_DIFFICULTIES = frozenset({"easy", "1"})


@dataclass
class Player:
    name: str
    score: int = 0
    connected: bool = True

    def add_points(self, points: int) -> None:
        self.score += points


@dataclass(frozen=True)
class Word:
    text: str
    difficulty: str

    @property
    def key(self) -> str:
        return self.text.lower()

    @property
    def is_easy(self) -> bool:
        return self.difficulty.strip().lower() in EASY_DIFFICULTIES
