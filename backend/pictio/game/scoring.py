from __future__ import annotations

import unicodedata
from typing import Iterable

from .models import Player, Word


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_guess(text: str) -> str:
    return strip_accents(text or "").strip().lower()


def is_near_miss(secret: str, guess: str) -> bool:
    """True when ``guess`` is one character away from ``secret``.

    Same length: exactly one differing position. Length off by one: the longer
    word may hold a single unmatched character; characters past the end of the
    shorter word are not compared.
    """
    if abs(len(secret) - len(guess)) > 1:
        return False

    if len(secret) == len(guess):
        differences = sum(1 for a, b in zip(secret, guess) if a != b)
        return differences == 1

    longer, shorter = (secret, guess) if len(secret) > len(guess) else (guess, secret)
    i = j = 0
    skipped = False
    while i < len(longer) and j < len(shorter):
        if longer[i] != shorter[j]:
            if skipped:
                return False
            skipped = True
            i += 1
            continue
        i += 1
        j += 1
    return True


def compute_score(word: Word, remaining_seconds: int, guess_order: int, total_players: int) -> int:
    """Points for a correct guess.

    Base 10 for easy words and 20 otherwise, plus half the remaining seconds,
    plus 5 points per player still behind this guesser (order 1 is first).
    """
    base = 10 if word.is_easy else 20
    time_bonus = remaining_seconds // 2
    order_bonus = max(0, (total_players - guess_order + 1) * 5)
    return base + time_bonus + order_bonus


def rank_players(players: Iterable[Player]) -> list[Player]:
    # sorted() is stable, so ties keep join order
    return sorted(players, key=lambda p: p.score, reverse=True)


def standings(players: Iterable[Player]) -> list[str]:
    return [f"{i}. {p.name} - {p.score} points" for i, p in enumerate(rank_players(players), start=1)]
