"""Line protocol spoken over each client connection.

Every message is one UTF-8 line ``PREFIX:payload``. ``PODIUM`` is the only
message whose payload spans several lines.
"""
from __future__ import annotations

from typing import Iterable


# client -> server
CHOSEN_WORD = "CHOSEN_WORD:"
CHAT = "CHAT:"
DRAW = "DRAW:"
CLEAR = "CLEAR:"

# server -> client
ROLE = "ROLE:"
NEW_DRAWER = "NOUVEAU_DESSINATEUR:"
WORD_CHOICES = "CHOIX_MOTS:"
WORD_CONFIRMED = "CHOSEN_WORD_CONFIRMED:"
TIME_LEFT = "TEMPS:"
TIME_UP = "TEMPS_ECOULE:"
REVEAL_LETTER = "REVEAL_LETTER:"
HINT = "HINT:"
GUESS_CORRECT = "GUESS_CORRECT:"
NOTIFICATION = "NOTIFICATION:"
ROUND_OVER = "FIN_MANCHE:"
PODIUM = "PODIUM:"

ROLE_DRAWER = "drawer"
ROLE_GUESSER = "guesser"


def role(is_drawer: bool) -> str:
    return ROLE + (ROLE_DRAWER if is_drawer else ROLE_GUESSER)


def new_drawer(name: str) -> str:
    return NEW_DRAWER + name


def word_choices(words: Iterable[str]) -> str:
    return WORD_CHOICES + ",".join(words)


def word_confirmed(view: str) -> str:
    return WORD_CONFIRMED + view


def time_left(seconds: int) -> str:
    return f"{TIME_LEFT}{seconds}"


def time_up() -> str:
    return TIME_UP + "Time is up!"


def reveal_letter(n: int) -> str:
    return f"{REVEAL_LETTER}{n}"


def hint(mask: str) -> str:
    return HINT + mask


def guess_correct(text: str) -> str:
    return GUESS_CORRECT + text


def notification(text: str) -> str:
    return NOTIFICATION + text


def chat(name: str, text: str) -> str:
    return f"{CHAT}{name}: {text}"


def near_miss() -> str:
    return CHAT + "[Hint] Almost there!"


def round_over(word: str) -> str:
    return f"{ROUND_OVER}The word was: {word}"


def podium(lines: Iterable[str]) -> str:
    return "\n".join([PODIUM, *lines])


def clear() -> str:
    return CLEAR


def mask_word(word: str, revealed: Iterable[int] = ()) -> str:
    """Hide every letter of ``word`` except the ``revealed`` positions.

    Spaces, hyphens and apostrophes stay visible so guessers see the word shape.
    """
    shown = set(revealed)
    return "".join(
        ch if (i in shown or not ch.isalnum()) else "_"
        for i, ch in enumerate(word)
    )
