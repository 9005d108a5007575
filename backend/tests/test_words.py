import random

import pytest

from pictio.game.models import Word
from pictio.game.words import Lexicon, LexiconExhausted, LoadError, load_words


def test_load_words_skips_malformed_lines(caplog):
    lines = [
        "chat,easy",
        "",
        "# animals",
        "no-difficulty",
        "too,many,fields",
        " ,easy",
        "girafe, hard ",
        "CHAT,hard",
    ]
    words = load_words(lines)

    assert words == {Word("chat", "easy"), Word("girafe", "hard")}
    assert sum("malformed" in r.message for r in caplog.records) == 3


def test_load_words_from_file(tmp_path):
    path = tmp_path / "words.txt"
    path.write_text("éléphant,2\npomme,1\n", encoding="utf-8")

    words = load_words(path)

    assert {w.text for w in words} == {"éléphant", "pomme"}


def test_load_words_missing_file_raises(tmp_path):
    with pytest.raises(LoadError):
        load_words(tmp_path / "missing.txt")


def test_load_words_undecodable_file_raises(tmp_path):
    path = tmp_path / "words.txt"
    path.write_bytes(b"\xff\xfe\x00chat,easy\n\x80\x81")

    with pytest.raises(LoadError):
        load_words(path)


def test_difficulty_tiers():
    assert Word("chat", "easy").is_easy
    assert Word("chat", "1").is_easy
    assert not Word("chat", "hard").is_easy
    assert not Word("chat", "2").is_easy


def test_pick_random_reports_exhaustion():
    lexicon = Lexicon([Word("chat", "easy"), Word("pomme", "easy")], rng=random.Random(1))

    assert lexicon.pick_random(excluding={"chat"}) == Word("pomme", "easy")
    assert lexicon.pick_random(excluding={"CHAT", "pomme"}) is None
    assert not lexicon.is_empty


def test_empty_lexicon_is_distinct_from_exhausted():
    lexicon = Lexicon([])

    assert lexicon.is_empty
    assert len(lexicon) == 0
    assert lexicon.pick_random() is None


def test_pick_options_are_distinct_and_unused(lexicon):
    used = {"chat", "maison", "bateau"}
    for _ in range(20):
        options = lexicon.pick_options(2, used)
        assert len({w.key for w in options}) == 2
        assert not {w.key for w in options} & used


def test_pick_options_raises_when_too_few_left(lexicon):
    used = {w.key for w in lexicon.words[1:]}

    with pytest.raises(LexiconExhausted):
        lexicon.pick_options(2, used)


def test_find_is_case_insensitive(lexicon):
    assert lexicon.find("  CHAT ") == Word("chat", "easy")
    assert lexicon.find("unknown") is None


def test_default_lexicon_has_both_tiers():
    stats = Lexicon.default().stats()

    assert stats["total"] == stats["remaining"] > 0
    assert stats["byDifficulty"]["easy"] > 0
    assert stats["byDifficulty"]["hard"] > 0
