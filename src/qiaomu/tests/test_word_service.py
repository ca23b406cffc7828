"""Tests for word service."""
import json
import random
from pathlib import Path

import pytest

from qiaomu.errors import ConfigurationError, ValidationError
from qiaomu.models.drill_models import Difficulty
from qiaomu.services.word_service import WordService, load_words


def test_reference_words():
    """Test that the bundled reference list loads without duplicates."""
    words = load_words()

    assert len(words) == 33
    assert len({word.word for word in words}) == 33
    assert all(word.definition and word.phonetic for word in words)


def test_duplicate_words_rejected(tmp_path: Path):
    """Test that a reference list with duplicates is refused."""
    entry = {"word": "adapt", "phonetic": "/əˈdæpt/", "definition": "適應", "etymology": "", "sentence": ""}
    path = tmp_path / "words.json"
    path.write_text(json.dumps([entry, entry]), encoding="utf-8")

    with pytest.raises(ValidationError):
        load_words(path)


def test_lookup(word_service: WordService):
    """Test looking up words by position and text."""
    first = word_service.get_word(0)

    assert word_service.get_word_by_text(first.word.upper()) == first
    assert word_service.get_word_by_text("zzz") is None


def test_filter_by_difficulty(word_service: WordService):
    """Test the word length filters."""
    easy = word_service.filter_by_difficulty(Difficulty.EASY)
    hard = word_service.filter_by_difficulty(Difficulty.HARD)

    assert easy and all(len(word.word) <= 6 for word in easy)
    assert hard and all(len(word.word) >= 8 for word in hard)
    assert len(word_service.filter_by_difficulty(Difficulty.NORMAL)) == 33


def test_draw_words(word_service: WordService):
    """Test drawing distinct words."""
    words = word_service.draw_words(10, Difficulty.HARD)

    assert len(words) == 10
    assert len({word.word for word in words}) == 10


def test_draw_too_many_words(word_service: WordService):
    """Test that a pool smaller than the request is a configuration error."""
    pool = len(word_service.filter_by_difficulty(Difficulty.EASY))

    with pytest.raises(ConfigurationError):
        word_service.draw_words(pool + 1, Difficulty.EASY)


def test_draw_is_reproducible():
    """Test that a seeded generator gives the same draw."""
    first = WordService(rng=random.Random(5)).draw_words(5)
    second = WordService(rng=random.Random(5)).draw_words(5)

    assert first == second


def test_random_words_exclude(word_service: WordService):
    """Test that excluded words are never returned."""
    target = word_service.get_word(0).word

    for _ in range(20):
        words = word_service.get_random_words(3, exclude=[target])
        assert target not in {word.word for word in words}
        assert len({word.word for word in words}) == 3


def test_random_words_too_few(word_service: WordService):
    """Test that too few candidates is a configuration error."""
    service = WordService(words=word_service.words[:3])

    with pytest.raises(ConfigurationError):
        service.get_random_words(3, exclude=[service.get_word(0).word])


if __name__ == "__main__":
    pytest.main([__file__])
