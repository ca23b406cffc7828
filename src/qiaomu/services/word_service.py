"""Service for the static vocabulary and quiz reference data."""
import json
import logging
import random
from pathlib import Path
from typing import List, Optional

from qiaomu.config import ForceSettings, QUIZ_QUESTIONS_FILE, WORDS_FILE, settings
from qiaomu.errors import ConfigurationError, ValidationError
from qiaomu.models.content_models import QuizQuestion, Word
from qiaomu.models.drill_models import Difficulty
from qiaomu.utils import shuffled

logger = logging.getLogger(__name__)


def load_words(path: Path = WORDS_FILE) -> List[Word]:
    """Load the reference word list; word texts must be unique."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    words = [Word.from_dict(item) for item in raw]
    seen = set()
    for word in words:
        key = word.word.lower()
        if key in seen:
            raise ValidationError(f"Duplicate reference word: {word.word}")
        seen.add(key)
    logger.info(f"Loaded {len(words)} reference words from {path}")
    return words


def load_quiz_questions(path: Path = QUIZ_QUESTIONS_FILE) -> List[QuizQuestion]:
    """Load the standard quiz question set."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    return [QuizQuestion.from_dict(item) for item in raw]


class WordService:
    """Service for looking up and drawing reference words."""

    def __init__(
        self,
        words: Optional[List[Word]] = None,
        force_settings: Optional[ForceSettings] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the service with the reference word list."""
        self.words = list(words) if words is not None else load_words()
        self.force_settings = force_settings or settings.force
        self.rng = rng or random.Random()

    def get_word(self, index: int) -> Word:
        """Get a word by its position in the reference list."""
        return self.words[index]

    def get_word_by_text(self, text: str) -> Optional[Word]:
        """Get a word by its text, ignoring case."""
        text = text.lower()
        return next((word for word in self.words if word.word.lower() == text), None)

    def get_word_count(self) -> int:
        return len(self.words)

    def filter_by_difficulty(self, difficulty: Difficulty) -> List[Word]:
        """Words allowed at a difficulty: short words for easy, long ones for hard."""
        if difficulty == Difficulty.EASY:
            return [w for w in self.words if len(w.word) <= self.force_settings.easy_max_length]
        if difficulty == Difficulty.HARD:
            return [w for w in self.words if len(w.word) >= self.force_settings.hard_min_length]
        return list(self.words)

    def draw_words(self, count: int, difficulty: Difficulty = Difficulty.NORMAL) -> List[Word]:
        """Draw count distinct words for a difficulty.

        Raises ConfigurationError when the filtered pool is too small.
        """
        pool = self.filter_by_difficulty(difficulty)
        if len(pool) < count:
            raise ConfigurationError(
                f"Only {len(pool)} {difficulty.value} words available, {count} requested"
            )
        return shuffled(pool, self.rng)[:count]

    def get_random_words(self, count: int, exclude: Optional[List[str]] = None) -> List[Word]:
        """Random words from the full reference set, skipping excluded texts."""
        excluded = {text.lower() for text in (exclude or [])}
        candidates = [w for w in self.words if w.word.lower() not in excluded]
        if len(candidates) < count:
            raise ConfigurationError(
                f"Need {count} distractor words but only {len(candidates)} are available"
            )
        return self.rng.sample(candidates, count)
