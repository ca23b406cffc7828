"""Models for the timed force-drill exercise."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from qiaomu.models.content_models import Word


class Difficulty(str, Enum):
    """Difficulty levels of a drill."""
    EASY = "easy"  # Short words, more time
    NORMAL = "normal"  # Any word, standard time
    HARD = "hard"  # Long words, less time


class DrillPhase(str, Enum):
    """Phases of a drill, in their only permitted order."""
    SETUP = "setup"
    MEMORIZE = "memorize"
    QUIZ = "quiz"
    RESULT = "result"


class QuizItemType(str, Enum):
    """Direction of a drill quiz item."""
    WORD_TO_DEFINITION = "definition"  # Show the word, pick its definition
    DEFINITION_TO_WORD = "word"  # Show the definition, pick the word


class Grade(str, Enum):
    """Grade bands of the overall drill score."""
    EXCELLENT = "excellent"
    GOOD = "good"
    PASSING = "passing"
    NEEDS_IMPROVEMENT = "needs_improvement"
    NEEDS_EFFORT = "needs_effort"

    @classmethod
    def for_score(cls, score: int) -> "Grade":
        if score >= 90:
            return cls.EXCELLENT
        if score >= 80:
            return cls.GOOD
        if score >= 70:
            return cls.PASSING
        if score >= 60:
            return cls.NEEDS_IMPROVEMENT
        return cls.NEEDS_EFFORT

    @property
    def label(self) -> str:
        return _GRADE_LABELS[self]


_GRADE_LABELS = {
    Grade.EXCELLENT: "優秀",
    Grade.GOOD: "良好",
    Grade.PASSING: "及格",
    Grade.NEEDS_IMPROVEMENT: "需改進",
    Grade.NEEDS_EFFORT: "需要努力",
}


@dataclass(frozen=True)
class DrillConfig:
    """Parameters chosen on the setup screen."""
    memorize_seconds: int
    quiz_seconds: int
    word_count: int
    difficulty: Difficulty = Difficulty.NORMAL


@dataclass
class QuizItem:
    """One drill question: a target word and four candidate words."""
    target: Word
    item_type: QuizItemType
    options: List[Word]
    selected_index: Optional[int] = None

    @property
    def correct_index(self) -> int:
        return next(i for i, option in enumerate(self.options) if option.word == self.target.word)

    @property
    def is_answered(self) -> bool:
        return self.selected_index is not None

    @property
    def is_correct(self) -> bool:
        return self.is_answered and self.options[self.selected_index].word == self.target.word

    @property
    def prompt(self) -> str:
        if self.item_type == QuizItemType.WORD_TO_DEFINITION:
            return self.target.word
        return self.target.definition

    @property
    def option_labels(self) -> List[str]:
        if self.item_type == QuizItemType.WORD_TO_DEFINITION:
            return [option.definition for option in self.options]
        return [option.word for option in self.options]


@dataclass
class DrillResult:
    """Scores computed when the quiz phase ends."""
    words_studied: int
    correct_answers: int
    memorize_seconds_spent: int
    quiz_seconds_spent: int
    total_seconds: int
    total_allowed: int
    accuracy: float
    speed_bonus: float
    overall_score: int
    grade: Grade


@dataclass
class DrillSession:
    """Ephemeral state of one drill attempt."""
    config: DrillConfig
    memorize_allowance: int
    quiz_allowance: int
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    phase: DrillPhase = DrillPhase.SETUP
    study_words: List[Word] = field(default_factory=list)
    quiz_items: List[QuizItem] = field(default_factory=list)
    remaining_memorize_seconds: int = 0
    remaining_quiz_seconds: int = 0
    current_index: int = 0
    score: int = 0
    memorize_started_at: Optional[datetime] = None
    quiz_started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[DrillResult] = None

    @property
    def current_item(self) -> Optional[QuizItem]:
        if self.phase != DrillPhase.QUIZ or self.current_index >= len(self.quiz_items):
            return None
        return self.quiz_items[self.current_index]
