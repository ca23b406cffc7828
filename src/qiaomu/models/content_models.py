"""Static reference content: vocabulary words and quiz questions."""
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class Word:
    """Vocabulary entry used by every learning module."""
    word: str
    phonetic: str
    definition: str
    etymology: str
    sentence: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Word":
        return cls(
            word=data["word"],
            phonetic=data["phonetic"],
            definition=data["definition"],
            etymology=data["etymology"],
            sentence=data["sentence"],
        )


@dataclass(frozen=True)
class QuizQuestion:
    """Question of the standard multiple-choice quiz."""
    question: str
    options: List[str]
    correct_answer: int
    explanation: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizQuestion":
        options = list(data["options"])
        correct_answer = int(data["correctAnswer"])
        if not 0 <= correct_answer < len(options):
            raise ValueError(f"Correct answer index {correct_answer} out of range")
        return cls(
            question=data["question"],
            options=options,
            correct_answer=correct_answer,
            explanation=data.get("explanation", ""),
        )


@dataclass
class QuizResult:
    """Outcome of one run through the standard quiz."""
    correct: int
    total: int
    percentage: int
    passed: bool
    elapsed_seconds: int
    timed_out: bool = False
    answers: Dict[int, int] = field(default_factory=dict)
