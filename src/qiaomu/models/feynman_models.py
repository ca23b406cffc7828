"""Models for the Feynman explanation exercise."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class FeynmanPhase(str, Enum):
    """Steps of one explanation exercise."""
    SELECT = "select"  # Choosing a word
    EXPLAIN = "explain"  # Writing the explanation
    EVALUATE = "evaluate"  # Comparing with the reference and self-rating


@dataclass(frozen=True)
class Suggestion:
    """Improvement hint for a submitted explanation."""
    type: str
    title: str
    content: str


@dataclass
class FeynmanRecord:
    """Completed exercise as kept in the explanation history."""
    word: str
    explanation: str
    ratings: Dict[str, int] = field(default_factory=dict)
    study_time: int = 0
    timestamp: str = ""

    def average_rating(self) -> Optional[float]:
        """Mean of the given ratings, or None when nothing was rated."""
        if not self.ratings:
            return None
        return round(sum(self.ratings.values()) / len(self.ratings), 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.word,
            "explanation": self.explanation,
            "ratings": dict(self.ratings),
            "studyTime": self.study_time,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeynmanRecord":
        return cls(
            word=data["word"],
            explanation=data["explanation"],
            ratings={str(k): int(v) for k, v in data.get("ratings", {}).items()},
            study_time=int(data.get("studyTime", 0)),
            timestamp=data.get("timestamp", ""),
        )
