"""Models for the progress ledger and achievements."""
import copy
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List

from qiaomu.config import default_weekly_goals


class ActivityKind(Enum):
    """Kinds of activity the ledger counts."""
    WORD = "word"  # A flashcard word learned
    QUIZ = "quiz"  # A standard quiz finished
    FEYNMAN = "feynman"  # A Feynman explanation completed
    FORCE = "force"  # A force-drill challenge completed
    STUDY_TIME = "studyTime"  # Seconds of study time


# Weekly progress keys per counted activity; study time has no weekly entry
WEEKLY_KEYS: Dict[ActivityKind, str] = {
    ActivityKind.WORD: "words",
    ActivityKind.QUIZ: "quizzes",
    ActivityKind.FEYNMAN: "feynman",
    ActivityKind.FORCE: "force",
}


def empty_weekly_progress() -> Dict[str, int]:
    return {key: 0 for key in WEEKLY_KEYS.values()}


@dataclass
class ProgressLedger:
    """Persisted learning counters, streak and unlocked achievements."""
    words_learned: int = 0
    quizzes_taken: int = 0
    feynman_explanations: int = 0
    force_challenges: int = 0
    current_streak: int = 1
    best_streak: int = 1
    last_study_date: date = field(default_factory=date.today)
    total_study_time_seconds: int = 0
    achievements: List[str] = field(default_factory=list)
    weekly_goals: Dict[str, int] = field(default_factory=default_weekly_goals)
    weekly_progress: Dict[str, int] = field(default_factory=empty_weekly_progress)

    def counter(self, kind: ActivityKind) -> int:
        """Return the lifetime counter for an activity kind."""
        return getattr(self, _COUNTER_FIELDS[kind])

    def add(self, kind: ActivityKind, amount: int) -> None:
        """Increment the counter (and weekly progress) for an activity kind."""
        name = _COUNTER_FIELDS[kind]
        setattr(self, name, getattr(self, name) + amount)
        weekly_key = WEEKLY_KEYS.get(kind)
        if weekly_key is not None:
            self.weekly_progress[weekly_key] = self.weekly_progress.get(weekly_key, 0) + amount

    def copy(self) -> "ProgressLedger":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wordsLearned": self.words_learned,
            "quizzesTaken": self.quizzes_taken,
            "feynmanExplanations": self.feynman_explanations,
            "forceChallenges": self.force_challenges,
            "currentStreak": self.current_streak,
            "bestStreak": self.best_streak,
            "lastStudyDate": self.last_study_date.isoformat(),
            "totalStudyTimeSeconds": self.total_study_time_seconds,
            "achievements": list(self.achievements),
            "weeklyGoals": dict(self.weekly_goals),
            "weeklyProgress": dict(self.weekly_progress),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressLedger":
        """Build a ledger from its persisted form.

        Raises ValueError, TypeError or KeyError when the record is corrupt.
        """
        counters = {
            name: int(data[key])
            for name, key in (
                ("words_learned", "wordsLearned"),
                ("quizzes_taken", "quizzesTaken"),
                ("feynman_explanations", "feynmanExplanations"),
                ("force_challenges", "forceChallenges"),
                ("total_study_time_seconds", "totalStudyTimeSeconds"),
            )
        }
        if any(value < 0 for value in counters.values()):
            raise ValueError("Ledger counters cannot be negative")

        current_streak = max(1, int(data["currentStreak"]))
        best_streak = max(current_streak, int(data["bestStreak"]))

        achievements: List[str] = []
        for achievement_id in data["achievements"]:
            if not isinstance(achievement_id, str):
                raise TypeError(f"Achievement id must be a string, got {achievement_id!r}")
            if achievement_id not in achievements:
                achievements.append(achievement_id)

        return cls(
            current_streak=current_streak,
            best_streak=best_streak,
            last_study_date=date.fromisoformat(data["lastStudyDate"]),
            achievements=achievements,
            weekly_goals={str(k): int(v) for k, v in data["weeklyGoals"].items()},
            weekly_progress={str(k): int(v) for k, v in data["weeklyProgress"].items()},
            **counters,
        )


_COUNTER_FIELDS: Dict[ActivityKind, str] = {
    ActivityKind.WORD: "words_learned",
    ActivityKind.QUIZ: "quizzes_taken",
    ActivityKind.FEYNMAN: "feynman_explanations",
    ActivityKind.FORCE: "force_challenges",
    ActivityKind.STUDY_TIME: "total_study_time_seconds",
}


@dataclass(frozen=True)
class Achievement:
    """Static achievement definition; only its id is ever persisted."""
    id: str
    name: str
    description: str
    icon: str
    metric: Callable[[ProgressLedger], int]
    target: int

    def is_met(self, ledger: ProgressLedger) -> bool:
        return self.metric(ledger) >= self.target

    def progress(self, ledger: ProgressLedger) -> Dict[str, int]:
        return {"current": self.metric(ledger), "target": self.target}


@dataclass
class RecordResult:
    """Outcome of a ledger mutation."""
    ledger: ProgressLedger
    unlocked: List[Achievement] = field(default_factory=list)
    saved: bool = True


@dataclass
class Efficiency:
    """Study efficiency derived from the ledger."""
    words_per_minute: float
    quizzes_per_hour: float
    study_hours: float
    band: str  # "high", "medium" or "low"
