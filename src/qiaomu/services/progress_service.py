"""Service owning the persisted progress ledger and achievement unlocks."""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from qiaomu import monitoring
from qiaomu.config import LedgerSettings, settings
from qiaomu.errors import StorageError, ValidationError
from qiaomu.models.ledger_models import (
    WEEKLY_KEYS,
    Achievement,
    ActivityKind,
    Efficiency,
    ProgressLedger,
    RecordResult,
    empty_weekly_progress,
)
from qiaomu.services.achievements import build_achievements
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.scheduler_service import Clock, SystemClock
from qiaomu.services.storage_service import StorageService
from qiaomu.utils import days_between, format_time, to_percentage

logger = logging.getLogger(__name__)

# Schema 1 field name -> schema 2 field name
V1_RENAMES = {
    "totalWordsLearned": "wordsLearned",
    "totalQuizzesTaken": "quizzesTaken",
    "totalFeynmanExplanations": "feynmanExplanations",
    "totalForceChallenges": "forceChallenges",
    "totalStudyTime": "totalStudyTimeSeconds",
    "progress": "weeklyProgress",
}

RECOMMENDATION_PRIORITY = {"high": 3, "medium": 2, "low": 1}


def _parse_study_date(value: Any) -> str:
    """Normalize a stored study date to ISO format.

    Schema 1 stored dates like "Mon Oct 19 2026".
    """
    if isinstance(value, str):
        try:
            return date.fromisoformat(value).isoformat()
        except ValueError:
            return datetime.strptime(value, "%a %b %d %Y").date().isoformat()
    raise ValueError(f"Unreadable study date: {value!r}")


def migrate_v1(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename the schema 1 ledger fields to their schema 2 names."""
    migrated = {}
    for key, value in data.items():
        migrated[V1_RENAMES.get(key, key)] = value
    if "lastStudyDate" in migrated:
        migrated["lastStudyDate"] = _parse_study_date(migrated["lastStudyDate"])
    return migrated


class ProgressService:
    """Service for recording learning activity in the progress ledger.

    Every mutation is written through to storage before it becomes visible:
    when the write fails the previous ledger stays in place.
    """

    def __init__(
        self,
        storage: StorageService,
        event_bus: EventBus,
        clock: Optional[Clock] = None,
        ledger_settings: Optional[LedgerSettings] = None,
    ):
        """Initialize the service and load the persisted ledger."""
        self.storage = storage
        self.event_bus = event_bus
        self.clock = clock or SystemClock()
        self.settings = ledger_settings or settings.ledger
        self.achievements: tuple[Achievement, ...] = build_achievements(self.settings.thresholds)
        self.key = storage.keys.learning_data
        self._ledger = self.load()

    @property
    def ledger(self) -> ProgressLedger:
        return self._ledger.copy()

    def default_ledger(self) -> ProgressLedger:
        """A fresh ledger dated today."""
        return ProgressLedger(
            last_study_date=self.clock.today(),
            weekly_goals=dict(self.settings.weekly_goals),
        )

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load(self) -> ProgressLedger:
        """Read the persisted ledger, falling back to defaults.

        Never raises. A missing record is created with default values.
        """
        defaults = self.default_ledger()
        default_data = defaults.to_dict()
        data = self.storage.load(self.key, default_data, migrations={1: migrate_v1})

        if data is default_data:
            self._ledger = defaults
            if self._record_stored():
                logger.error("Stored learning data unusable, using defaults and keeping the record")
                return defaults.copy()
            logger.info("No stored learning data, starting with defaults")
            try:
                self.storage.save(self.key, default_data)
            except StorageError as e:
                logger.warning(f"Could not persist default learning data: {e}")
            return defaults.copy()

        try:
            ledger = ProgressLedger.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Corrupt learning data, using defaults: {e}")
            ledger = defaults

        self._ledger = ledger
        self.event_bus.publish(Events.DATA_LOADED, {"type": "learning", "data": ledger.to_dict()})
        return ledger.copy()

    def _record_stored(self) -> bool:
        """True when a ledger record is stored, or when storage cannot tell."""
        try:
            return self.storage.exists(self.key)
        except StorageError as e:
            logger.warning(f"Could not check for stored learning data: {e}")
            return True

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _update_streak(self, ledger: ProgressLedger) -> None:
        today = self.clock.today()
        gap = days_between(ledger.last_study_date, today)
        if gap == 0:
            return
        if gap == 1:
            ledger.current_streak += 1
        else:
            ledger.current_streak = 1
        ledger.best_streak = max(ledger.best_streak, ledger.current_streak)
        ledger.last_study_date = today

    def _commit(self, candidate: ProgressLedger, change: str) -> bool:
        """Persist candidate and make it current; False if the write failed."""
        try:
            self.storage.save(self.key, candidate.to_dict())
        except StorageError as e:
            logger.error(f"Learning data not saved ({change}): {e}")
            self.event_bus.publish(Events.ERROR_OCCURRED, e, "learning")
            return False

        self._ledger = candidate
        self.event_bus.publish(Events.DATA_SAVED, {"type": change, "data": candidate.to_dict()})
        return True

    def record_activity(self, kind: ActivityKind, amount: int = 1) -> RecordResult:
        """Count an activity, update the streak and unlock achievements.

        Returns the resulting ledger with the achievements unlocked by this
        call, in declaration order.
        """
        if isinstance(kind, str):
            try:
                kind = ActivityKind(kind)
            except ValueError:
                raise ValidationError(f"Unknown activity kind: {kind}")
        if amount < 0:
            raise ValidationError(f"Activity amount cannot be negative: {amount}")

        candidate = self._ledger.copy()
        self._update_streak(candidate)
        candidate.add(kind, amount)

        unlocked = []
        for achievement in self.achievements:
            if achievement.id not in candidate.achievements and achievement.is_met(candidate):
                candidate.achievements.append(achievement.id)
                unlocked.append(achievement)

        if not self._commit(candidate, "learning"):
            return RecordResult(ledger=self.ledger, unlocked=[], saved=False)

        monitoring.activities_recorded.labels(kind=kind.value).inc()
        for achievement in unlocked:
            monitoring.achievements_unlocked.labels(achievement_id=achievement.id).inc()
            logger.info(f"Achievement unlocked: {achievement.id}")
            self.event_bus.publish(Events.ACHIEVEMENT_UNLOCKED, achievement)

        return RecordResult(ledger=self.ledger, unlocked=unlocked)

    def record_study_time(self, seconds: int) -> RecordResult:
        return self.record_activity(ActivityKind.STUDY_TIME, int(seconds))

    def set_weekly_goals(self, goals: Dict[str, int]) -> bool:
        """Merge new weekly targets into the current goals."""
        for key, value in goals.items():
            if key not in WEEKLY_KEYS.values():
                raise ValidationError(f"Unknown weekly goal: {key}")
            if not isinstance(value, int) or value < 0:
                raise ValidationError(f"Weekly goal {key} must be a non-negative integer")

        candidate = self._ledger.copy()
        candidate.weekly_goals.update(goals)
        return self._commit(candidate, "goals")

    def reset_weekly_progress(self) -> bool:
        """Zero the weekly progress counters."""
        candidate = self._ledger.copy()
        candidate.weekly_progress = empty_weekly_progress()
        return self._commit(candidate, "progress_reset")

    def reset_all(self, keep_achievements: bool = False) -> bool:
        """Replace the ledger with defaults, optionally keeping achievements."""
        candidate = self.default_ledger()
        if keep_achievements:
            candidate.achievements = list(self._ledger.achievements)
        return self._commit(candidate, "reset")

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def compute_efficiency(self) -> Efficiency:
        """Words per minute and quizzes per hour of recorded study time."""
        ledger = self._ledger
        seconds = ledger.total_study_time_seconds
        if seconds == 0:
            return Efficiency(words_per_minute=0, quizzes_per_hour=0, study_hours=0, band="low")

        words_per_minute = ledger.words_learned / (seconds / 60)
        quizzes_per_hour = ledger.quizzes_taken / (seconds / 3600)

        band = "low"
        if words_per_minute > 0.5:
            band = "high"
        elif words_per_minute > 0.2:
            band = "medium"

        return Efficiency(
            words_per_minute=round(words_per_minute, 2),
            quizzes_per_hour=round(quizzes_per_hour, 2),
            study_hours=round(seconds / 3600, 1),
            band=band,
        )

    def weekly_progress(self) -> Dict[str, Dict[str, int]]:
        """Current value, goal and percentage per weekly activity."""
        ledger = self._ledger
        progress = {}
        for key in WEEKLY_KEYS.values():
            current = ledger.weekly_progress.get(key, 0)
            goal = ledger.weekly_goals.get(key, 0)
            progress[key] = {
                "current": current,
                "goal": goal,
                "percentage": to_percentage(current, goal),
            }
        return progress

    def recommendations(self) -> List[Dict[str, str]]:
        """Suggested activities for weekly goals that are falling behind."""
        progress = self.weekly_progress()
        recommendations = []

        words = progress["words"]
        if words["percentage"] < 50:
            recommendations.append({
                "type": "words",
                "title": "繼續單字學習",
                "description": f"還需要學習 {max(0, words['goal'] - words['current'])} 個單字達成週目標",
                "priority": "high",
                "icon": "fas fa-book-open",
            })

        if progress["feynman"]["percentage"] < 30:
            recommendations.append({
                "type": "feynman",
                "title": "練習費曼講解",
                "description": "用自己的話解釋學過的單字，加深理解",
                "priority": "medium",
                "icon": "fas fa-chalkboard-teacher",
            })

        if progress["force"]["percentage"] < 30:
            recommendations.append({
                "type": "force",
                "title": "強迫學習挑戰",
                "description": "設定時間限制，提升學習效率",
                "priority": "medium",
                "icon": "fas fa-clock",
            })

        if progress["quizzes"]["percentage"] < 40:
            recommendations.append({
                "type": "quiz",
                "title": "完成學習測驗",
                "description": "測試你的學習成果，鞏固知識",
                "priority": "low",
                "icon": "fas fa-question-circle",
            })

        return sorted(recommendations, key=lambda r: -RECOMMENDATION_PRIORITY[r["priority"]])

    def achievements_overview(self) -> List[Dict[str, Any]]:
        """Every achievement with its unlocked flag and progress."""
        ledger = self._ledger
        return [
            {
                "id": achievement.id,
                "name": achievement.name,
                "description": achievement.description,
                "icon": achievement.icon,
                "unlocked": achievement.id in ledger.achievements,
                "progress": achievement.progress(ledger),
            }
            for achievement in self.achievements
        ]

    def stats_summary(self) -> Dict[str, Any]:
        ledger = self._ledger
        return {
            "total_words": ledger.words_learned,
            "total_quizzes": ledger.quizzes_taken,
            "total_feynman": ledger.feynman_explanations,
            "total_force": ledger.force_challenges,
            "current_streak": ledger.current_streak,
            "best_streak": ledger.best_streak,
            "total_study_time": ledger.total_study_time_seconds,
            "total_study_time_formatted": format_time(ledger.total_study_time_seconds),
            "achievement_count": len(ledger.achievements),
            "total_achievements": len(self.achievements),
        }

    def export(self) -> Dict[str, Any]:
        """Ledger snapshot for download."""
        return {
            "learningData": self._ledger.to_dict(),
            "achievements": self.achievements_overview(),
            "exportDate": self.clock.now().isoformat(),
            "version": self.storage.settings.schema_version,
        }
