"""Service for user-facing notices, plus the presentation collaborators."""
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from qiaomu.errors import StorageError
from qiaomu.models.drill_models import DrillResult
from qiaomu.models.ledger_models import Achievement
from qiaomu.models.user_models import UserSession
from qiaomu.services.event_bus import EventBus, Events, Subscription
from qiaomu.utils import translate

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Shows short notices to the user."""

    @abstractmethod
    def show_notice(self, message: str, severity: str = "info", duration_ms: int = 3000) -> None:
        """Display message; severity is one of info, success, warning, error."""


class AudioCuePlayer(ABC):
    """Plays short sound cues."""

    @abstractmethod
    def play_cue(self, kind: str, volume: float = 0.3) -> None:
        """Play a cue such as success, error or notification."""


class RenderSurface(ABC):
    """Accepts rendered content for a named container."""

    @abstractmethod
    def render(self, container_id: str, content: Any) -> None:
        """Replace the content of container_id."""


_SEVERITY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class LoggingNotifier(Notifier):
    """Notifier writing notices to the log."""

    def show_notice(self, message: str, severity: str = "info", duration_ms: int = 3000) -> None:
        logger.log(_SEVERITY_LEVELS.get(severity, logging.INFO), f"[{severity}] {message}")


class LoggingAudioCuePlayer(AudioCuePlayer):
    def play_cue(self, kind: str, volume: float = 0.3) -> None:
        logger.debug(f"Audio cue: {kind} (volume {volume})")


class LoggingRenderSurface(RenderSurface):
    def render(self, container_id: str, content: Any) -> None:
        logger.debug(f"Render {container_id}: {content!r}")


class NotificationService:
    """Service turning learning and system events into notices."""

    def __init__(self, event_bus: EventBus, notifier: Optional[Notifier] = None, language: str = "zh-TW"):
        """Initialize the service and subscribe to the events it reports."""
        self.event_bus = event_bus
        self.notifier = notifier or LoggingNotifier()
        self.language = language
        self.subscriptions: List[Subscription] = [
            event_bus.subscribe(Events.ACHIEVEMENT_UNLOCKED, self.on_achievement),
            event_bus.subscribe(Events.ERROR_OCCURRED, self.on_error),
            event_bus.subscribe(Events.FORCE_COMPLETED, self.on_drill_completed),
            event_bus.subscribe(Events.FEYNMAN_COMPLETED, self.on_feynman_completed),
            event_bus.subscribe(Events.USER_LOGIN, self.on_login),
            event_bus.subscribe(Events.NOTIFICATION_SHOW, self.notify),
        ]

    def notify(self, message: str, severity: str = "info", duration_ms: int = 3000) -> None:
        self.notifier.show_notice(message, severity, duration_ms)

    def on_achievement(self, achievement: Achievement) -> None:
        message = translate("achievement_unlocked", self.language, name=achievement.name)
        self.notify(f"{message} - {achievement.description}", "success", 4000)

    def on_error(self, error: Exception, context: str = "") -> None:
        if isinstance(error, StorageError):
            message = translate("storage_failed", self.language)
        else:
            message = translate("error", self.language)
        self.notify(message, "error", 5000)

    def on_drill_completed(self, result: DrillResult) -> None:
        message = translate(
            "drill_finished", self.language, score=result.overall_score, grade=result.grade.label
        )
        self.notify(message, "success")

    def on_feynman_completed(self, record: Any = None) -> None:
        self.notify(translate("feynman_finished", self.language), "success")

    def on_login(self, session: UserSession) -> None:
        self.notify(f"{translate('welcome', self.language)}, {session.username}!", "success")

    def study_reminder_message(self, progress_service) -> str:
        """Build the study reminder text from the progress ledger."""
        ledger = progress_service.ledger
        weekly = progress_service.weekly_progress()

        message = (
            f"🔥 連續學習 {ledger.current_streak} 天（最佳 {ledger.best_streak} 天）\n\n"
            f"📊 本週進度:\n"
        )
        labels = {"words": "單字", "quizzes": "測驗", "feynman": "費曼", "force": "強迫學習"}
        for key, label in labels.items():
            entry = weekly[key]
            message += f"• {label}: {entry['current']}/{entry['goal']} ({entry['percentage']}%)\n"

        recommendations = progress_service.recommendations()
        if recommendations:
            message += f"\n💡 {recommendations[0]['title']}: {recommendations[0]['description']}"
        else:
            message += "\n🎉 本週目標都在進度上，繼續保持！"

        return message

    def close(self) -> None:
        """Unsubscribe from every event."""
        for subscription in self.subscriptions:
            subscription.unsubscribe()
        self.subscriptions.clear()
