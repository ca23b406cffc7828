"""Application owner wiring every service together."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine

from qiaomu.config import APP_NAME, Settings, settings
from qiaomu.errors import StorageError
from qiaomu.models.base import init_db, make_engine, make_session_factory
from qiaomu.models.navigation_models import ModuleName
from qiaomu.monitoring import start_monitoring
from qiaomu.services.dashboard_service import DashboardModule
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.feynman_service import FeynmanModule
from qiaomu.services.flashcard_service import WordsModule
from qiaomu.services.force_drill_service import ForceDrill
from qiaomu.services.module_registry import ModuleRegistry
from qiaomu.services.navigation_service import NavigationManager
from qiaomu.services.notification_service import (
    AudioCuePlayer,
    LoggingAudioCuePlayer,
    LoggingNotifier,
    LoggingRenderSurface,
    NotificationService,
    Notifier,
    RenderSurface,
)
from qiaomu.services.progress_service import ProgressService
from qiaomu.services.quiz_service import QuizModule
from qiaomu.services.scheduler_service import Clock, Scheduler, SchedulerService, SystemClock
from qiaomu.services.storage_service import StorageService
from qiaomu.services.user_service import UserService
from qiaomu.services.word_service import WordService


class QiaomuApp:
    """Main application class."""

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
        audio: Optional[AudioCuePlayer] = None,
        surface: Optional[RenderSurface] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        word_service: Optional[WordService] = None,
    ):
        """Initialize the application; services are built by start()."""
        self.settings = app_settings or settings
        self.notifier = notifier or LoggingNotifier()
        self.audio = audio or LoggingAudioCuePlayer()
        self.surface = surface or LoggingRenderSurface()
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or SchedulerService()
        self.word_service = word_service
        self.running = False
        self.visible = True
        self.engine: Optional[Engine] = None
        self.db = None
        self.event_bus: Optional[EventBus] = None
        self.storage: Optional[StorageService] = None
        self.progress: Optional[ProgressService] = None
        self.users: Optional[UserService] = None
        self.navigation: Optional[NavigationManager] = None
        self.registry: Optional[ModuleRegistry] = None
        self.notifications: Optional[NotificationService] = None
        self.logger = logging.getLogger(__name__)

    def build(self) -> None:
        """Construct the services in dependency order."""
        self.engine = make_engine(self.settings.storage)
        init_db(self.engine)
        self.db = make_session_factory(self.engine)()
        self.logger.info("Database initialized")

        self.event_bus = EventBus()
        self.notifications = NotificationService(self.event_bus, self.notifier)
        self.event_bus.subscribe(Events.ERROR_OCCURRED, self._record_error)
        self.event_bus.subscribe(Events.USER_LOGIN, self._on_login)
        self.event_bus.subscribe(Events.USER_LOGOUT, self._on_logout)

        self.storage = StorageService(self.db, self.settings.storage)
        self.word_service = self.word_service or WordService(force_settings=self.settings.force)
        self.progress = ProgressService(self.storage, self.event_bus, self.clock, self.settings.ledger)
        # Restoring a stored session publishes user:login before the registry exists
        self.users = UserService(self.storage, self.event_bus, self.clock, self.settings.auth)
        self.navigation = NavigationManager(
            self.event_bus, self.users, self.storage, self.notifier, self.settings.navigation, self.clock
        )

        factories = {
            ModuleName.DASHBOARD: lambda: DashboardModule(self.progress, self.event_bus, self.surface),
            ModuleName.WORDS: lambda: WordsModule(
                self.progress, self.event_bus, self.word_service, self.surface
            ),
            ModuleName.FEYNMAN: lambda: FeynmanModule(
                self.progress, self.event_bus, self.storage, self.word_service,
                self.clock, self.settings.feynman, self.surface,
            ),
            ModuleName.FORCE: lambda: ForceDrill(
                self.progress, self.event_bus, self.scheduler, self.word_service,
                self.clock, self.settings.force, self.audio, self.surface,
            ),
            ModuleName.QUIZ: lambda: QuizModule(
                self.progress, self.event_bus, self.scheduler,
                quiz_settings=self.settings.quiz, surface=self.surface,
            ),
        }
        self.registry = ModuleRegistry(self.event_bus, factories)

        if self.users.is_logged_in():
            self.registry.activate(self.navigation.current_module)

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            self.build()
            await self.scheduler.start()
            self.logger.info("Scheduler service started")

            if self.settings.monitoring.port:
                start_monitoring(self.settings.monitoring.port)
                self.logger.info(f"Metrics exported on port {self.settings.monitoring.port}")

            self.running = True
            self.logger.info(f"{APP_NAME} started")

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self.stop(force=True)
            raise

    async def stop(self, force: bool = False) -> None:
        """Stop the application."""
        if not self.running and not force:
            return

        if self.registry:
            self.registry.shutdown()
            self.registry = None
        if self.notifications:
            self.notifications.close()
            self.notifications = None

        await self.scheduler.stop()
        self.logger.info("Scheduler service stopped")

        if self.db:
            self.db.close()
            self.db = None
            self.logger.info("Database session closed")
        if self.engine:
            self.engine.dispose()
            self.engine = None

        self.running = False

    def _on_login(self, session: Any = None) -> None:
        if self.registry is not None:
            self.registry.activate(self.navigation.current_module)

    def _on_logout(self) -> None:
        if self.registry is not None:
            self.registry.deactivate()
        if self.navigation is not None:
            self.navigation.module_history.clear()
            self.navigation.current_module = self.navigation.default_module

    def set_visible(self, visible: bool) -> None:
        """Pause countdowns while hidden and resume them when shown again."""
        if visible == self.visible:
            return
        self.visible = visible
        if visible:
            self.scheduler.resume()
        else:
            self.scheduler.pause()
        self.logger.info(f"Application {'visible' if visible else 'hidden'}")
        if self.event_bus is not None:
            self.event_bus.publish(Events.VISIBILITY_CHANGED, visible)

    def handle_error(self, error: Exception, context: str = "") -> None:
        """Report an unexpected error to the log, the user and the error log."""
        self.logger.error(f"Error in {context or 'application'}: {error}", exc_info=error)
        if self.event_bus is not None:
            self.event_bus.publish(Events.ERROR_OCCURRED, error, context)

    def _record_error(self, error: Exception, context: str = "") -> None:
        entry = {
            "message": str(error),
            "type": type(error).__name__,
            "context": context,
            "timestamp": self.clock.now().isoformat(),
            "user": self.users.current_user().username if self.users and self.users.is_logged_in() else None,
        }
        try:
            self.storage.append_capped(
                self.storage.keys.error_logs, entry, self.settings.navigation.max_error_logs
            )
        except StorageError as e:
            self.logger.warning(f"Error log not saved: {e}")

    def error_logs(self) -> list:
        logs = self.storage.get(self.storage.keys.error_logs)
        return logs if isinstance(logs, list) else []

    def sync_offline_data(self) -> int:
        """Synchronize data recorded offline; nothing is ever pending locally."""
        self.logger.debug("Offline sync requested, nothing to synchronize")
        return 0

    def app_state(self) -> Dict[str, Any]:
        user = self.users.current_user() if self.users else None
        return {
            "name": APP_NAME,
            "running": self.running,
            "visible": self.visible,
            "logged_in": user is not None,
            "user": user.username if user else None,
            "current_module": self.navigation.current_module.value if self.navigation else None,
            "active_module": self.registry.active.name.value if self.registry and self.registry.active else None,
            "active_timers": len(self.scheduler.timers),
            "schema_version": self.settings.storage.schema_version,
        }
