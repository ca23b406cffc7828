"""Navigation between learning modules with role checks and history."""
import logging
from collections import Counter
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from qiaomu import monitoring
from qiaomu.config import NavigationSettings, settings
from qiaomu.errors import (
    NavigationBlocked,
    NavigationError,
    PermissionDenied,
    StorageError,
    UnknownModuleError,
)
from qiaomu.models.navigation_models import ModuleChange, ModuleName
from qiaomu.models.user_models import UserRole
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.notification_service import LoggingNotifier, Notifier
from qiaomu.services.scheduler_service import Clock, SystemClock
from qiaomu.services.storage_service import StorageService
from qiaomu.services.user_service import UserService
from qiaomu.utils import translate

logger = logging.getLogger(__name__)

Interceptor = Callable[[ModuleName, ModuleName], bool]

_EVERYONE = frozenset(UserRole)
_MEMBERS = frozenset({UserRole.ADMIN, UserRole.TEACHER, UserRole.STUDENT})

# Roles allowed to open each module; admin may open everything
MODULE_PERMISSIONS: Dict[ModuleName, FrozenSet[UserRole]] = {
    ModuleName.DASHBOARD: _EVERYONE,
    ModuleName.WORDS: _EVERYONE,
    ModuleName.FEYNMAN: _MEMBERS,
    ModuleName.FORCE: _MEMBERS,
    ModuleName.QUIZ: _EVERYONE,
}


class NavigationManager:
    """Tracks the current module and validates every transition."""

    def __init__(
        self,
        event_bus: EventBus,
        user_service: UserService,
        storage: StorageService,
        notifier: Optional[Notifier] = None,
        navigation_settings: Optional[NavigationSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.event_bus = event_bus
        self.user_service = user_service
        self.storage = storage
        self.notifier = notifier or LoggingNotifier()
        self.settings = navigation_settings or settings.navigation
        self.clock = clock or SystemClock()
        self.default_module = ModuleName(self.settings.default_module)
        self.current_module = self.default_module
        self.module_history: List[ModuleName] = []
        self.interceptor: Optional[Interceptor] = None

    def has_module_permission(self, module: ModuleName) -> bool:
        role = self.user_service.current_role()
        if role is None:
            return False
        if role == UserRole.ADMIN:
            return True
        return role in MODULE_PERMISSIONS.get(module, frozenset())

    def check_access(self, name: str) -> ModuleName:
        """Resolve name to a module the current user may open right now.

        Raises UnknownModuleError, PermissionDenied or NavigationBlocked.
        """
        target = ModuleName.parse(name)
        if target is None:
            raise UnknownModuleError(f"無效的模組名稱: {name}", str(name))

        if not self.has_module_permission(target):
            role = self.user_service.current_role()
            raise PermissionDenied(
                translate("permission_denied"), target.value, role.value if role else None
            )

        if self.interceptor is not None and not self.interceptor(self.current_module, target):
            raise NavigationBlocked(
                f"Navigation from {self.current_module.value} to {target.value} was blocked",
                target.value,
            )
        return target

    def navigate_to(self, name: str, add_to_history: bool = True) -> bool:
        """Switch to module name; returns False when the move is rejected."""
        try:
            target = self.check_access(name)
        except NavigationError as e:
            self._reject(e)
            return False

        previous = self.current_module
        if target == previous:
            return True

        if add_to_history:
            self._add_to_history(previous)
        self.current_module = target

        logger.info(f"Navigation: {previous.value} -> {target.value}")
        self.event_bus.publish(Events.MODULE_CHANGED, ModuleChange(previous=previous, current=target))
        self.event_bus.publish(Events.NAVIGATION_CHANGED, {"from": previous.value, "to": target.value})
        self._log_navigation(previous, target)
        return True

    def _reject(self, error: NavigationError) -> None:
        logger.warning(f"Navigation to {error.target!r} rejected ({error.reason}): {error}")
        monitoring.navigation_rejected.labels(reason=error.reason).inc()
        self.notifier.show_notice(str(error), "error")
        self.event_bus.publish(Events.NAVIGATION_REJECTED, error)

    def _add_to_history(self, module: ModuleName) -> None:
        self.module_history.insert(0, module)
        del self.module_history[self.settings.max_history_size:]

    def go_back(self) -> bool:
        """Return to the most recent module without recording history."""
        if not self.module_history:
            return False
        previous = self.module_history.pop(0)
        return self.navigate_to(previous.value, add_to_history=False)

    def reset_to_home(self) -> bool:
        self.module_history.clear()
        return self.navigate_to(self.default_module.value)

    def can_go_back(self) -> bool:
        return len(self.module_history) > 0

    def history(self) -> List[ModuleName]:
        return list(self.module_history)

    def set_interceptor(self, interceptor: Interceptor) -> None:
        """Install a predicate consulted with (from, to) before each move."""
        self.interceptor = interceptor

    def remove_interceptor(self) -> None:
        self.interceptor = None

    # -------------------------------------------------------------------------
    # Navigation log
    # -------------------------------------------------------------------------

    def _log_navigation(self, previous: ModuleName, target: ModuleName) -> None:
        user = self.user_service.current_user()
        entry = {
            "type": "navigation",
            "from": previous.value,
            "to": target.value,
            "timestamp": self.clock.now().isoformat(),
            "user": user.username if user else "anonymous",
        }
        try:
            self.storage.append_capped(
                self.storage.keys.navigation_stats, entry, self.settings.max_log_entries
            )
        except StorageError as e:
            logger.warning(f"Navigation log not saved: {e}")
            self.event_bus.publish(Events.ERROR_OCCURRED, e, "navigation")

    def navigation_log(self) -> List[Dict[str, Any]]:
        try:
            entries = self.storage.get(self.storage.keys.navigation_stats)
        except StorageError as e:
            logger.warning(f"Navigation log not readable: {e}")
            return []
        return entries if isinstance(entries, list) else []

    def most_used_modules(self, limit: int = 5) -> List[Dict[str, Any]]:
        """Most frequent navigation targets with their counts."""
        counts = Counter(entry.get("to") for entry in self.navigation_log() if isinstance(entry, dict))
        return [{"module": module, "count": count} for module, count in counts.most_common(limit)]

    def clear_navigation_stats(self) -> None:
        self.storage.remove(self.storage.keys.navigation_stats)
        self.module_history.clear()

    def destroy(self) -> None:
        """Drop history, the interceptor and the navigation log."""
        try:
            self.clear_navigation_stats()
        except StorageError as e:
            logger.warning(f"Navigation log not cleared: {e}")
        self.remove_interceptor()
        self.module_history.clear()
