"""Synchronous publish/subscribe bus used for module lifecycle and learning events."""
import logging
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Dict, List, Optional

from qiaomu import monitoring

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Events:
    """Well-known event names."""
    # Module events
    MODULE_CHANGED = "module:changed"
    MODULE_LOADED = "module:loaded"
    MODULE_UNLOADED = "module:unloaded"

    # User events
    USER_LOGIN = "user:login"
    USER_LOGOUT = "user:logout"
    USER_UPDATED = "user:updated"

    # Learning events
    WORD_LEARNED = "learning:word"
    QUIZ_COMPLETED = "learning:quiz"
    FEYNMAN_COMPLETED = "learning:feynman"
    FORCE_COMPLETED = "learning:force"
    ACHIEVEMENT_UNLOCKED = "learning:achievement"

    # System events
    DATA_SAVED = "system:saved"
    DATA_LOADED = "system:loaded"
    ERROR_OCCURRED = "system:error"
    NOTIFICATION_SHOW = "system:notification"

    # Navigation events
    NAVIGATION_CHANGED = "nav:changed"
    NAVIGATION_REJECTED = "nav:rejected"

    # Force-drill events
    DRILL_PHASE = "drill:phase"
    DRILL_TICK = "drill:tick"
    DRILL_TIME_WARNING = "drill:time-warning"

    VISIBILITY_CHANGED = "app:visibility"


_subscription_ids = count(1)


@dataclass(eq=False)
class Subscription:
    """Handle returned by subscribe; identifies one registration."""
    event: str
    handler: Handler
    once: bool = False
    id: int = field(default_factory=lambda: next(_subscription_ids))
    bus: Optional["EventBus"] = field(default=None, repr=False)

    def unsubscribe(self) -> None:
        if self.bus is not None:
            self.bus.remove(self)


class EventBus:
    """Ordered, synchronous publish/subscribe register.

    Handlers run in subscription order on the publisher's call stack. A
    failing handler is logged and skipped; the publisher never sees it.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Subscription]] = {}

    def subscribe(self, event: str, handler: Handler) -> Subscription:
        """Register handler for event; repeated registrations are independent."""
        subscription = Subscription(event=event, handler=handler, bus=self)
        self._listeners.setdefault(event, []).append(subscription)
        return subscription

    def subscribe_once(self, event: str, handler: Handler) -> Subscription:
        """Register handler to run at most once, removed before it is invoked."""
        subscription = Subscription(event=event, handler=handler, once=True, bus=self)
        self._listeners.setdefault(event, []).append(subscription)
        return subscription

    def unsubscribe(self, event: str, handler: Optional[Handler] = None) -> None:
        """Remove every registration of handler, or all handlers of event."""
        if event not in self._listeners:
            return
        if handler is None:
            del self._listeners[event]
            return
        remaining = [s for s in self._listeners[event] if s.handler != handler]
        if remaining:
            self._listeners[event] = remaining
        else:
            del self._listeners[event]

    def remove(self, subscription: Subscription) -> bool:
        """Remove a single registration; returns False if it was already gone."""
        listeners = self._listeners.get(subscription.event)
        if not listeners or subscription not in listeners:
            return False
        listeners.remove(subscription)
        if not listeners:
            del self._listeners[subscription.event]
        return True

    def clear(self) -> None:
        """Remove all handlers of all events."""
        self._listeners.clear()

    def publish(self, event: str, *args: Any) -> None:
        """Invoke every handler of event in subscription order."""
        # Iterate a snapshot so handlers may (un)subscribe freely
        snapshot = list(self._listeners.get(event, ()))
        for subscription in snapshot:
            if subscription.once and not self.remove(subscription):
                # Already consumed by a re-entrant publish
                continue
            try:
                subscription.handler(*args)
            except Exception:
                monitoring.handler_errors.labels(event=event).inc()
                logger.exception(f"Event handler error [{event}]")

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def event_names(self) -> List[str]:
        return list(self._listeners)
