"""Error taxonomy shared by the services."""


class QiaomuError(Exception):
    """Base class for all errors raised by the learning core."""


class ConfigurationError(QiaomuError, ValueError):
    """Invalid settings or force-drill parameters; blocks the requested start."""


class StorageError(QiaomuError):
    """Read or write failure against the persistent key-value store."""


class ValidationError(QiaomuError, ValueError):
    """Malformed input (import payloads, login form, settings updates)."""


class NavigationError(QiaomuError):
    """A navigation request that was refused."""

    reason = "rejected"

    def __init__(self, message: str, target: str):
        super().__init__(message)
        self.target = target


class UnknownModuleError(NavigationError, ValidationError):
    """Navigation to a name outside the fixed module set."""

    reason = "unknown_module"


class PermissionDenied(NavigationError):
    """The current role may not open the requested module."""

    reason = "permission"

    def __init__(self, message: str, target: str, role: str | None):
        super().__init__(message, target)
        self.role = role


class NavigationBlocked(NavigationError):
    """A registered interceptor vetoed the transition."""

    reason = "interceptor"


class DrillStateError(QiaomuError):
    """A force-drill operation issued in the wrong phase."""
