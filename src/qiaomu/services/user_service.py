"""User service for mock authentication, profile and settings."""
import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional

from qiaomu.config import AuthSettings, settings
from qiaomu.errors import StorageError, ValidationError
from qiaomu.models.drill_models import Difficulty
from qiaomu.models.user_models import (
    SETTINGS_FIELDS,
    UserProfile,
    UserRole,
    UserSession,
    UserSettings,
)
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.scheduler_service import Clock, SystemClock
from qiaomu.services.storage_service import StorageService
from qiaomu.utils import TRANSLATIONS, format_time, generate_session_id

# Configure logging
logger = logging.getLogger(__name__)

# username -> (password, role)
CREDENTIALS = {
    "admin": ("stustai", UserRole.ADMIN),
    "student": ("demo123", UserRole.STUDENT),
    "teacher": ("teacher123", UserRole.TEACHER),
    "guest": ("guest", UserRole.GUEST),
}

ROLE_PERMISSIONS = {
    UserRole.ADMIN: {"all"},
    UserRole.TEACHER: {"view_stats", "manage_content"},
    UserRole.STUDENT: {"view_own_progress"},
    UserRole.GUEST: {"basic_access"},
}

PROFILE_FIELDS = {"name", "email"}


class UserService:
    """Service for the logged-in user and their settings."""

    def __init__(
        self,
        storage: StorageService,
        event_bus: EventBus,
        clock: Optional[Clock] = None,
        auth_settings: Optional[AuthSettings] = None,
    ):
        """Initialize the service and restore a stored session."""
        self.storage = storage
        self.event_bus = event_bus
        self.clock = clock or SystemClock()
        self.settings = auth_settings or settings.auth
        self.keys = storage.keys
        self.session: Optional[UserSession] = None
        self.profile: Optional[UserProfile] = None
        self.restore_session()

    def restore_session(self) -> bool:
        """Resume the session persisted by a previous login."""
        data = self.storage.load(self.keys.session)
        if not data:
            return False
        try:
            session = UserSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable stored session: {e}")
            return False

        profile_data = self.storage.load(self.keys.user_data)
        try:
            profile = UserProfile.from_dict(profile_data) if profile_data else None
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable stored profile: {e}")
            profile = None

        self.session = session
        self.profile = profile or self._default_profile(session)
        logger.info(f"Restored session of {session.username}")
        self.event_bus.publish(Events.USER_LOGIN, session)
        return True

    def _default_profile(self, session: UserSession) -> UserProfile:
        return UserProfile(
            name=session.username,
            email=f"{session.username}@{self.settings.email_domain}",
            login_time=session.login_time,
        )

    @staticmethod
    def validate_credentials(username: str, password: str) -> Optional[UserRole]:
        """Role of a matching credential pair, or None."""
        entry = CREDENTIALS.get(username)
        if entry is None or entry[0] != password:
            return None
        return entry[1]

    async def login(self, username: str, password: str) -> UserSession:
        """Authenticate against the fixed credential table.

        Raises ValidationError for missing, too short or wrong input.
        """
        username = (username or "").strip()
        password = (password or "").strip()

        if not username:
            raise ValidationError("請輸入使用者名稱")
        if not password:
            raise ValidationError("請輸入密碼")
        if len(username) < self.settings.min_username_length:
            raise ValidationError(
                f"使用者名稱至少需要 {self.settings.min_username_length} 個字元"
            )

        # Simulated network round trip
        await asyncio.sleep(self.settings.login_delay)

        role = self.validate_credentials(username, password)
        if role is None:
            logger.info(f"Failed login attempt for {username}")
            raise ValidationError("帳號或密碼錯誤，請重新輸入")

        login_time = self.clock.now().isoformat()
        session = UserSession(
            username=username,
            role=role,
            login_time=login_time,
            session_id=generate_session_id(),
        )
        profile = UserProfile(
            name=username,
            email=f"{username}@{self.settings.email_domain}",
            login_time=login_time,
        )

        try:
            self.storage.save(self.keys.session, session.to_dict())
            self.storage.save(self.keys.user_data, profile.to_dict())
        except StorageError as e:
            logger.error(f"Login of {username} not persisted: {e}")
            self.event_bus.publish(Events.ERROR_OCCURRED, e, "login")
            raise

        self.session = session
        self.profile = profile
        logger.info(f"User {username} logged in as {role.value}")
        self.event_bus.publish(Events.USER_LOGIN, session)
        return session

    def logout(self) -> None:
        """End the session and forget the stored profile."""
        if self.session is None:
            return
        username = self.session.username
        try:
            self.storage.remove(self.keys.session)
            self.storage.remove(self.keys.user_data)
        except StorageError as e:
            logger.warning(f"Stored session of {username} not removed: {e}")
        self.session = None
        self.profile = None
        logger.info(f"User {username} logged out")
        self.event_bus.publish(Events.USER_LOGOUT)

    def current_user(self) -> Optional[UserSession]:
        return self.session

    def current_role(self) -> Optional[UserRole]:
        return self.session.role if self.session else None

    def is_logged_in(self) -> bool:
        return self.session is not None

    def validate_session(self) -> bool:
        """Check that the stored session id still matches the current one."""
        if self.session is None:
            return False
        stored = self.storage.load(self.keys.session)
        return bool(stored) and stored.get("sessionId") == self.session.session_id

    def refresh_session(self) -> Optional[str]:
        """Issue a new session id for the current user.

        Returns None when nobody is logged in or the new id was not stored.
        """
        if self.session is None:
            return None
        session = replace(self.session, session_id=generate_session_id())
        if not self._persist(self.keys.session, session.to_dict(), "session"):
            return None
        self.session = session
        return session.session_id

    def update_profile(self, **updates: Any) -> UserProfile:
        """Change the display name or email of the current user.

        When the profile cannot be stored the current one is kept and returned.
        """
        if self.profile is None:
            raise ValidationError("Not logged in")
        unknown = set(updates) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        for name, value in updates.items():
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Profile field {name} cannot be empty")

        profile = replace(self.profile, **{name: value.strip() for name, value in updates.items()})
        return self._commit_profile(profile)

    def update_preferences(self, preferences: Dict[str, Any]) -> Dict[str, Any]:
        if self.profile is None:
            raise ValidationError("Not logged in")
        profile = replace(self.profile, preferences={**self.profile.preferences, **preferences})
        return self._commit_profile(profile).preferences

    def _commit_profile(self, profile: UserProfile) -> UserProfile:
        if self._persist(self.keys.user_data, profile.to_dict(), "profile"):
            self.profile = profile
            self.event_bus.publish(Events.USER_UPDATED, profile)
        return self.profile

    def _persist(self, key: str, data: Any, context: str) -> bool:
        """Save data under key; on failure report it and return False."""
        try:
            self.storage.save(key, data)
        except StorageError as e:
            logger.error(f"User {context} not saved: {e}")
            self.event_bus.publish(Events.ERROR_OCCURRED, e, context)
            return False
        return True

    def has_permission(self, permission: str) -> bool:
        if self.session is None:
            return False
        permissions = ROLE_PERMISSIONS.get(self.session.role, set())
        return "all" in permissions or permission in permissions

    # -------------------------------------------------------------------------
    # Application settings
    # -------------------------------------------------------------------------

    def get_settings(self) -> UserSettings:
        defaults = UserSettings().to_dict()
        data = self.storage.load(self.keys.settings, defaults)
        try:
            return UserSettings.from_dict(self._validate_settings(data))
        except ValidationError as e:
            logger.warning(f"Stored settings invalid, using defaults: {e}")
            return UserSettings()

    def update_settings(self, updates: Dict[str, Any]) -> UserSettings:
        """Merge updates (camelCase keys) into the stored settings.

        Returns the stored settings, unchanged when the write failed.
        """
        self._validate_settings(updates)
        current = self.get_settings()
        merged = {**current.to_dict(), **updates}
        if not self._persist(self.keys.settings, merged, "settings"):
            return current
        self.event_bus.publish(Events.DATA_SAVED, {"type": "settings", "data": merged})
        return UserSettings.from_dict(merged)

    @staticmethod
    def _validate_settings(data: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(data) - set(SETTINGS_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        for key in ("autoSave", "notifications", "studyReminders"):
            if key in data and not isinstance(data[key], bool):
                raise ValidationError(f"{key} must be true or false")

        if "difficultyLevel" in data and data["difficultyLevel"] not in {d.value for d in Difficulty}:
            raise ValidationError(f"Unknown difficulty level: {data['difficultyLevel']}")

        if "preferredLanguage" in data and data["preferredLanguage"] not in TRANSLATIONS:
            raise ValidationError(f"Unsupported language: {data['preferredLanguage']}")

        if "studyGoalMinutes" in data:
            minutes = data["studyGoalMinutes"]
            if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 1:
                raise ValidationError("studyGoalMinutes must be a positive integer")

        return data

    def user_stats(self) -> Optional[Dict[str, Any]]:
        """Details of the current session."""
        if self.session is None:
            return None
        login_time = datetime.fromisoformat(self.session.login_time)
        duration = max(0, int((self.clock.now() - login_time).total_seconds()))
        return {
            "username": self.session.username,
            "email": self.profile.email if self.profile else None,
            "role": self.session.role.value,
            "login_time": self.session.login_time,
            "session_duration": duration,
            "session_duration_formatted": format_time(duration),
        }
