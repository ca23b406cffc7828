"""Models for users, sessions and preferences."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class UserRole(str, Enum):
    """Roles of the mock credential table."""
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    GUEST = "guest"


def default_preferences() -> Dict[str, Any]:
    return {
        "theme": "auto",
        "language": "zh-TW",
        "notifications": True,
        "soundEffects": True,
        "studyReminders": True,
    }


@dataclass
class UserSession:
    """Locally generated login session; never validated by a server."""
    username: str
    role: UserRole
    login_time: str
    session_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "role": self.role.value,
            "loginTime": self.login_time,
            "sessionId": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSession":
        return cls(
            username=data["username"],
            role=UserRole(data["role"]),
            login_time=data["loginTime"],
            session_id=data["sessionId"],
        )


@dataclass
class UserProfile:
    """Display profile of the logged-in user."""
    name: str
    email: str
    login_time: str
    preferences: Dict[str, Any] = field(default_factory=default_preferences)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "loginTime": self.login_time,
            "preferences": dict(self.preferences),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            name=data["name"],
            email=data["email"],
            login_time=data["loginTime"],
            preferences={**default_preferences(), **data.get("preferences", {})},
        )


# Persisted (camelCase) key -> attribute name
SETTINGS_FIELDS = {
    "autoSave": "auto_save",
    "notifications": "notifications",
    "studyReminders": "study_reminders",
    "difficultyLevel": "difficulty_level",
    "preferredLanguage": "preferred_language",
    "studyGoalMinutes": "study_goal_minutes",
}


@dataclass
class UserSettings:
    """Application settings record."""
    auto_save: bool = True
    notifications: bool = True
    study_reminders: bool = True
    difficulty_level: str = "normal"
    preferred_language: str = "zh-TW"
    study_goal_minutes: int = 30

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, name) for key, name in SETTINGS_FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSettings":
        return cls(**{name: data[key] for key, name in SETTINGS_FIELDS.items() if key in data})
