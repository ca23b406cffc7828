"""Tests for the user service."""
import re

import pytest
from faker import Faker

from qiaomu.errors import StorageError, ValidationError
from qiaomu.models.user_models import UserRole
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.storage_service import StorageService
from qiaomu.services.user_service import UserService

fake = Faker()


@pytest.mark.asyncio
@pytest.mark.parametrize("username, password, role", [
    ("admin", "stustai", UserRole.ADMIN),
    ("student", "demo123", UserRole.STUDENT),
    ("teacher", "teacher123", UserRole.TEACHER),
    ("guest", "guest", UserRole.GUEST),
])
async def test_login(user_service: UserService, storage: StorageService, record_events,
                     username: str, password: str, role: UserRole) -> None:
    """Test logging in with each demo account."""
    recorder = record_events(Events.USER_LOGIN)

    session = await user_service.login(username, password)

    assert session.role == role
    assert re.fullmatch(r"session_\d+_[a-z0-9]{9}", session.session_id)
    assert session.login_time.startswith("2026-10-19T09:00:00")
    assert user_service.is_logged_in() is True
    assert user_service.current_role() == role
    assert user_service.profile.email == f"{username}@stust.edu.tw"
    assert storage.load(storage.keys.session)["sessionId"] == session.session_id
    assert recorder.of(Events.USER_LOGIN) == [(session,)]


@pytest.mark.asyncio
async def test_login_trims_input(user_service: UserService) -> None:
    """Test that surrounding whitespace is ignored."""
    session = await user_service.login("  student ", " demo123 ")

    assert session.username == "student"


@pytest.mark.asyncio
@pytest.mark.parametrize("username, password", [
    ("", "demo123"),
    ("student", ""),
    ("   ", "   "),
    ("ab", "demo123"),
    ("student", "wrong"),
    ("Student", "demo123"),
])
async def test_login_rejected(user_service: UserService, username: str, password: str) -> None:
    """Test that missing, short or wrong credentials are refused."""
    with pytest.raises(ValidationError):
        await user_service.login(username, password)
    assert user_service.is_logged_in() is False


@pytest.mark.asyncio
async def test_login_unknown_user(user_service: UserService) -> None:
    """Test that accounts outside the credential table are refused."""
    with pytest.raises(ValidationError):
        await user_service.login(f"{fake.user_name()}_unknown", fake.password())


@pytest.mark.asyncio
async def test_login_storage_failure(user_service: UserService, storage: StorageService,
                                     monkeypatch: pytest.MonkeyPatch, record_events) -> None:
    """Test that a login that cannot be persisted fails."""
    recorder = record_events(Events.ERROR_OCCURRED)

    def fail(key, data):
        raise StorageError("quota exceeded")

    monkeypatch.setattr(storage, "save", fail)

    with pytest.raises(StorageError):
        await user_service.login("student", "demo123")
    assert user_service.is_logged_in() is False
    assert recorder.of(Events.ERROR_OCCURRED)[0][1] == "login"


@pytest.mark.asyncio
async def test_logout(user_service: UserService, storage: StorageService, record_events) -> None:
    """Test that logout forgets the session."""
    recorder = record_events(Events.USER_LOGOUT)
    await user_service.login("student", "demo123")

    user_service.logout()
    user_service.logout()

    assert user_service.current_user() is None
    assert storage.get(storage.keys.session) is None
    assert len(recorder.of(Events.USER_LOGOUT)) == 1


@pytest.mark.asyncio
async def test_session_restored(user_service: UserService, storage: StorageService,
                                event_bus: EventBus, clock, auth_settings, record_events) -> None:
    """Test that a new service instance resumes the stored session."""
    session = await user_service.login("teacher", "teacher123")
    recorder = record_events(Events.USER_LOGIN)

    restored = UserService(storage, event_bus, clock, auth_settings)

    assert restored.current_user() == session
    assert restored.profile.name == "teacher"
    assert recorder.of(Events.USER_LOGIN) == [(session,)]


def test_unreadable_session_ignored(storage: StorageService, event_bus: EventBus, clock, auth_settings):
    """Test that a corrupt stored session leaves the user logged out."""
    storage.save(storage.keys.session, {"username": "student", "role": "superuser"})

    service = UserService(storage, event_bus, clock, auth_settings)

    assert service.is_logged_in() is False


@pytest.mark.asyncio
async def test_validate_and_refresh_session(user_service: UserService, storage: StorageService) -> None:
    """Test session id validation and renewal."""
    assert user_service.validate_session() is False

    session = await user_service.login("student", "demo123")
    old_id = session.session_id
    assert user_service.validate_session() is True

    new_id = user_service.refresh_session()
    assert new_id != old_id
    assert new_id == user_service.session.session_id
    assert user_service.validate_session() is True

    storage.save(storage.keys.session, {**session.to_dict(), "sessionId": "session_0_tampered"})
    assert user_service.validate_session() is False


@pytest.mark.asyncio
@pytest.mark.parametrize("username, password, granted, denied", [
    ("admin", "stustai", ["view_stats", "anything"], []),
    ("teacher", "teacher123", ["view_stats", "manage_content"], ["basic_access"]),
    ("student", "demo123", ["view_own_progress"], ["manage_content"]),
    ("guest", "guest", ["basic_access"], ["view_own_progress"]),
])
async def test_permissions(user_service: UserService, username, password, granted, denied) -> None:
    """Test the permission table of each role."""
    await user_service.login(username, password)

    assert all(user_service.has_permission(p) for p in granted)
    assert not any(user_service.has_permission(p) for p in denied)


def test_no_permissions_when_logged_out(user_service: UserService):
    """Test that anonymous users have no permissions."""
    assert user_service.has_permission("basic_access") is False


@pytest.mark.asyncio
async def test_update_profile(user_service: UserService, record_events) -> None:
    """Test changing the display name."""
    recorder = record_events(Events.USER_UPDATED)
    await user_service.login("student", "demo123")
    name = fake.name()

    profile = user_service.update_profile(name=name)

    assert profile.name == name
    assert recorder.of(Events.USER_UPDATED) == [(profile,)]

    with pytest.raises(ValidationError):
        user_service.update_profile(role="admin")
    with pytest.raises(ValidationError):
        user_service.update_profile(email="  ")


@pytest.mark.asyncio
async def test_update_preferences(user_service: UserService) -> None:
    """Test merging preferences."""
    await user_service.login("student", "demo123")

    preferences = user_service.update_preferences({"theme": "dark"})

    assert preferences["theme"] == "dark"
    assert preferences["language"] == "zh-TW"


def test_profile_requires_login(user_service: UserService):
    """Test that profile updates need a logged-in user."""
    with pytest.raises(ValidationError):
        user_service.update_profile(name="someone")


def test_default_settings(user_service: UserService):
    """Test the settings defaults."""
    current = user_service.get_settings()

    assert current.auto_save is True
    assert current.difficulty_level == "normal"
    assert current.study_goal_minutes == 30


def test_update_settings(user_service: UserService, record_events):
    """Test that valid updates are merged and persisted."""
    recorder = record_events(Events.DATA_SAVED)

    updated = user_service.update_settings({"difficultyLevel": "hard", "studyGoalMinutes": 45})

    assert updated.difficulty_level == "hard"
    assert user_service.get_settings().study_goal_minutes == 45
    assert recorder.of(Events.DATA_SAVED)[0][0]["type"] == "settings"


@pytest.mark.parametrize("updates", [
    {"theme": "dark"},
    {"autoSave": "yes"},
    {"difficultyLevel": "extreme"},
    {"preferredLanguage": "fr"},
    {"studyGoalMinutes": 0},
    {"studyGoalMinutes": True},
])
def test_invalid_settings(user_service: UserService, updates):
    """Test that malformed settings updates are refused."""
    with pytest.raises(ValidationError):
        user_service.update_settings(updates)


def test_corrupt_settings_fall_back(user_service: UserService, storage: StorageService):
    """Test that invalid stored settings read as defaults."""
    storage.save(storage.keys.settings, {"difficultyLevel": "extreme"})

    assert user_service.get_settings().difficulty_level == "normal"


def _fail_saves(storage: StorageService, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(key, data):
        raise StorageError("quota exceeded")

    monkeypatch.setattr(storage, "save", fail)


@pytest.mark.asyncio
async def test_profile_kept_when_save_fails(user_service: UserService, storage: StorageService,
                                            monkeypatch: pytest.MonkeyPatch, record_events) -> None:
    """Test that a profile change that cannot be stored is dropped."""
    recorder = record_events(Events.ERROR_OCCURRED, Events.USER_UPDATED)
    await user_service.login("student", "demo123")
    _fail_saves(storage, monkeypatch)

    profile = user_service.update_profile(name="Renamed")
    preferences = user_service.update_preferences({"theme": "dark"})

    assert profile.name == "student"
    assert user_service.profile.name == "student"
    assert preferences["theme"] == "auto"
    assert storage.load(storage.keys.user_data)["name"] == "student"
    assert [args[1] for args in recorder.of(Events.ERROR_OCCURRED)] == ["profile", "profile"]
    assert recorder.of(Events.USER_UPDATED) == []


@pytest.mark.asyncio
async def test_session_kept_when_refresh_fails(user_service: UserService, storage: StorageService,
                                               monkeypatch: pytest.MonkeyPatch, record_events) -> None:
    """Test that a session id that cannot be stored is not issued."""
    recorder = record_events(Events.ERROR_OCCURRED)
    session = await user_service.login("student", "demo123")
    old_id = session.session_id
    _fail_saves(storage, monkeypatch)

    assert user_service.refresh_session() is None
    assert user_service.session.session_id == old_id
    assert user_service.validate_session() is True
    assert recorder.of(Events.ERROR_OCCURRED)[0][1] == "session"


def test_settings_kept_when_save_fails(user_service: UserService, storage: StorageService,
                                       monkeypatch: pytest.MonkeyPatch, record_events):
    """Test that a settings update that cannot be stored changes nothing."""
    recorder = record_events(Events.ERROR_OCCURRED, Events.DATA_SAVED)
    _fail_saves(storage, monkeypatch)

    current = user_service.update_settings({"difficultyLevel": "hard"})

    assert current.difficulty_level == "normal"
    assert user_service.get_settings().difficulty_level == "normal"
    assert recorder.of(Events.ERROR_OCCURRED)[0][1] == "settings"
    assert recorder.of(Events.DATA_SAVED) == []


@pytest.mark.asyncio
async def test_user_stats(user_service: UserService, clock) -> None:
    """Test the session details."""
    assert user_service.user_stats() is None

    await user_service.login("student", "demo123")
    clock.advance(seconds=125)
    stats = user_service.user_stats()

    assert stats["role"] == "student"
    assert stats["session_duration"] == 125
    assert stats["session_duration_formatted"] == "2:05"


if __name__ == "__main__":
    pytest.main([__file__])
