"""Tests for the application wiring."""
import random
from pathlib import Path

import pytest

from qiaomu.app import QiaomuApp
from qiaomu.config import AuthSettings, NavigationSettings, Settings, StorageSettings
from qiaomu.models.drill_models import DrillConfig, DrillPhase
from qiaomu.models.navigation_models import ModuleName
from qiaomu.services.event_bus import Events
from qiaomu.services.word_service import WordService


@pytest.fixture
def app_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a temporary database with instant logins."""
    return Settings(
        storage=StorageSettings(url=f"sqlite:///{tmp_path / 'app.db'}"),
        auth=AuthSettings(login_delay=0),
        navigation=NavigationSettings(max_error_logs=3),
    )


@pytest.fixture
def make_app(app_settings: Settings, notifier, audio, surface, clock, scheduler):
    """Factory for applications sharing the same database and fakes."""
    def factory() -> QiaomuApp:
        return QiaomuApp(
            app_settings, notifier, audio, surface, clock, scheduler,
            WordService(rng=random.Random(1)),
        )
    return factory


@pytest.mark.asyncio
async def test_start_stop(make_app) -> None:
    """Test starting and stopping the application."""
    app = make_app()

    await app.start()
    assert app.running is True
    assert app.users.is_logged_in() is False
    assert app.registry.active is None
    assert app.app_state()["current_module"] == "dashboard"

    await app.stop()
    assert app.running is False
    assert app.db is None
    assert app.engine is None


@pytest.mark.asyncio
async def test_login_activates_current_module(make_app, surface) -> None:
    """Test that logging in opens the dashboard."""
    app = make_app()
    await app.start()

    await app.users.login("student", "demo123")

    assert app.registry.active.name == ModuleName.DASHBOARD
    assert surface.renders[-1][0] == "dashboard-module"
    state = app.app_state()
    assert state["logged_in"] is True
    assert state["user"] == "student"
    await app.stop()


@pytest.mark.asyncio
async def test_navigation_switches_modules(make_app, scheduler) -> None:
    """Test that navigating away from a running drill cancels it."""
    app = make_app()
    await app.start()
    await app.users.login("student", "demo123")

    assert app.navigation.navigate_to("force") is True
    drill = app.registry.active
    assert drill.name == ModuleName.FORCE
    drill.start_challenge(DrillConfig(30, 15, 3))
    scheduler.advance(5)

    assert app.navigation.navigate_to("words") is True
    assert drill.phase == DrillPhase.SETUP
    assert scheduler.timers == {}
    assert app.registry.active.name == ModuleName.WORDS
    await app.stop()


@pytest.mark.asyncio
async def test_guest_navigation_rejected(make_app, notifier) -> None:
    """Test that guests stay on their module when opening a members-only one."""
    app = make_app()
    await app.start()
    await app.users.login("guest", "guest")

    assert app.navigation.navigate_to("feynman") is False
    assert app.registry.active.name == ModuleName.DASHBOARD
    assert notifier.notices[-1] == ("您沒有權限訪問此模組", "error")
    await app.stop()


@pytest.mark.asyncio
async def test_navigation_before_login(make_app, notifier) -> None:
    """Test that navigation is wired to the user service from the start."""
    app = make_app()
    await app.start()

    assert app.navigation.user_service is app.users
    assert app.navigation.navigate_to("words") is False
    assert app.navigation.current_module == ModuleName.DASHBOARD
    assert notifier.notices[-1] == ("您沒有權限訪問此模組", "error")
    await app.stop()


@pytest.mark.asyncio
async def test_logout_returns_home(make_app) -> None:
    """Test that logout tears down the active module."""
    app = make_app()
    await app.start()
    await app.users.login("student", "demo123")
    app.navigation.navigate_to("quiz")

    app.users.logout()

    assert app.registry.active is None
    assert app.navigation.current_module == ModuleName.DASHBOARD
    assert app.navigation.history() == []
    await app.stop()


@pytest.mark.asyncio
async def test_session_restored_on_restart(make_app) -> None:
    """Test that a stored session reopens the default module on start."""
    app = make_app()
    await app.start()
    await app.users.login("teacher", "teacher123")
    await app.stop()

    restarted = make_app()
    await restarted.start()

    assert restarted.users.current_user().username == "teacher"
    assert restarted.registry.active.name == ModuleName.DASHBOARD
    await restarted.stop()


@pytest.mark.asyncio
async def test_hidden_app_pauses_countdowns(make_app, scheduler) -> None:
    """Test that countdowns stand still while the app is hidden."""
    app = make_app()
    await app.start()
    visibility = []
    app.event_bus.subscribe(Events.VISIBILITY_CHANGED, visibility.append)
    await app.users.login("student", "demo123")
    app.navigation.navigate_to("quiz")
    quiz = app.registry.active

    app.set_visible(False)
    scheduler.advance(10)
    assert quiz.remaining_seconds == 300

    app.set_visible(True)
    scheduler.advance(10)
    assert quiz.remaining_seconds == 290
    assert visibility == [False, True]
    await app.stop()


@pytest.mark.asyncio
async def test_error_log_is_capped(make_app, notifier) -> None:
    """Test that reported errors are kept in a capped log."""
    app = make_app()
    await app.start()

    for i in range(5):
        app.handle_error(RuntimeError(f"failure {i}"), "test")

    logs = app.error_logs()
    assert [entry["message"] for entry in logs] == ["failure 2", "failure 3", "failure 4"]
    assert logs[0]["type"] == "RuntimeError"
    assert logs[0]["context"] == "test"
    assert logs[0]["user"] is None
    assert notifier.notices[-1] == ("發生錯誤", "error")
    await app.stop()


@pytest.mark.asyncio
async def test_learning_flow_updates_ledger(make_app) -> None:
    """Test that completing activities in modules lands in the ledger."""
    app = make_app()
    await app.start()
    await app.users.login("student", "demo123")

    app.navigation.navigate_to("words")
    app.registry.active.mark_learned()

    app.navigation.navigate_to("quiz")
    app.registry.active.finish()

    ledger = app.progress.ledger
    assert ledger.words_learned == 1
    assert ledger.quizzes_taken == 1
    assert app.sync_offline_data() == 0
    await app.stop()


if __name__ == "__main__":
    pytest.main([__file__])
