"""Test configuration."""
import os
import random
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any, Generator, List, Optional, Tuple

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from sqlalchemy.orm import Session

from qiaomu.config import AuthSettings, LedgerSettings, StorageSettings
from qiaomu.models.base import init_db, make_engine, make_session_factory
from qiaomu.models.user_models import UserRole, UserSession
from qiaomu.services.event_bus import EventBus
from qiaomu.services.notification_service import AudioCuePlayer, Notifier, RenderSurface
from qiaomu.services.progress_service import ProgressService
from qiaomu.services.scheduler_service import Clock, Scheduler, TimerHandle
from qiaomu.services.storage_service import StorageService
from qiaomu.services.user_service import UserService
from qiaomu.services.word_service import WordService


class FakeClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 10, 19, 9, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def advance(self, seconds: float = 0, days: int = 0) -> None:
        self.current += timedelta(seconds=seconds, days=days)


class ManualScheduler(Scheduler):
    """Scheduler whose timers fire only when advance() is called."""

    def __init__(self, clock: FakeClock):
        super().__init__()
        self.clock = clock
        self.elapsed = 0
        self.due = {}

    def _start(self, handle: TimerHandle) -> None:
        self.due[id(handle)] = self.elapsed + handle.interval

    def _stop(self, handle: TimerHandle) -> None:
        self.due.pop(id(handle), None)

    def advance(self, seconds: int) -> None:
        """Move the clock one second at a time, firing due timers."""
        for _ in range(seconds):
            self.elapsed += 1
            self.clock.advance(seconds=1)
            for handle in list(self.timers.values()):
                key = id(handle)
                if key in self.due and self.due[key] <= self.elapsed:
                    self.due[key] += handle.interval
                    self._fire(handle)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.notices: List[Tuple[str, str]] = []

    def show_notice(self, message: str, severity: str = "info", duration_ms: int = 3000) -> None:
        self.notices.append((message, severity))


class RecordingAudio(AudioCuePlayer):
    def __init__(self):
        self.cues: List[str] = []

    def play_cue(self, kind: str, volume: float = 0.3) -> None:
        self.cues.append(kind)


class RecordingSurface(RenderSurface):
    def __init__(self):
        self.renders: List[Tuple[str, Any]] = []

    def render(self, container_id: str, content: Any) -> None:
        self.renders.append((container_id, content))


class FakeUsers:
    """Minimal stand-in for the user service used by navigation tests."""

    def __init__(self, role: Optional[UserRole] = UserRole.STUDENT, username: str = "student"):
        self.session = (
            UserSession(username=username, role=role, login_time="", session_id="session_1_abc")
            if role is not None else None
        )

    def current_user(self) -> Optional[UserSession]:
        return self.session

    def current_role(self) -> Optional[UserRole]:
        return self.session.role if self.session else None


class EventRecorder:
    """Collects the arguments of every publish of the subscribed events."""

    def __init__(self, bus: EventBus, *events: str):
        self.calls: List[Tuple[str, tuple]] = []
        for event in events:
            bus.subscribe(event, lambda *args, _event=event: self.calls.append((_event, args)))

    def of(self, event: str) -> List[tuple]:
        return [args for name, args in self.calls if name == event]


@pytest.fixture
def storage_settings(tmp_path: Path) -> StorageSettings:
    return StorageSettings(url=f"sqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def db(storage_settings: StorageSettings) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    engine = make_engine(storage_settings)
    init_db(engine)
    db = make_session_factory(engine)()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def storage(db: Session, storage_settings: StorageSettings) -> StorageService:
    return StorageService(db, storage_settings)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def progress(storage: StorageService, event_bus: EventBus, clock: FakeClock) -> ProgressService:
    return ProgressService(storage, event_bus, clock, LedgerSettings())


@pytest.fixture
def word_service() -> WordService:
    return WordService(rng=random.Random(42))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def audio() -> RecordingAudio:
    return RecordingAudio()


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(login_delay=0)


@pytest.fixture
def user_service(
    storage: StorageService, event_bus: EventBus, clock: FakeClock, auth_settings: AuthSettings
) -> UserService:
    return UserService(storage, event_bus, clock, auth_settings)


@pytest.fixture
def make_users():
    """Factory for user-service stand-ins with a given role."""
    return FakeUsers


@pytest.fixture
def record_events(event_bus: EventBus):
    """Factory recording the publishes of the given events."""
    def factory(*events: str) -> EventRecorder:
        return EventRecorder(event_bus, *events)
    return factory
