"""Tests for the module registry and activation lifecycle."""
import pytest

from qiaomu.errors import UnknownModuleError
from qiaomu.models.drill_models import DrillConfig
from qiaomu.models.navigation_models import ModuleChange, ModuleName
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.force_drill_service import ForceDrill
from qiaomu.services.module_registry import LearningModule, ModuleRegistry


class RecordingModule(LearningModule):
    """Module that records its lifecycle calls in a shared journal."""

    def __init__(self, name: ModuleName, journal: list, surface=None):
        super().__init__(surface)
        self.name = name
        self.journal = journal

    def on_activate(self):
        self.journal.append(("activate", self.name))

    def on_deactivate(self):
        self.journal.append(("deactivate", self.name))

    def view(self):
        return {"module": self.name.value}


@pytest.fixture
def journal() -> list:
    return []


@pytest.fixture
def created() -> list:
    return []


@pytest.fixture
def registry(event_bus: EventBus, journal: list, created: list, surface) -> ModuleRegistry:
    """Create a registry with recording modules for dashboard, words and quiz."""
    def factory(name):
        def create():
            created.append(name)
            return RecordingModule(name, journal, surface)
        return create

    return ModuleRegistry(
        event_bus, {name: factory(name) for name in (ModuleName.DASHBOARD, ModuleName.WORDS, ModuleName.QUIZ)}
    )


def test_modules_are_created_lazily(registry: ModuleRegistry, created: list):
    """Test that a module is built on first use and then reused."""
    assert created == []

    first = registry.get(ModuleName.WORDS)
    second = registry.get(ModuleName.WORDS)

    assert first is second
    assert created == [ModuleName.WORDS]
    assert registry.loaded_modules() == [ModuleName.WORDS]


def test_unknown_module(registry: ModuleRegistry):
    """Test that a module without factory cannot be created."""
    with pytest.raises(UnknownModuleError):
        registry.get(ModuleName.FORCE)


def test_activation_tears_down_previous(registry: ModuleRegistry, journal: list, record_events):
    """Test that the previous module is deactivated before the next activates."""
    recorder = record_events(Events.MODULE_LOADED, Events.MODULE_UNLOADED)

    registry.activate(ModuleName.DASHBOARD)
    registry.activate(ModuleName.WORDS)

    assert journal == [
        ("activate", ModuleName.DASHBOARD),
        ("deactivate", ModuleName.DASHBOARD),
        ("activate", ModuleName.WORDS),
    ]
    assert registry.active is registry.get(ModuleName.WORDS)
    assert registry.get(ModuleName.DASHBOARD).active is False
    assert recorder.calls == [
        (Events.MODULE_LOADED, (ModuleName.DASHBOARD,)),
        (Events.MODULE_UNLOADED, (ModuleName.DASHBOARD,)),
        (Events.MODULE_LOADED, (ModuleName.WORDS,)),
    ]


def test_activating_active_module_is_noop(registry: ModuleRegistry, journal: list):
    """Test that reactivating the active module does nothing."""
    registry.activate(ModuleName.QUIZ)
    registry.activate(ModuleName.QUIZ)

    assert journal == [("activate", ModuleName.QUIZ)]


def test_follows_module_changes(registry: ModuleRegistry, event_bus: EventBus, surface):
    """Test that a module-changed event activates the new module."""
    event_bus.publish(Events.MODULE_CHANGED, ModuleChange(ModuleName.DASHBOARD, ModuleName.QUIZ))

    assert registry.active.name == ModuleName.QUIZ
    assert surface.renders == [("quiz-module", {"module": "quiz"})]


def test_shutdown(registry: ModuleRegistry, event_bus: EventBus, journal: list):
    """Test that shutdown deactivates and stops following module changes."""
    registry.activate(ModuleName.WORDS)

    registry.shutdown()
    event_bus.publish(Events.MODULE_CHANGED, ModuleChange(ModuleName.WORDS, ModuleName.QUIZ))

    assert registry.active is None
    assert journal == [("activate", ModuleName.WORDS), ("deactivate", ModuleName.WORDS)]


def test_inactive_module_does_not_render(surface):
    """Test that only active modules render."""
    module = RecordingModule(ModuleName.WORDS, [], surface)

    module.render()

    assert surface.renders == []


def test_leaving_force_cancels_drill(event_bus: EventBus, progress, scheduler, word_service, clock):
    """Test that switching away from a running drill cancels its countdown."""
    registry = ModuleRegistry(event_bus, {
        ModuleName.FORCE: lambda: ForceDrill(progress, event_bus, scheduler, word_service, clock),
        ModuleName.DASHBOARD: lambda: RecordingModule(ModuleName.DASHBOARD, []),
    })
    drill = registry.activate(ModuleName.FORCE)
    drill.start_challenge(DrillConfig(30, 15, 3))
    assert len(scheduler.timers) == 1

    registry.activate(ModuleName.DASHBOARD)

    assert scheduler.timers == {}
    assert drill.session is None


if __name__ == "__main__":
    pytest.main([__file__])
