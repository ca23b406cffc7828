"""Static registry of learning modules and their activation lifecycle."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from qiaomu.errors import UnknownModuleError
from qiaomu.models.navigation_models import ModuleChange, ModuleName
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.notification_service import LoggingRenderSurface, RenderSurface

logger = logging.getLogger(__name__)


class LearningModule(ABC):
    """A screen of the app that is activated and torn down by the registry."""

    name: ModuleName

    def __init__(self, surface: Optional[RenderSurface] = None):
        self.surface = surface or LoggingRenderSurface()
        self.active = False

    def activate(self) -> None:
        if self.active:
            return
        self.active = True
        self.on_activate()
        self.render()

    def deactivate(self) -> None:
        """Release timers and subscriptions held while active."""
        if not self.active:
            return
        self.on_deactivate()
        self.active = False

    def on_activate(self) -> None:
        pass

    def on_deactivate(self) -> None:
        pass

    @abstractmethod
    def view(self) -> Dict[str, Any]:
        """Template data describing the current screen."""

    def render(self) -> None:
        if self.active:
            self.surface.render(f"{self.name.value}-module", self.view())


ModuleFactory = Callable[[], LearningModule]


class ModuleRegistry:
    """Maps each module name to a factory and follows module changes.

    Instances are created on first use and reused afterwards.
    """

    def __init__(self, event_bus: EventBus, factories: Dict[ModuleName, ModuleFactory]):
        self.event_bus = event_bus
        self.factories = dict(factories)
        self.instances: Dict[ModuleName, LearningModule] = {}
        self.active: Optional[LearningModule] = None
        self.subscription = event_bus.subscribe(Events.MODULE_CHANGED, self.on_module_changed)

    def get(self, name: ModuleName) -> LearningModule:
        """Get the module instance, creating it on first use."""
        if name not in self.instances:
            factory = self.factories.get(name)
            if factory is None:
                raise UnknownModuleError(f"No module registered for {name}", str(name))
            self.instances[name] = factory()
            logger.info(f"Module {name.value} created")
        return self.instances[name]

    def activate(self, name: ModuleName) -> LearningModule:
        """Tear down the active module, then activate name."""
        module = self.get(name)
        if module is self.active:
            return module

        self.deactivate()
        module.activate()
        self.active = module
        self.event_bus.publish(Events.MODULE_LOADED, name)
        return module

    def on_module_changed(self, change: ModuleChange) -> None:
        self.activate(change.current)

    def loaded_modules(self) -> List[ModuleName]:
        return list(self.instances)

    def deactivate(self) -> None:
        """Tear down the active module, if any."""
        if self.active is not None:
            previous = self.active
            previous.deactivate()
            self.active = None
            self.event_bus.publish(Events.MODULE_UNLOADED, previous.name)

    def shutdown(self) -> None:
        """Deactivate the active module and stop following module changes."""
        self.deactivate()
        self.subscription.unsubscribe()
