"""Dashboard module summarizing the progress ledger."""
from dataclasses import asdict
from typing import Any, Dict, Optional

from qiaomu.models.navigation_models import ModuleName
from qiaomu.services.event_bus import EventBus, Events, Subscription
from qiaomu.services.module_registry import LearningModule
from qiaomu.services.notification_service import RenderSurface
from qiaomu.services.progress_service import ProgressService


class DashboardModule(LearningModule):
    """Stats, weekly goals, recommendations and achievements at a glance."""

    name = ModuleName.DASHBOARD

    def __init__(
        self,
        progress: ProgressService,
        event_bus: EventBus,
        surface: Optional[RenderSurface] = None,
    ):
        super().__init__(surface)
        self.progress = progress
        self.event_bus = event_bus
        self.subscription: Optional[Subscription] = None

    def on_activate(self) -> None:
        self.subscription = self.event_bus.subscribe(Events.DATA_SAVED, self.on_data_saved)

    def on_deactivate(self) -> None:
        if self.subscription is not None:
            self.subscription.unsubscribe()
            self.subscription = None

    def on_data_saved(self, payload: Any = None) -> None:
        self.render()

    def view(self) -> Dict[str, Any]:
        return {
            "stats": self.progress.stats_summary(),
            "weekly_progress": self.progress.weekly_progress(),
            "recommendations": self.progress.recommendations(),
            "achievements": self.progress.achievements_overview(),
            "efficiency": asdict(self.progress.compute_efficiency()),
        }
