"""Models for module navigation."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ModuleName(str, Enum):
    """The closed set of navigable modules."""
    DASHBOARD = "dashboard"
    WORDS = "words"
    FEYNMAN = "feynman"
    FORCE = "force"
    QUIZ = "quiz"

    @classmethod
    def parse(cls, name: str) -> Optional["ModuleName"]:
        try:
            return cls(name)
        except ValueError:
            return None


MODULE_TITLES = {
    ModuleName.DASHBOARD: "儀表板",
    ModuleName.WORDS: "單字學習",
    ModuleName.FEYNMAN: "費曼學習",
    ModuleName.FORCE: "強迫學習",
    ModuleName.QUIZ: "測驗",
}


@dataclass(frozen=True)
class ModuleChange:
    """Payload of the module-changed event."""
    previous: ModuleName
    current: ModuleName
