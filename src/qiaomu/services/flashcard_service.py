"""Flashcard module for browsing the reference words."""
import logging
from typing import Any, Dict, Optional, Set

from qiaomu.models.content_models import Word
from qiaomu.models.ledger_models import ActivityKind, RecordResult
from qiaomu.models.navigation_models import ModuleName
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.module_registry import LearningModule
from qiaomu.services.notification_service import RenderSurface
from qiaomu.services.progress_service import ProgressService
from qiaomu.services.word_service import WordService

logger = logging.getLogger(__name__)


class WordsModule(LearningModule):
    """Flashcards with a front (word) and back (definition) side."""

    name = ModuleName.WORDS

    def __init__(
        self,
        progress: ProgressService,
        event_bus: EventBus,
        word_service: WordService,
        surface: Optional[RenderSurface] = None,
    ):
        super().__init__(surface)
        self.progress = progress
        self.event_bus = event_bus
        self.word_service = word_service
        self.index = 0
        self.flipped = False
        # Words counted during the current visit
        self.learned: Set[str] = set()

    @property
    def current_card(self) -> Word:
        return self.word_service.get_word(self.index)

    def flip(self) -> bool:
        self.flipped = not self.flipped
        self.render()
        return self.flipped

    def _move(self, step: int) -> Word:
        count = self.word_service.get_word_count()
        self.index = (self.index + step) % count
        self.flipped = False
        self.render()
        return self.current_card

    def next_card(self) -> Word:
        return self._move(1)

    def previous_card(self) -> Word:
        return self._move(-1)

    def remaining(self) -> int:
        return max(0, self.word_service.get_word_count() - self.index - 1)

    def mark_learned(self) -> Optional[RecordResult]:
        """Count the current word once per visit."""
        word = self.current_card
        if word.word in self.learned:
            return None
        result = self.progress.record_activity(ActivityKind.WORD, 1)
        if result.saved:
            self.learned.add(word.word)
            self.event_bus.publish(Events.WORD_LEARNED, word)
        return result

    def on_activate(self) -> None:
        self.learned = set()
        self.flipped = False

    def view(self) -> Dict[str, Any]:
        word = self.current_card
        return {
            "index": self.index,
            "count": self.word_service.get_word_count(),
            "flipped": self.flipped,
            "word": word.word,
            "phonetic": word.phonetic,
            "definition": word.definition if self.flipped else None,
            "etymology": word.etymology if self.flipped else None,
            "sentence": word.sentence if self.flipped else None,
            "learned": word.word in self.learned,
        }
