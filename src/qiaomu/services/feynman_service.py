"""Feynman exercise: explain a word in your own words, then self-evaluate."""
import logging
import math
import random
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from qiaomu.config import FeynmanSettings, settings
from qiaomu.errors import StorageError, ValidationError
from qiaomu.models.content_models import Word
from qiaomu.models.feynman_models import FeynmanPhase, FeynmanRecord, Suggestion
from qiaomu.models.ledger_models import ActivityKind
from qiaomu.models.navigation_models import ModuleName
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.module_registry import LearningModule
from qiaomu.services.notification_service import RenderSurface
from qiaomu.services.progress_service import ProgressService
from qiaomu.services.scheduler_service import Clock, SystemClock
from qiaomu.services.storage_service import StorageService
from qiaomu.services.word_service import WordService

logger = logging.getLogger(__name__)

ETYMOLOGY_MARKERS = ("詞根", "來自")
EXAMPLE_MARKERS = ("例如", "比如")


class FeynmanModule(LearningModule):
    """Feynman learning module: select, explain, evaluate."""

    name = ModuleName.FEYNMAN

    def __init__(
        self,
        progress: ProgressService,
        event_bus: EventBus,
        storage: StorageService,
        word_service: WordService,
        clock: Optional[Clock] = None,
        feynman_settings: Optional[FeynmanSettings] = None,
        surface: Optional[RenderSurface] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(surface)
        self.progress = progress
        self.event_bus = event_bus
        self.storage = storage
        self.word_service = word_service
        self.clock = clock or SystemClock()
        self.settings = feynman_settings or settings.feynman
        self.rng = rng or random.Random()
        self.phase = FeynmanPhase.SELECT
        self.current_word: Optional[Word] = None
        self.explanation = ""
        self.ratings: Dict[str, int] = {}
        self.suggestions: List[Suggestion] = []
        self.start_time: Optional[datetime] = None

    def select_word(self, index: int) -> Word:
        """Pick a reference word and start timing the exercise."""
        if not 0 <= index < self.word_service.get_word_count():
            raise ValidationError(f"Word index {index} out of range")
        self.current_word = self.word_service.get_word(index)
        self.explanation = ""
        self.ratings = {}
        self.suggestions = []
        self.phase = FeynmanPhase.EXPLAIN
        self.start_time = self.clock.now()
        self.render()
        return self.current_word

    def select_random_word(self) -> Word:
        return self.select_word(self.rng.randrange(self.word_service.get_word_count()))

    def study_time(self) -> int:
        """Whole seconds since the word was selected."""
        if self.start_time is None:
            return 0
        return max(0, math.floor((self.clock.now() - self.start_time).total_seconds()))

    def submit_explanation(self, text: str) -> List[Suggestion]:
        """Accept the explanation and move on to evaluation.

        Raises ValidationError when no word is selected or the text is
        shorter than the configured minimum.
        """
        if self.phase != FeynmanPhase.EXPLAIN or self.current_word is None:
            raise ValidationError("Select a word before explaining it")
        if len(text) < self.settings.min_explanation_length:
            raise ValidationError("解釋內容太短，請詳細說明")

        self.explanation = text
        self.suggestions = self.generate_suggestions(text, self.current_word)
        self.phase = FeynmanPhase.EVALUATE
        self.render()
        return self.suggestions

    def generate_suggestions(self, text: str, word: Word) -> List[Suggestion]:
        """Hints for missing etymology, missing examples and shallow explanations."""
        lowered = text.lower()
        suggestions = []

        if not any(marker in lowered for marker in ETYMOLOGY_MARKERS):
            suggestions.append(Suggestion(
                type="etymology",
                title="加入詞源信息",
                content=f"可以提到這個單字的詞源：{word.etymology}",
            ))

        if not any(marker in lowered for marker in EXAMPLE_MARKERS):
            suggestions.append(Suggestion(
                type="example",
                title="添加具體例子",
                content="嘗試舉出具體的使用情境或例句來幫助理解",
            ))

        if len(text) < self.settings.detail_length:
            suggestions.append(Suggestion(
                type="detail",
                title="增加解釋深度",
                content="可以更詳細地解釋單字的含義、用法和語境",
            ))

        return suggestions

    def rate(self, category: str, value: int) -> None:
        """Self-rate one category of the explanation."""
        if self.phase != FeynmanPhase.EVALUATE:
            raise ValidationError("Ratings are given during evaluation")
        if category not in self.settings.rating_categories:
            raise ValidationError(f"Unknown rating category: {category}")
        if value not in self.settings.rating_scale:
            raise ValidationError(f"Rating must be one of {list(self.settings.rating_scale)}")
        self.ratings[category] = value

    def reset_to_explanation(self) -> None:
        """Go back from evaluation to rewrite the explanation."""
        if self.phase != FeynmanPhase.EVALUATE:
            raise ValidationError("Nothing to rewrite")
        self.ratings = {}
        self.suggestions = []
        self.phase = FeynmanPhase.EXPLAIN
        self.start_time = self.clock.now()
        self.render()

    def complete(self) -> FeynmanRecord:
        """Store the exercise, count it in the ledger and start over."""
        if self.phase != FeynmanPhase.EVALUATE:
            raise ValidationError("Submit an explanation before completing")

        record = FeynmanRecord(
            word=self.current_word.word,
            explanation=self.explanation,
            ratings=dict(self.ratings),
            study_time=self.study_time(),
            timestamp=self.clock.now().isoformat(),
        )
        self._save_record(record)

        self.progress.record_activity(ActivityKind.FEYNMAN, 1)
        self.progress.record_study_time(record.study_time)
        logger.info(f"Feynman exercise on {record.word} completed in {record.study_time}s")
        self.event_bus.publish(Events.FEYNMAN_COMPLETED, record)

        self.reset_to_selection()
        return record

    def reset_to_selection(self) -> None:
        self._clear()
        self.render()

    def _clear(self) -> None:
        self.phase = FeynmanPhase.SELECT
        self.current_word = None
        self.explanation = ""
        self.ratings = {}
        self.suggestions = []
        self.start_time = None

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def _save_record(self, record: FeynmanRecord) -> None:
        key = self.storage.keys.feynman_history
        try:
            entries = [record.to_dict()] + [e.to_dict() for e in self.history()]
            self.storage.put(key, entries[:self.settings.history_size])
        except StorageError as e:
            logger.error(f"Feynman history not saved: {e}")
            self.event_bus.publish(Events.ERROR_OCCURRED, e, "feynman")

    def history(self) -> List[FeynmanRecord]:
        """Completed exercises, newest first."""
        try:
            raw = self.storage.get(self.storage.keys.feynman_history)
        except StorageError as e:
            logger.warning(f"Feynman history not readable: {e}")
            return []
        if not isinstance(raw, list):
            return []

        records = []
        for entry in raw:
            try:
                records.append(FeynmanRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning(f"Skipping unreadable Feynman history entry: {entry!r}")
        return records

    # -------------------------------------------------------------------------
    # Lifecycle and presentation
    # -------------------------------------------------------------------------

    def on_deactivate(self) -> None:
        self._clear()

    def view(self) -> Dict[str, Any]:
        if self.phase == FeynmanPhase.SELECT:
            return {
                "phase": self.phase.value,
                "words": [word.word for word in self.word_service.words],
                "history": [
                    {**record.to_dict(), "averageRating": record.average_rating()}
                    for record in self.history()
                ],
            }

        word = self.current_word
        data = {
            "phase": self.phase.value,
            "word": word.word,
            "phonetic": word.phonetic,
            "definition": word.definition,
            "elapsed": self.study_time(),
        }
        if self.phase == FeynmanPhase.EVALUATE:
            data.update({
                "explanation": self.explanation,
                "etymology": word.etymology,
                "sentence": word.sentence,
                "suggestions": [asdict(s) for s in self.suggestions],
                "ratings": dict(self.ratings),
            })
        return data
