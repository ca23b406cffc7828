"""Timed force-learning drill: memorize words, then answer a quiz on them."""
import logging
import math
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from qiaomu import monitoring
from qiaomu.config import ForceSettings, settings
from qiaomu.errors import ConfigurationError, DrillStateError, ValidationError
from qiaomu.models.drill_models import (
    Difficulty,
    DrillConfig,
    DrillPhase,
    DrillResult,
    DrillSession,
    Grade,
    QuizItem,
    QuizItemType,
)
from qiaomu.models.content_models import Word
from qiaomu.models.ledger_models import ActivityKind
from qiaomu.models.navigation_models import ModuleName
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.module_registry import LearningModule
from qiaomu.services.notification_service import AudioCuePlayer, LoggingAudioCuePlayer, RenderSurface
from qiaomu.services.progress_service import ProgressService
from qiaomu.services.scheduler_service import Clock, Scheduler, SystemClock, TimerHandle
from qiaomu.services.word_service import WordService
from qiaomu.utils import round_half_up, shuffled, to_percentage

logger = logging.getLogger(__name__)


def elapsed_seconds(start: datetime, end: datetime, allowance: int) -> int:
    """Whole seconds between start and end, capped at allowance."""
    return min(allowance, max(0, math.floor((end - start).total_seconds())))


def score_session(session: DrillSession) -> DrillResult:
    """Compute accuracy, speed bonus, overall score and grade of a session."""
    memorize_spent = elapsed_seconds(
        session.memorize_started_at, session.quiz_started_at, session.memorize_allowance
    )
    quiz_spent = elapsed_seconds(session.quiz_started_at, session.finished_at, session.quiz_allowance)
    total = memorize_spent + quiz_spent
    total_allowed = session.memorize_allowance + session.quiz_allowance

    words_studied = len(session.study_words)
    accuracy = session.score / words_studied if words_studied else 0.0
    speed_bonus = max(0.0, 1 - total / total_allowed) if total_allowed else 0.0
    overall = round_half_up(accuracy * 70 + speed_bonus * 30)

    return DrillResult(
        words_studied=words_studied,
        correct_answers=session.score,
        memorize_seconds_spent=memorize_spent,
        quiz_seconds_spent=quiz_spent,
        total_seconds=total,
        total_allowed=total_allowed,
        accuracy=accuracy,
        speed_bonus=speed_bonus,
        overall_score=overall,
        grade=Grade.for_score(overall),
    )


class ForceDrill(LearningModule):
    """Force-learning module driving one drill session at a time.

    Phases only move forward: setup, memorize, quiz, result. Countdowns
    tick once per second through the injected scheduler and are cancelled
    whenever the session ends or the module is left.
    """

    name = ModuleName.FORCE

    def __init__(
        self,
        progress: ProgressService,
        event_bus: EventBus,
        scheduler: Scheduler,
        word_service: WordService,
        clock: Optional[Clock] = None,
        force_settings: Optional[ForceSettings] = None,
        audio: Optional[AudioCuePlayer] = None,
        surface: Optional[RenderSurface] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(surface)
        self.progress = progress
        self.event_bus = event_bus
        self.scheduler = scheduler
        self.word_service = word_service
        self.clock = clock or SystemClock()
        self.settings = force_settings or settings.force
        self.audio = audio or LoggingAudioCuePlayer()
        self.rng = rng or random.Random()
        self.session: Optional[DrillSession] = None
        self.timer: Optional[TimerHandle] = None

    @property
    def phase(self) -> DrillPhase:
        return self.session.phase if self.session else DrillPhase.SETUP

    def default_config(self) -> DrillConfig:
        return DrillConfig(
            memorize_seconds=self.settings.memorize_seconds,
            quiz_seconds=self.settings.quiz_seconds,
            word_count=self.settings.word_count,
        )

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def validate_config(self, config: DrillConfig) -> DrillConfig:
        """Check every parameter against its allowed range."""
        try:
            difficulty = Difficulty(config.difficulty)
        except ValueError:
            raise ConfigurationError(f"Unknown difficulty: {config.difficulty}")

        for name, value, (low, high) in (
            ("memorize_seconds", config.memorize_seconds, self.settings.memorize_range),
            ("quiz_seconds", config.quiz_seconds, self.settings.quiz_range),
            ("word_count", config.word_count, self.settings.word_count_range),
        ):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer")
            if not low <= value <= high:
                raise ConfigurationError(f"{name} must be between {low} and {high}, got {value}")

        if difficulty is not config.difficulty:
            config = DrillConfig(
                config.memorize_seconds, config.quiz_seconds, config.word_count, difficulty
            )
        return config

    def effective_seconds(self, seconds: int, difficulty: Difficulty) -> int:
        """Apply the difficulty time multiplier, flooring to whole seconds."""
        return math.floor(seconds * self.settings.difficulty_multipliers[difficulty.value])

    def start_challenge(self, config: Optional[DrillConfig] = None) -> DrillSession:
        """Draw the words and start the memorize countdown.

        Raises ConfigurationError for out-of-range parameters or when the
        difficulty leaves too few words to draw from.
        """
        if self.phase in (DrillPhase.MEMORIZE, DrillPhase.QUIZ):
            raise DrillStateError(f"A drill is already running ({self.phase.value})")

        config = self.validate_config(config or self.default_config())
        words = self.word_service.draw_words(config.word_count, config.difficulty)

        self._cancel_timer()
        session = DrillSession(
            config=config,
            memorize_allowance=self.effective_seconds(config.memorize_seconds, config.difficulty),
            quiz_allowance=self.effective_seconds(config.quiz_seconds, config.difficulty),
        )
        session.study_words = words
        session.remaining_memorize_seconds = session.memorize_allowance
        session.memorize_started_at = self.clock.now()
        session.phase = DrillPhase.MEMORIZE
        self.session = session

        monitoring.drills_started.labels(difficulty=config.difficulty.value).inc()
        logger.info(
            f"Force drill {session.session_id} started: {config.word_count} {config.difficulty.value} words, "
            f"{session.memorize_allowance}s memorize, {session.quiz_allowance}s quiz"
        )
        self._enter_phase(DrillPhase.MEMORIZE)
        self.timer = self.scheduler.every(1, self._tick_memorize, name="force-memorize")
        return session

    # -------------------------------------------------------------------------
    # Memorize phase
    # -------------------------------------------------------------------------

    def _warn_if_low(self, remaining: int) -> None:
        if 0 < remaining <= self.settings.warning_seconds:
            self.event_bus.publish(Events.DRILL_TIME_WARNING, self.phase, remaining)
            self.audio.play_cue("notification", 0.1)

    def _tick_memorize(self) -> None:
        session = self.session
        if session is None or session.phase != DrillPhase.MEMORIZE:
            return
        session.remaining_memorize_seconds -= 1
        remaining = session.remaining_memorize_seconds
        self.event_bus.publish(Events.DRILL_TICK, DrillPhase.MEMORIZE, remaining)
        self._warn_if_low(remaining)
        if remaining <= 0:
            self._start_quiz()

    # -------------------------------------------------------------------------
    # Quiz phase
    # -------------------------------------------------------------------------

    def build_quiz_items(self, words: List[Word]) -> List[QuizItem]:
        """One item per word: the word plus distractors from the full set, shuffled."""
        items = []
        for word in words:
            item_type = self.rng.choice(list(QuizItemType))
            distractors = self.word_service.get_random_words(
                self.settings.distractor_count, exclude=[word.word]
            )
            options = shuffled([word] + distractors, self.rng)
            items.append(QuizItem(target=word, item_type=item_type, options=options))
        return shuffled(items, self.rng)

    def _start_quiz(self) -> None:
        self._cancel_timer()
        session = self.session
        session.quiz_items = self.build_quiz_items(session.study_words)
        session.current_index = 0
        session.remaining_quiz_seconds = session.quiz_allowance
        session.quiz_started_at = self.clock.now()
        session.phase = DrillPhase.QUIZ
        self._enter_phase(DrillPhase.QUIZ)
        self.timer = self.scheduler.every(1, self._tick_quiz, name="force-quiz")

    def _tick_quiz(self) -> None:
        session = self.session
        if session is None or session.phase != DrillPhase.QUIZ:
            return
        session.remaining_quiz_seconds -= 1
        remaining = session.remaining_quiz_seconds
        self.event_bus.publish(Events.DRILL_TICK, DrillPhase.QUIZ, remaining)
        self._warn_if_low(remaining)
        if remaining <= 0:
            logger.info(f"Force drill {session.session_id} quiz timed out")
            self._finish()

    def answer(self, item_index: int, option_index: int) -> bool:
        """Answer the item currently shown; returns whether it was correct."""
        session = self.session
        if session is None or session.phase != DrillPhase.QUIZ:
            raise DrillStateError(f"Cannot answer during the {self.phase.value} phase")
        if item_index != session.current_index:
            raise DrillStateError(
                f"Item {item_index} is not the current item ({session.current_index})"
            )

        item = session.quiz_items[item_index]
        if not 0 <= option_index < len(item.options):
            raise ValidationError(f"Option {option_index} does not exist")

        item.selected_index = option_index
        correct = item.is_correct
        if correct:
            session.score += 1
            self.audio.play_cue("success", 0.3)
        else:
            self.audio.play_cue("error", 0.3)

        session.current_index += 1
        if session.current_index >= len(session.quiz_items):
            self._finish()
        else:
            self.render()
        return correct

    # -------------------------------------------------------------------------
    # Result phase
    # -------------------------------------------------------------------------

    def _finish(self) -> None:
        self._cancel_timer()
        session = self.session
        session.finished_at = self.clock.now()
        session.phase = DrillPhase.RESULT
        session.result = score_session(session)

        monitoring.drills_completed.labels(grade=session.result.grade.value).inc()
        logger.info(
            f"Force drill {session.session_id} finished: {session.score}/{len(session.quiz_items)} correct, "
            f"score {session.result.overall_score} ({session.result.grade.value})"
        )
        self.progress.record_activity(ActivityKind.FORCE, 1)
        self._enter_phase(DrillPhase.RESULT)
        self.event_bus.publish(Events.FORCE_COMPLETED, session.result)

    def mistakes(self) -> List[QuizItem]:
        """Items answered wrongly or left unanswered."""
        if self.session is None or self.session.phase != DrillPhase.RESULT:
            return []
        return [item for item in self.session.quiz_items if not item.is_correct]

    def retry(self) -> DrillSession:
        """Start a fresh session with the configuration of the finished one."""
        if self.session is None or self.session.phase != DrillPhase.RESULT:
            raise DrillStateError("Retry is only possible from the result phase")
        config = self.session.config
        self._discard()
        return self.start_challenge(config)

    def reset(self) -> None:
        """Discard the session and return to setup."""
        self._discard()
        self.render()

    def _discard(self) -> None:
        self._cancel_timer()
        if self.session is not None:
            logger.info(f"Force drill {self.session.session_id} discarded")
        self.session = None

    # -------------------------------------------------------------------------
    # Lifecycle and presentation
    # -------------------------------------------------------------------------

    def on_deactivate(self) -> None:
        self._discard()

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def _enter_phase(self, phase: DrillPhase) -> None:
        self.event_bus.publish(Events.DRILL_PHASE, phase, self.session)
        self.render()

    def view(self) -> Dict[str, Any]:
        session = self.session
        if session is None:
            config = self.default_config()
            return {
                "phase": DrillPhase.SETUP.value,
                "config": {
                    "memorize_seconds": config.memorize_seconds,
                    "quiz_seconds": config.quiz_seconds,
                    "word_count": config.word_count,
                    "difficulty": config.difficulty.value,
                },
            }

        if session.phase == DrillPhase.MEMORIZE:
            return {
                "phase": session.phase.value,
                "words": [
                    {"word": w.word, "phonetic": w.phonetic, "definition": w.definition, "sentence": w.sentence}
                    for w in session.study_words
                ],
                "remaining": session.remaining_memorize_seconds,
                "total": session.memorize_allowance,
            }

        if session.phase == DrillPhase.QUIZ:
            item = session.current_item
            return {
                "phase": session.phase.value,
                "index": session.current_index,
                "count": len(session.quiz_items),
                "prompt": item.prompt if item else None,
                "options": item.option_labels if item else [],
                "remaining": session.remaining_quiz_seconds,
            }

        result = session.result
        return {
            "phase": session.phase.value,
            "words_studied": result.words_studied,
            "correct_answers": result.correct_answers,
            "accuracy": to_percentage(result.correct_answers, result.words_studied),
            "total_seconds": result.total_seconds,
            "overall_score": result.overall_score,
            "grade": result.grade.label,
            "mistakes": [
                {"word": item.target.word, "definition": item.target.definition}
                for item in self.mistakes()
            ],
        }
