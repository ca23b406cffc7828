"""Standard multiple-choice quiz with a single overall time limit."""
import logging
from typing import Any, Dict, List, Optional

from qiaomu.config import QuizSettings, settings
from qiaomu.errors import ValidationError
from qiaomu.models.content_models import QuizQuestion, QuizResult
from qiaomu.models.ledger_models import ActivityKind
from qiaomu.models.navigation_models import ModuleName
from qiaomu.services.event_bus import EventBus, Events
from qiaomu.services.module_registry import LearningModule
from qiaomu.services.notification_service import RenderSurface
from qiaomu.services.progress_service import ProgressService
from qiaomu.services.scheduler_service import Scheduler, TimerHandle
from qiaomu.services.word_service import load_quiz_questions
from qiaomu.utils import to_percentage

logger = logging.getLogger(__name__)


def quiz_feedback(percentage: int) -> str:
    if percentage == 100:
        return "🎉 完美！你完全掌握了內容！"
    if percentage >= 80:
        return "🌟 優秀！你的理解很到位！"
    if percentage >= 60:
        return "👍 不錯！繼續加油！"
    return "💪 需要多加練習，不要放棄！"


class QuizModule(LearningModule):
    """Quiz module: answer every question before the time limit runs out."""

    name = ModuleName.QUIZ

    def __init__(
        self,
        progress: ProgressService,
        event_bus: EventBus,
        scheduler: Scheduler,
        questions: Optional[List[QuizQuestion]] = None,
        quiz_settings: Optional[QuizSettings] = None,
        surface: Optional[RenderSurface] = None,
    ):
        super().__init__(surface)
        self.progress = progress
        self.event_bus = event_bus
        self.scheduler = scheduler
        self.questions = list(questions) if questions is not None else load_quiz_questions()
        self.settings = quiz_settings or settings.quiz
        self.timer: Optional[TimerHandle] = None
        self.current_index = 0
        self.answers: Dict[int, int] = {}
        self.remaining_seconds = self.settings.time_limit
        self.started = False
        self.result: Optional[QuizResult] = None

    @property
    def completed(self) -> bool:
        return self.result is not None

    def start(self) -> None:
        """Reset answers and start the countdown."""
        self._cancel_timer()
        self.current_index = 0
        self.answers = {}
        self.remaining_seconds = self.settings.time_limit
        self.result = None
        self.started = True
        self.timer = self.scheduler.every(1, self._tick, name="quiz")
        logger.info(f"Quiz started with {len(self.questions)} questions")
        self.render()

    def _tick(self) -> None:
        if not self.started or self.completed:
            return
        self.remaining_seconds -= 1
        if self.remaining_seconds <= 0:
            logger.info("Quiz time limit reached")
            self._complete(timed_out=True)

    def answer(self, question_index: int, option_index: int) -> bool:
        """Lock in an answer; the first answer to a question counts."""
        if not self.started or self.completed:
            raise ValidationError("The quiz is not running")
        if not 0 <= question_index < len(self.questions):
            raise ValidationError(f"Question {question_index} does not exist")
        question = self.questions[question_index]
        if not 0 <= option_index < len(question.options):
            raise ValidationError(f"Option {option_index} does not exist")

        self.answers.setdefault(question_index, option_index)
        self.render()
        return self.answers[question_index] == question.correct_answer

    def next_question(self) -> int:
        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
            self.render()
        return self.current_index

    def previous_question(self) -> int:
        if self.current_index > 0:
            self.current_index -= 1
            self.render()
        return self.current_index

    def finish(self) -> QuizResult:
        """Score the quiz and count it in the ledger."""
        if not self.started or self.completed:
            raise ValidationError("The quiz is not running")
        return self._complete(timed_out=False)

    def _complete(self, timed_out: bool) -> QuizResult:
        self._cancel_timer()
        correct = sum(
            1 for index, question in enumerate(self.questions)
            if self.answers.get(index) == question.correct_answer
        )
        percentage = to_percentage(correct, len(self.questions))
        self.result = QuizResult(
            correct=correct,
            total=len(self.questions),
            percentage=percentage,
            passed=percentage >= self.settings.passing_score,
            elapsed_seconds=self.settings.time_limit - max(0, self.remaining_seconds),
            timed_out=timed_out,
            answers=dict(self.answers),
        )
        logger.info(f"Quiz finished: {correct}/{len(self.questions)} ({percentage}%)")
        self.progress.record_activity(ActivityKind.QUIZ, 1)
        self.event_bus.publish(Events.QUIZ_COMPLETED, self.result)
        self.render()
        return self.result

    def retake(self) -> None:
        self.start()

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def on_activate(self) -> None:
        if not self.started:
            self.start()

    def on_deactivate(self) -> None:
        self._cancel_timer()
        self.started = False
        self.result = None

    def view(self) -> Dict[str, Any]:
        if self.result is not None:
            return {
                "completed": True,
                "correct": self.result.correct,
                "total": self.result.total,
                "percentage": self.result.percentage,
                "passed": self.result.passed,
                "feedback": quiz_feedback(self.result.percentage),
            }
        question = self.questions[self.current_index] if self.questions else None
        return {
            "completed": False,
            "index": self.current_index,
            "count": len(self.questions),
            "question": question.question if question else None,
            "options": list(question.options) if question else [],
            "selected": self.answers.get(self.current_index),
            "remaining": self.remaining_seconds,
        }
