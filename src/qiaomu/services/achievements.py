"""Achievement definitions, in the order they are evaluated and reported."""
from typing import Tuple

from qiaomu.config import AchievementThresholds
from qiaomu.models.ledger_models import Achievement, ProgressLedger


def _words(ledger: ProgressLedger) -> int:
    return ledger.words_learned


def _streak(ledger: ProgressLedger) -> int:
    return ledger.current_streak


def _feynman(ledger: ProgressLedger) -> int:
    return ledger.feynman_explanations


def _force(ledger: ProgressLedger) -> int:
    return ledger.force_challenges


def _quizzes(ledger: ProgressLedger) -> int:
    return ledger.quizzes_taken


def _study_time(ledger: ProgressLedger) -> int:
    return ledger.total_study_time_seconds


def build_achievements(thresholds: AchievementThresholds) -> Tuple[Achievement, ...]:
    """Create the immutable achievement table for the given thresholds."""
    t = thresholds
    return (
        Achievement("first_word", "初學者", "學習第一個單字", "fas fa-seedling", _words, t.first_word),
        Achievement("word_novice", "單字新手", f"學習 {t.word_novice} 個單字", "fas fa-book", _words, t.word_novice),
        Achievement("word_expert", "單字達人", f"學習 {t.word_expert} 個單字", "fas fa-graduation-cap", _words, t.word_expert),
        Achievement("streak_beginner", "堅持三天", f"連續學習 {t.streak_beginner} 天", "fas fa-fire", _streak, t.streak_beginner),
        Achievement("streak_warrior", "一週戰士", f"連續學習 {t.streak_warrior} 天", "fas fa-bolt", _streak, t.streak_warrior),
        Achievement("feynman_master", "費曼大師", f"完成 {t.feynman_master} 次費曼解釋", "fas fa-brain", _feynman, t.feynman_master),
        Achievement("force_warrior", "強迫戰士", f"完成 {t.force_warrior} 次強迫學習挑戰", "fas fa-dumbbell", _force, t.force_warrior),
        Achievement("quiz_expert", "測驗專家", f"完成 {t.quiz_expert} 次測驗", "fas fa-trophy", _quizzes, t.quiz_expert),
        Achievement("word_scholar", "單字學者", f"學習 {t.word_scholar} 個單字", "fas fa-university", _words, t.word_scholar),
        Achievement("streak_master", "月度堅持", f"連續學習 {t.streak_master} 天", "fas fa-calendar-check", _streak, t.streak_master),
        Achievement("quiz_novice", "測驗起步", "完成第一次測驗", "fas fa-question-circle", _quizzes, t.quiz_novice),
        Achievement("quiz_master", "測驗大師", f"完成 {t.quiz_master} 次測驗", "fas fa-medal", _quizzes, t.quiz_master),
        Achievement("feynman_novice", "費曼起步", "完成第一次費曼解釋", "fas fa-chalkboard-teacher", _feynman, t.feynman_novice),
        Achievement("force_novice", "挑戰起步", "完成第一次強迫學習挑戰", "fas fa-stopwatch", _force, t.force_novice),
        Achievement("force_master", "極限挑戰者", f"完成 {t.force_master} 次強迫學習挑戰", "fas fa-mountain", _force, t.force_master),
        Achievement("study_hour", "專注一小時", f"累計學習 {t.study_hour // 60} 分鐘", "fas fa-clock", _study_time, t.study_hour),
    )
