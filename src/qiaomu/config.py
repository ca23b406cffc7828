"""Configuration settings for the learning core."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from qiaomu.errors import ConfigurationError

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent
PACKAGE_DIR = Path(__file__).parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
REFERENCE_DATA_DIR = PACKAGE_DIR / "data"
WORDS_FILE = REFERENCE_DATA_DIR / "words.json"
QUIZ_QUESTIONS_FILE = REFERENCE_DATA_DIR / "quiz_questions.json"

APP_NAME = "喬木英語學習平台"
SCHEMA_VERSION = 2


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


@dataclass
class StorageKeys:
    """Keys of the persisted records."""
    user_data: str = "qiaomu-user-data"
    learning_data: str = "qiaomu-learning-data"
    settings: str = "qiaomu-settings"
    session: str = "qiaomu-user-session"
    navigation_stats: str = "navigation-stats"
    error_logs: str = "error-logs"
    feynman_history: str = "feynman-explanation-history"


@dataclass
class StorageSettings:
    """Persistent key-value store settings."""
    url: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'qiaomu.db'}")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"
    keys: StorageKeys = field(default_factory=StorageKeys)
    schema_version: int = SCHEMA_VERSION


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    port: Optional[int] = int(os.getenv("METRICS_PORT")) if os.getenv("METRICS_PORT") else None


def default_weekly_goals() -> dict[str, int]:
    return {"words": 50, "quizzes": 10, "feynman": 5, "force": 3}


@dataclass
class AchievementThresholds:
    """Counter values at which achievements unlock."""
    first_word: int = 1
    word_novice: int = 10
    word_expert: int = 50
    word_scholar: int = 100
    streak_beginner: int = 3
    streak_warrior: int = 7
    streak_master: int = 30
    feynman_novice: int = 1
    feynman_master: int = 10
    force_novice: int = 1
    force_warrior: int = 5
    force_master: int = 20
    quiz_novice: int = 1
    quiz_expert: int = 20
    quiz_master: int = 50
    study_hour: int = 3600


@dataclass
class LedgerSettings:
    """Progress ledger settings."""
    weekly_goals: dict[str, int] = field(default_factory=default_weekly_goals)
    thresholds: AchievementThresholds = field(default_factory=AchievementThresholds)


@dataclass
class ForceSettings:
    """Force-drill defaults and allowed ranges."""
    memorize_seconds: int = int(os.getenv("FORCE_MEMORIZE_SECONDS", "60"))
    quiz_seconds: int = int(os.getenv("FORCE_QUIZ_SECONDS", "30"))
    word_count: int = int(os.getenv("FORCE_WORD_COUNT", "10"))
    memorize_range: tuple[int, int] = (30, 120)
    quiz_range: tuple[int, int] = (15, 60)
    word_count_range: tuple[int, int] = (3, 10)
    warning_seconds: int = 10
    distractor_count: int = 3
    difficulty_multipliers: dict[str, float] = field(
        default_factory=lambda: {"easy": 1.5, "normal": 1.0, "hard": 0.7}
    )
    easy_max_length: int = 6
    hard_min_length: int = 8


@dataclass
class QuizSettings:
    """Standard quiz settings."""
    time_limit: int = int(os.getenv("QUIZ_TIME_LIMIT", "300"))
    passing_score: int = int(os.getenv("QUIZ_PASSING_SCORE", "70"))


@dataclass
class FeynmanSettings:
    """Feynman exercise settings."""
    min_explanation_length: int = int(os.getenv("FEYNMAN_MIN_LENGTH", "50"))
    detail_length: int = 100
    rating_scale: tuple[int, ...] = (1, 2, 3, 4, 5)
    rating_categories: tuple[str, ...] = ("accuracy", "completeness", "clarity")
    history_size: int = 20


@dataclass
class NavigationSettings:
    """Navigation manager settings."""
    default_module: str = "dashboard"
    max_history_size: int = int(os.getenv("NAV_HISTORY_SIZE", "10"))
    max_log_entries: int = 100
    max_error_logs: int = 50


@dataclass
class AuthSettings:
    """Mock authentication settings."""
    login_delay: float = float(os.getenv("LOGIN_DELAY", "1.0"))
    min_username_length: int = 3
    email_domain: str = os.getenv("EMAIL_DOMAIN", "stust.edu.tw")


def get_storage_settings() -> StorageSettings:
    """Get storage settings."""
    return StorageSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


def get_ledger_settings() -> LedgerSettings:
    """Get ledger settings."""
    return LedgerSettings()


def get_force_settings() -> ForceSettings:
    """Get force-drill settings."""
    return ForceSettings()


def get_quiz_settings() -> QuizSettings:
    """Get quiz settings."""
    return QuizSettings()


def get_feynman_settings() -> FeynmanSettings:
    """Get Feynman settings."""
    return FeynmanSettings()


def get_navigation_settings() -> NavigationSettings:
    """Get navigation settings."""
    return NavigationSettings()


def get_auth_settings() -> AuthSettings:
    """Get authentication settings."""
    return AuthSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    storage: StorageSettings = field(default_factory=get_storage_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)
    ledger: LedgerSettings = field(default_factory=get_ledger_settings)
    force: ForceSettings = field(default_factory=get_force_settings)
    quiz: QuizSettings = field(default_factory=get_quiz_settings)
    feynman: FeynmanSettings = field(default_factory=get_feynman_settings)
    navigation: NavigationSettings = field(default_factory=get_navigation_settings)
    auth: AuthSettings = field(default_factory=get_auth_settings)

    def validate(self) -> None:
        """Validate settings and raise ConfigurationError if invalid."""
        force = self.force
        for name, value, (low, high) in (
            ("FORCE_MEMORIZE_SECONDS", force.memorize_seconds, force.memorize_range),
            ("FORCE_QUIZ_SECONDS", force.quiz_seconds, force.quiz_range),
            ("FORCE_WORD_COUNT", force.word_count, force.word_count_range),
        ):
            if low > high:
                raise ConfigurationError(f"{name} range is empty: {low} > {high}")
            if not low <= value <= high:
                raise ConfigurationError(f"{name} must be between {low} and {high}")

        if set(force.difficulty_multipliers) != {"easy", "normal", "hard"}:
            raise ConfigurationError("Difficulty multipliers must cover easy, normal and hard")

        if self.quiz.time_limit < 1:
            raise ConfigurationError("QUIZ_TIME_LIMIT must be positive")

        if not 0 <= self.quiz.passing_score <= 100:
            raise ConfigurationError("QUIZ_PASSING_SCORE must be between 0 and 100")

        if self.feynman.min_explanation_length < 1:
            raise ConfigurationError("FEYNMAN_MIN_LENGTH must be positive")

        if self.navigation.max_history_size < 1:
            raise ConfigurationError("NAV_HISTORY_SIZE must be positive")

        if self.auth.login_delay < 0:
            raise ConfigurationError("LOGIN_DELAY cannot be negative")

        if any(goal < 0 for goal in self.ledger.weekly_goals.values()):
            raise ConfigurationError("Weekly goals cannot be negative")


# Create global settings instance
settings = Settings()
settings.validate()
