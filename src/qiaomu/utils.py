"""Small helpers shared by the services."""
import math
import random
import string
import time
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, TypeVar

T = TypeVar("T")

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "zh-TW": {
        "welcome": "歡迎使用喬木英語學習平台",
        "loading": "載入中...",
        "error": "發生錯誤",
        "success": "成功",
        "save": "保存",
        "cancel": "取消",
        "confirm": "確認",
        "next": "下一個",
        "previous": "上一個",
        "finish": "完成",
        "retry": "重試",
        "achievement_unlocked": "成就解鎖：{name}",
        "permission_denied": "您沒有權限訪問此模組",
        "storage_failed": "儲存失敗，請檢查儲存空間",
        "drill_finished": "挑戰完成！得分 {score}（{grade}）",
        "feynman_finished": "費曼學習完成！",
    },
    "en": {
        "welcome": "Welcome to the Qiaomu English learning platform",
        "loading": "Loading...",
        "error": "An error occurred",
        "success": "Success",
        "save": "Save",
        "cancel": "Cancel",
        "confirm": "Confirm",
        "next": "Next",
        "previous": "Previous",
        "finish": "Finish",
        "retry": "Retry",
        "achievement_unlocked": "Achievement unlocked: {name}",
        "permission_denied": "You do not have permission to open this module",
        "storage_failed": "Saving failed, please check the available storage",
        "drill_finished": "Challenge complete! Score {score} ({grade})",
        "feynman_finished": "Feynman session complete!",
    },
}


def translate(key: str, language: str = "zh-TW", **params: Any) -> str:
    """Look up a UI string; unknown keys are returned unchanged."""
    text = TRANSLATIONS.get(language, {}).get(key, key)
    for name, value in params.items():
        text = text.replace(f"{{{name}}}", str(value))
    return text


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return an unbiased (Fisher-Yates) shuffled copy of the sequence."""
    result = list(items)
    (rng or random).shuffle(result)
    return result


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


def days_between(first: date, second: date) -> int:
    """Whole calendar days between two dates, ignoring order."""
    return abs((second - first).days)


def to_percentage(value: float, total: float, decimals: int = 0) -> float:
    """Share of value in total as a percentage; 0 when total is 0."""
    if total == 0:
        return 0
    result = round(value / total * 100, decimals)
    return int(result) if decimals == 0 else result


def format_time(seconds: int) -> str:
    """Format a duration as H:MM:SS or M:SS."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def generate_id(length: int = 9, rng: Optional[random.Random] = None) -> str:
    """Random lowercase base36 identifier."""
    alphabet = string.ascii_lowercase + string.digits
    return "".join((rng or random).choice(alphabet) for _ in range(length))


def generate_session_id() -> str:
    """Opaque session id in the form session_<epoch-ms>_<9 chars>."""
    return f"session_{int(time.time() * 1000)}_{generate_id()}"


def format_bytes(size: int) -> str:
    """Human readable byte size."""
    if size == 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    index = min(int(math.log(size, 1024)), len(units) - 1)
    value = round(size / 1024 ** index, 2)
    return f"{value:g} {units[index]}"
