"""Monitoring configuration for the learning core."""
from prometheus_client import Counter, Gauge, start_http_server

# Ledger metrics
activities_recorded = Counter(
    "qiaomu_activities_recorded_total",
    "Number of learning activities written to the progress ledger",
    ["kind"],
)

achievements_unlocked = Counter(
    "qiaomu_achievements_unlocked_total",
    "Number of achievements unlocked",
    ["achievement_id"],
)

# Force-drill metrics
drills_started = Counter(
    "qiaomu_drills_started_total",
    "Number of force-drill challenges started",
    ["difficulty"],
)

drills_completed = Counter(
    "qiaomu_drills_completed_total",
    "Number of force-drill challenges that reached the result phase",
    ["grade"],
)

active_timers = Gauge(
    "qiaomu_active_timers",
    "Number of countdown timers currently registered with the scheduler",
)

# Navigation metrics
navigation_rejected = Counter(
    "qiaomu_navigation_rejected_total",
    "Number of refused navigation requests",
    ["reason"],
)

# Error metrics
storage_errors = Counter(
    "qiaomu_storage_errors_total",
    "Number of failed key-value store operations",
    ["operation"],
)

handler_errors = Counter(
    "qiaomu_event_handler_errors_total",
    "Number of exceptions raised by event-bus handlers",
    ["event"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
