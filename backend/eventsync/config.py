import logging
import os

from dotenv import load_dotenv

load_dotenv(override=True)


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def get_database_url() -> str:
    return (os.getenv("EVENTSYNC_DB_URL") or "sqlite:///./eventsync.db").strip()


def get_critical_escalation_hours() -> int:
    """Hours before a deadline at which HIGH/URGENT tasks get escalated."""
    return _env_int("EVENTSYNC_ESCALATION_CRITICAL_HOURS", 24)


def get_auto_create_milestone_tasks() -> bool:
    return _env_bool("EVENTSYNC_AUTO_CREATE_MILESTONE_TASKS", True)


def configure_logging() -> None:
    level = (os.getenv("EVENTSYNC_LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
