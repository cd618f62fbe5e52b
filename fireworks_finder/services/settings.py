"""Run configuration read from the environment (and the repository `.env`)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from datetime import date, datetime
from pathlib import Path

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_DB_PATH = Path("datasets/fireworks/events.sqlite")
DEFAULT_EVENT_DATE = date(2025, 7, 4)
DEFAULT_FETCH_TIMEOUT = 20
DEFAULT_USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"


@dataclass
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    # Primary holiday date for the run; extractors fall back to it and take
    # the year from it when a page only says "July 5".
    event_date: date = DEFAULT_EVENT_DATE
    fetch_timeout: int = DEFAULT_FETCH_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"

    @property
    def event_year(self) -> int:
        return self.event_date.year

    @property
    def request_headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent}

    def with_overrides(self, **overrides: object) -> "Settings":
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)


def parse_event_date(value: str) -> date:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        msg = f"Invalid date '{value}'. Expected YYYY-MM-DD."
        raise ValueError(msg) from exc


def load_settings(env_file: Path | None = None) -> Settings:
    dotenv_loaded = load_dotenv(dotenv_path=env_file or REPO_ROOT / ".env")
    if dotenv_loaded:
        LOGGER.debug("Loaded environment variables from .env file.")
    settings = Settings()
    db_path = os.getenv("FIREWORKS_DB_PATH")
    if db_path:
        settings.db_path = Path(db_path)
    raw_date = os.getenv("FIREWORKS_EVENT_DATE")
    if raw_date:
        try:
            settings.event_date = parse_event_date(raw_date)
        except ValueError:
            LOGGER.warning("Ignoring FIREWORKS_EVENT_DATE=%s; using %s.", raw_date, settings.event_date)
    raw_timeout = os.getenv("FIREWORKS_FETCH_TIMEOUT")
    if raw_timeout:
        try:
            settings.fetch_timeout = int(raw_timeout)
        except ValueError:
            LOGGER.warning("Ignoring FIREWORKS_FETCH_TIMEOUT=%s; using %s.", raw_timeout, settings.fetch_timeout)
    user_agent = os.getenv("FIREWORKS_USER_AGENT")
    if user_agent:
        settings.user_agent = user_agent
    log_level = os.getenv("FIREWORKS_LOG_LEVEL")
    if log_level:
        settings.log_level = log_level
    return settings
