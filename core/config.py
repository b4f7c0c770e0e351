"""Runtime settings and logging setup shared by the API and the Streamlit app."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from core.constants import GOOGLE_SHEET_CSV_URL


@dataclass(frozen=True)
class Settings:
    sheet_csv_url: str = GOOGLE_SHEET_CSV_URL
    refresh_seconds: int = 300
    fetch_timeout: float = 20.0
    state_dir: Path = Path(".ps_state")
    emailjs_service_id: str = "service_controleps"
    emailjs_template_id: str = "template_d589wis"
    emailjs_public_key: str = "J8Rj1YxqYWjXofqMX"

    @property
    def dispatch_state_path(self) -> Path:
        return self.state_dir / "dispatched.json"

    @property
    def workshop_emails_path(self) -> Path:
        return self.state_dir / "workshop_emails.json"


def _env_int(name: str, default: int) -> int:
    try:
        return max(1, int(os.getenv(name, default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        sheet_csv_url=os.getenv("PS_SHEET_CSV_URL", defaults.sheet_csv_url),
        refresh_seconds=_env_int("PS_REFRESH_SECONDS", defaults.refresh_seconds),
        fetch_timeout=_env_float("PS_FETCH_TIMEOUT", defaults.fetch_timeout),
        state_dir=Path(os.getenv("PS_STATE_DIR", str(defaults.state_dir))),
        emailjs_service_id=os.getenv("EMAILJS_SERVICE_ID", defaults.emailjs_service_id),
        emailjs_template_id=os.getenv("EMAILJS_TEMPLATE_ID", defaults.emailjs_template_id),
        emailjs_public_key=os.getenv("EMAILJS_PUBLIC_KEY", defaults.emailjs_public_key),
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Initialize basic logging with a shared format.

    The level comes from ``level`` or the ``LOG_LEVEL`` environment variable
    (defaults to ``INFO``).
    """

    resolved_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
