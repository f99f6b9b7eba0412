"""
Runtime configuration.

Values come from the environment, optionally seeded from a `.env` file in
the working directory. Everything has a usable default except the
spreadsheet id and credentials, which only the Google client needs.
"""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

PACKAGE_DIR = Path(__file__).parent
DEFAULT_LOGO_PATH = PACKAGE_DIR / "assets" / "logo.png"


class Settings(BaseModel):
    spreadsheet_id: Optional[str] = None
    google_api_key: Optional[str] = None
    service_account_file: Path = Path("credentials/service-account-key.json")
    companies_file: Path = Path("data/companies.json")
    logo_path: Path = DEFAULT_LOGO_PATH
    # None lists sheets of every year
    sheet_year_filter: Optional[int] = Field(default_factory=lambda: date.today().year)
    max_concurrent_renders: int = Field(default=2, ge=1)
    render_acquire_timeout: float = Field(default=60.0, gt=0)
    api_token: Optional[str] = None
    log_level: str = "INFO"


def _year_filter(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return date.today().year
    if raw.strip().lower() == "all":
        return None
    return int(raw)


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment after loading `.env`.

    Variables already present in the environment win over the file.
    """
    load_dotenv(env_file or Path.cwd() / ".env")

    values = {
        "spreadsheet_id": os.getenv("GOOGLE_SPREADSHEET_ID") or None,
        "google_api_key": os.getenv("GOOGLE_API_KEY") or None,
        "sheet_year_filter": _year_filter(os.getenv("SHEET_YEAR_FILTER")),
        "api_token": os.getenv("INVOICER_API_TOKEN") or None,
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
    }
    optional = {
        "service_account_file": "GOOGLE_SERVICE_ACCOUNT_FILE",
        "companies_file": "COMPANIES_FILE",
        "logo_path": "INVOICE_LOGO_PATH",
        "max_concurrent_renders": "MAX_CONCURRENT_RENDERS",
        "render_acquire_timeout": "RENDER_ACQUIRE_TIMEOUT",
    }
    for field_name, env_name in optional.items():
        raw = os.getenv(env_name)
        if raw:
            values[field_name] = raw

    return Settings(**values)
