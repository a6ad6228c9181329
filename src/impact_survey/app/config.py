from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(key)
    if v is None:
        return default
    v = v.strip()
    return v if v else default


def _env_int(key: str, default: int) -> int:
    v = _env_str(key)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    v = _env_str(key)
    if v is None:
        return default
    return v.lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    # Core paths
    db_path: str
    artifacts_dir: str

    # Logging
    log_level: str
    log_json: bool

    # Charts
    chart_dpi: int

    @staticmethod
    def from_env(dotenv: bool = True) -> "Settings":
        # Read configuration from environment variables (and a local .env if present).
        if dotenv:
            load_dotenv()

        db_path = _env_str("IMPACT_DB_PATH", "data/impact.db") or "data/impact.db"
        artifacts_dir = _env_str("IMPACT_ARTIFACTS_DIR", "artifacts") or "artifacts"

        # Create directories if needed (do not create DB file here).
        Path(artifacts_dir).mkdir(parents=True, exist_ok=True)
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        return Settings(
            db_path=db_path,
            artifacts_dir=artifacts_dir,

            log_level=_env_str("IMPACT_LOG_LEVEL", "INFO") or "INFO",
            log_json=_env_bool("IMPACT_LOG_JSON", True),

            chart_dpi=_env_int("IMPACT_CHART_DPI", 120),
        )
