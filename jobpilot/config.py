"""Load settings from .env, an optional YAML file and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobpilot.errors import ConfigurationError
from jobpilot.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DATA_DIR: Path = ROOT_DIR / "data"
ARTIFACTS_DIR: Path = ROOT_DIR / "artifacts"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class Settings:
    # AI gateway
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    ai_daily_limit: int = 45
    ai_min_interval_seconds: float = 2.0

    # Sources
    jsearch_api_key: str = ""
    adzuna_app_id: str = ""
    adzuna_app_key: str = ""
    min_pool_size: int = 3
    navigation_delay_seconds: float = 3.0
    http_timeout_seconds: float = 15.0
    navigation_timeout_seconds: float = 20.0
    browser_enabled: bool = True
    run_headless: bool = True

    # Pipeline / scheduler
    per_run_cap: int = 3
    overfetch_limit: int = 20
    interactive_limit: int = 10
    inter_user_delay_seconds: float = 10.0
    inter_job_delay_seconds: float = 8.0
    daily_run_hour: int = 9
    timezone: str = "Asia/Kolkata"
    test_interval_minutes: int = 0

    # Collaborators
    db_path: str = str(DATA_DIR / "jobpilot.db")
    artifacts_dir: str = str(ARTIFACTS_DIR)
    telegram_bot_token: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    session_ttl_seconds: int = 24 * 60 * 60

    def require_ai(self) -> None:
        """Fail fast at startup when the AI credentials are missing."""
        if not self.groq_api_key:
            raise ConfigurationError("GROQ_API_KEY is not set; add it to .env")


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _coerce(raw: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(str(raw).strip())
    if isinstance(default, float):
        return float(str(raw).strip())
    return str(raw).strip()


def load_yaml_settings(path: Path = SETTINGS_PATH) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping")
    return data


# Names the deployment environment already uses.
_ENV_ALIASES: dict[str, str] = {"groq_model": "GROQ_LLM_MODEL"}


def load_settings(path: Path = SETTINGS_PATH, environ: dict[str, str] | None = None) -> Settings:
    """YAML values first, environment variables (UPPER_CASE) override them."""
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    file_values = load_yaml_settings(path)
    for f in fields(Settings):
        raw = env.get(f.name.upper())
        if (raw is None or str(raw).strip() == "") and f.name in _ENV_ALIASES:
            raw = env.get(_ENV_ALIASES[f.name])
        if raw is None or str(raw).strip() == "":
            raw = file_values.get(f.name)
        if raw is None:
            continue
        try:
            values[f.name] = _coerce(raw, f.default)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid value for {f.name.upper()}: {raw!r}") from exc
    settings = Settings(**values)
    log.debug("Settings loaded (yaml=%s)", path.exists())
    return settings


def ensure_dirs(settings: Settings) -> None:
    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
    Path(settings.artifacts_dir).mkdir(parents=True, exist_ok=True)
