"""Load and validate Pointer configuration from config.yaml."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("pointer")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
_DEFAULT_CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

_DEFAULTS: dict[str, Any] = {
    "data_dir": "data",
    "log_dir": "logs",
    "log_level": "INFO",
    "ollama": {
        "base_url": "http://localhost:11434",
        "timeout": 120,
        "pull_timeout": 1800,
    },
    "default_speed_mode": "fast",
    "speed_profiles": {},
    "google_calendar": {
        "client_id": None,
        "client_secret": None,
        "redirect_uri": "http://localhost:3000/api/google-calendar/callback",
        "timezone": "UTC",
        "sync_interval": 300,
    },
    "quiz": {
        "session_idle_timeout": 1800,
    },
    "cors_origins": ["http://localhost:3000", "http://127.0.0.1:3000"],
}


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file, with env-var overrides.

    Missing sections are filled from built-in defaults, so a partial
    config.yaml is fine.

    Environment variable overrides (if set):
        POINTER_DATA_DIR      -> data_dir
        POINTER_LOG_DIR       -> log_dir
        POINTER_OLLAMA_URL    -> ollama.base_url
        POINTER_SPEED_MODE    -> default_speed_mode
        GOOGLE_CLIENT_ID      -> google_calendar.client_id
        GOOGLE_CLIENT_SECRET  -> google_calendar.client_secret
        GOOGLE_REDIRECT_URI   -> google_calendar.redirect_uri
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    cfg = _merge_defaults(_DEFAULTS, raw)

    _env_override(cfg, "POINTER_DATA_DIR", "data_dir")
    _env_override(cfg, "POINTER_LOG_DIR", "log_dir")
    _env_override(cfg, "POINTER_OLLAMA_URL", "ollama", "base_url")
    _env_override(cfg, "POINTER_SPEED_MODE", "default_speed_mode")
    _env_override(cfg, "GOOGLE_CLIENT_ID", "google_calendar", "client_id")
    _env_override(cfg, "GOOGLE_CLIENT_SECRET", "google_calendar", "client_secret")
    _env_override(cfg, "GOOGLE_REDIRECT_URI", "google_calendar", "redirect_uri")

    _validate(cfg)
    return cfg


def _merge_defaults(defaults: dict[str, Any], raw: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in defaults.items():
        if isinstance(value, dict):
            out[key] = _merge_defaults(value, raw.get(key) or {})
        else:
            out[key] = raw.get(key, value)
    for key, value in raw.items():
        if key not in out:
            out[key] = value
    return out


def _env_override(cfg: dict, env_key: str, *keys: str) -> None:
    """Override a nested config value from an environment variable."""
    val = os.environ.get(env_key)
    if val is None:
        return
    target = cfg
    for k in keys[:-1]:
        target = target.setdefault(k, {})
    target[keys[-1]] = val


def _validate(cfg: dict[str, Any]) -> None:
    """Check values that would otherwise fail late, at request time."""
    from src.agents.speed_profiles import DEFAULT_MODE, load_profiles

    profiles = load_profiles(cfg)
    mode = cfg.get("default_speed_mode")
    if mode not in profiles:
        logger.warning("Unknown default_speed_mode %r, falling back to %s", mode, DEFAULT_MODE)
        cfg["default_speed_mode"] = DEFAULT_MODE

    gcal = cfg["google_calendar"]
    if not gcal.get("client_id") or not gcal.get("client_secret"):
        logger.warning("Google Calendar client credentials not set, calendar sync disabled")

    try:
        cfg["google_calendar"]["sync_interval"] = int(gcal["sync_interval"] if gcal.get("sync_interval") is not None else 300)
    except (TypeError, ValueError):
        raise ValueError(f"google_calendar.sync_interval must be an integer: {gcal.get('sync_interval')!r}")


def resolve_data_dir(cfg: dict[str, Any]) -> Path:
    """Return the absolute data directory, creating it if needed.

    Relative paths are resolved against the repo root.
    """
    data_dir = Path(os.path.expanduser(str(cfg["data_dir"])))
    if not data_dir.is_absolute():
        data_dir = REPO_DIR / data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def load_env_local(env_file: Path | None = None) -> None:
    """Load KEY=VALUE lines from .env.local without overriding the environment."""
    env_file = env_file or REPO_DIR / ".env.local"
    if not env_file.is_file():
        return
    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            key, _, value = line.partition("=")
            os.environ.setdefault(key.strip(), value.strip())


def setup_logging(cfg: dict[str, Any]) -> None:
    """Configure root logging: stderr + rotating file."""
    log_dir = Path(os.path.expanduser(str(cfg["log_dir"])))
    if not log_dir.is_absolute():
        log_dir = REPO_DIR / log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    from logging.handlers import RotatingFileHandler

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    root = logging.getLogger("pointer")
    root.setLevel(getattr(logging, str(cfg.get("log_level", "INFO")).upper(), logging.INFO))

    if root.handlers:
        return

    # stderr
    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    root.addHandler(sh)

    # rotating file
    fh = RotatingFileHandler(log_dir / "pointer.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    root.addHandler(fh)
