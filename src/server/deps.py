"""Shared request-time helpers for the API routers."""

from __future__ import annotations

import logging
from typing import Any

from src.agents.speed_profiles import SpeedProfile, is_valid_mode, resolve_profile
from src.common import store as store_keys
from src.common.config import REPO_DIR, load_config, resolve_data_dir
from src.common.store import LocalStore

logger = logging.getLogger("pointer.server")

CONFIG_PATH = REPO_DIR / "config" / "config.yaml"


def get_config() -> dict[str, Any]:
    return load_config(CONFIG_PATH)


def get_store(cfg: dict[str, Any] | None = None) -> LocalStore:
    cfg = cfg or get_config()
    return LocalStore(resolve_data_dir(cfg))


def current_speed_mode(cfg: dict[str, Any], store: LocalStore) -> str:
    """Stored preference, else the configured default."""
    saved = store.get(store_keys.SPEED_MODE)
    if is_valid_mode(saved):
        return saved
    return cfg.get("default_speed_mode", "fast")


def request_profile(body: dict[str, Any], cfg: dict[str, Any], store: LocalStore) -> SpeedProfile:
    """Resolve the speed profile for one request.

    A ``speed_mode`` in the request body wins over the stored preference.
    """
    mode = body.get("speed_mode") if isinstance(body, dict) else None
    if not mode:
        mode = current_speed_mode(cfg, store)
    return resolve_profile(mode, cfg)


async def read_json(request: Any) -> dict[str, Any]:
    """Request body as a dict; empty or non-object bodies become ``{}``."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
