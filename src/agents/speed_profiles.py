"""Speed profiles: named bundles of Ollama model + generation options.

A profile is resolved once per request and passed down explicitly; nothing
here holds a process-wide "current mode".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("pointer.agents.speed")

DEFAULT_MODE = "fast"
SPEED_MODES: tuple[str, ...] = ("fast", "balanced", "quality")

_BASE_OPTIONS: dict[str, Any] = {
    "temperature": 0.7,
    "top_p": 0.9,
    "top_k": 40,
    "repeat_penalty": 1.1,
    "seed": 42,
}

_BUILTIN_PROFILES: dict[str, dict[str, Any]] = {
    "fast": {
        "model": "qwen2.5:0.5b",
        "options": {**_BASE_OPTIONS, "num_predict": 512, "num_ctx": 2048, "num_thread": 4},
    },
    "balanced": {
        "model": "llama3.1:8b",
        "options": {**_BASE_OPTIONS, "num_predict": 1024, "num_ctx": 4096, "num_thread": 8},
    },
    "quality": {
        "model": "llama3.1:8b",
        "options": {**_BASE_OPTIONS, "num_predict": 2048, "num_ctx": 8192, "num_thread": 12},
    },
}

# Models suggested in the settings view for quick installs.
FAST_MODELS: list[str] = [
    "llama3.1:1b",
    "llama3.1:3b",
    "llama3.1:8b",
    "llama3.1:latest",
    "mistral:7b",
    "phi3:mini",
    "qwen2.5:0.5b",
]


@dataclass(frozen=True)
class SpeedProfile:
    name: str
    model: str
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "model": self.model, "options": dict(self.options)}


def load_profiles(cfg: dict[str, Any] | None = None) -> dict[str, SpeedProfile]:
    """Build the profile table, applying ``speed_profiles`` overrides from config.

    Overrides are merged per profile: a config entry may change only the model
    or a single option.
    """
    overrides = ((cfg or {}).get("speed_profiles") or {})
    profiles: dict[str, SpeedProfile] = {}
    for name in SPEED_MODES:
        base = _BUILTIN_PROFILES[name]
        over = overrides.get(name) or {}
        options = {**base["options"], **(over.get("options") or {})}
        profiles[name] = SpeedProfile(name=name, model=over.get("model") or base["model"], options=options)
    return profiles


def resolve_profile(mode: str | None, cfg: dict[str, Any] | None = None) -> SpeedProfile:
    """Return the profile for ``mode``; unknown or empty names fall back to the default."""
    profiles = load_profiles(cfg)
    if mode in profiles:
        return profiles[mode]
    default = (cfg or {}).get("default_speed_mode") or DEFAULT_MODE
    if mode:
        logger.warning("Unknown speed mode %r, using %s", mode, default)
    return profiles.get(default, profiles[DEFAULT_MODE])


def is_valid_mode(mode: Any) -> bool:
    return isinstance(mode, str) and mode in SPEED_MODES
