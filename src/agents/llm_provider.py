"""Generation backend: a local Ollama server reached through LiteLLM.

Every call takes the resolved :class:`SpeedProfile` explicitly. The prompt is
sent as a single user message; LiteLLM routes ``ollama/<model>`` to the
server's generate endpoint. Model listing and installs talk to the Ollama
REST API directly.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

import requests

from src.agents.speed_profiles import SpeedProfile

logger = logging.getLogger("pointer.agents.llm")

DEFAULT_OLLAMA_URL = "http://localhost:11434"

# Ollama option names that LiteLLM maps onto its own parameters.
_OPTION_ALIASES: dict[str, str] = {
    "num_predict": "max_tokens",
}


class GenerationError(RuntimeError):
    """The model server was unreachable or returned an error."""


def _ollama_settings(cfg: dict[str, Any] | None) -> dict[str, Any]:
    return (cfg or {}).get("ollama") or {}


def _base_url(cfg: dict[str, Any] | None) -> str:
    return str(_ollama_settings(cfg).get("base_url") or DEFAULT_OLLAMA_URL).rstrip("/")


def _build_kwargs(prompt: str, profile: SpeedProfile, cfg: dict[str, Any] | None, stream: bool) -> dict[str, Any]:
    model = profile.model if profile.model.startswith("ollama/") else f"ollama/{profile.model}"
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "api_base": _base_url(cfg),
        "stream": stream,
    }
    timeout = _ollama_settings(cfg).get("timeout")
    if timeout:
        kwargs["timeout"] = timeout
    for key, value in profile.options.items():
        kwargs[_OPTION_ALIASES.get(key, key)] = value
    return kwargs


def complete(prompt: str, profile: SpeedProfile, cfg: dict[str, Any] | None = None) -> str:
    """Send one prompt and return the whole generated text.

    Raises :class:`GenerationError` on any transport or server failure.
    """
    import litellm

    kwargs = _build_kwargs(prompt, profile, cfg, stream=False)
    logger.info("LLM call: model=%s, profile=%s, prompt=%d chars", kwargs["model"], profile.name, len(prompt))

    litellm.drop_params = True
    try:
        response = litellm.completion(**kwargs)
    except Exception as exc:
        logger.warning("LLM call failed: %s", exc)
        raise GenerationError(str(exc)) from exc

    content = response.choices[0].message.content or ""
    logger.info("LLM response: %d chars", len(content))
    return content


def complete_streaming(
    prompt: str,
    profile: SpeedProfile,
    cfg: dict[str, Any] | None = None,
) -> Generator[str, None, None]:
    """Stream completion text. Yields chunks as they arrive."""
    import litellm

    kwargs = _build_kwargs(prompt, profile, cfg, stream=True)
    logger.info("LLM streaming: model=%s, profile=%s, prompt=%d chars", kwargs["model"], profile.name, len(prompt))

    litellm.drop_params = True
    try:
        response = litellm.completion(**kwargs)
        for chunk in response:
            delta = chunk.choices[0].delta
            text = getattr(delta, "content", None)
            if text:
                yield text
    except Exception as exc:
        logger.warning("LLM stream failed: %s", exc)
        raise GenerationError(str(exc)) from exc


def list_local_models(cfg: dict[str, Any] | None = None) -> list[str]:
    """Return the names of models installed on the Ollama server."""
    try:
        resp = requests.get(f"{_base_url(cfg)}/api/tags", timeout=10)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Error fetching models from Ollama: %s", exc)
        raise GenerationError(f"Ollama API error: {exc}") from exc
    return [m["name"] for m in data.get("models", []) if isinstance(m, dict) and m.get("name")]


def pull_model(model_name: str, cfg: dict[str, Any] | None = None) -> None:
    """Ask the Ollama server to install ``model_name``. Blocks until it answers."""
    timeout = _ollama_settings(cfg).get("pull_timeout", 1800)
    logger.info("Pulling model %s from Ollama...", model_name)
    try:
        resp = requests.post(
            f"{_base_url(cfg)}/api/pull",
            json={"name": model_name, "stream": False},
            timeout=timeout,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.error("Error pulling model %s: %s", model_name, exc)
        raise GenerationError(f"Ollama API error: {exc}") from exc
    logger.info("Pull of %s accepted", model_name)
