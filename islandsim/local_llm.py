"""Utilities for calling locally hosted decision models (Ollama).

The decision adapter reaches this module through ``llm_utils`` when the
service provider is ``ollama``. Requests go to ``/api/chat`` with
``format: "json"`` so the agent's reply parses as a ``tool_calls`` object.
``max_tokens`` from ``DecisionServiceConfig`` is renamed to Ollama's
``num_predict`` option. The blocking HTTP call runs in a worker thread so a
slow local model does not stall the tick's other decisions.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Mapping, Optional
from urllib import error, request

DEFAULT_OLLAMA_BASE_URL = "http://127.0.0.1:11434"
_CHAT_ENDPOINT = "/api/chat"

# Ollama spells the completion budget differently from hosted providers.
_OPTION_NAMES = {"max_tokens": "num_predict"}


class LocalLLMError(RuntimeError):
    """Raised when a local model invocation fails."""


def _perform_ollama_request(
    payload: dict[str, Any],
    base_url: str,
    timeout: float,
) -> str:
    """Execute the blocking HTTP request against the Ollama REST API."""

    url = f"{base_url.rstrip('/')}{_CHAT_ENDPOINT}"
    data = json.dumps(payload).encode("utf-8")
    req = request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )

    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        raise LocalLLMError(
            f"Ollama chat request failed with status {exc.code}: {body or exc.reason}"
        ) from exc
    except error.URLError as exc:
        raise LocalLLMError(f"Could not reach Ollama at {url}: {exc.reason}") from exc

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LocalLLMError("Ollama returned non-JSON response.") from exc

    content = (parsed.get("message") or {}).get("content")
    if not content:
        raise LocalLLMError("Ollama response did not include assistant content.")
    return content


def build_options(params: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Translate provider-neutral sampling params into Ollama ``options``."""
    if not params:
        return {}
    return {_OPTION_NAMES.get(key, key): value for key, value in params.items() if value is not None}


async def call_ollama_chat(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    base_url: str | None = None,
    timeout: float = 30.0,
    options: Optional[Mapping[str, Any]] = None,
    json_format: bool = True,
) -> str:
    """Invoke a local Ollama model and return the assistant text.

    ``json_format`` asks Ollama to constrain the output to JSON, which is
    what every structured decision expects.
    """

    resolved_base = (
        base_url or os.getenv("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL
    ).rstrip("/")

    system_prompt = system_prompt.strip()
    user_prompt = user_prompt.strip()
    if not user_prompt:
        raise LocalLLMError("Cannot call Ollama with an empty user prompt.")

    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})

    payload: dict[str, Any] = {
        "model": llm_model,
        "messages": messages,
        "stream": False,
    }
    if json_format:
        payload["format"] = "json"
    translated = build_options(options)
    if translated:
        payload["options"] = translated

    return await asyncio.to_thread(_perform_ollama_request, payload, resolved_base, timeout)


__all__ = ["LocalLLMError", "call_ollama_chat", "build_options", "DEFAULT_OLLAMA_BASE_URL"]
