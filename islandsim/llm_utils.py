"""Helpers for decision-service calls: schema retries, service backoff, argument repair."""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

from mirascope import llm
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from islandsim.local_llm import LocalLLMError, call_ollama_chat
from islandsim.logging_utils import log_error


ModelT = TypeVar("ModelT", bound=BaseModel)
LLM_TIMEOUT_SECONDS = 30.0

_TRAILING_COMMA_OBJECT = re.compile(r",\s*}")
_TRAILING_COMMA_ARRAY = re.compile(r",\s*]")


@dataclass(slots=True)
class ValidationFeedback:
    """Structured feedback for retrying a response that failed schema validation."""

    llm_text: str
    issues: Sequence[str]


def _truncate_preview(value: Any, *, limit: int = 80) -> str:
    if value is None:
        return "null"
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def inject_validation_feedback(error: ValidationError) -> ValidationFeedback:
    """Turn a pydantic ValidationError into correction text for the next attempt.

    Each issue names the field path (dot notation), the message, the error
    type and a short preview of the offending input.
    """

    issues: list[str] = []
    for err in error.errors(include_url=False):
        loc = ".".join(str(part) for part in err.get("loc", [])) or "root"
        details = f"{loc}: {err.get('msg', 'validation error')}"
        if err.get("type"):
            details += f" [type={err['type']}]"
        if "input" in err:
            details += f" | received={_truncate_preview(err.get('input'))}"
        issues.append(details)

    if not issues:
        issues.append("root: response did not match the expected schema")

    instructions = [
        "Your previous JSON response failed to validate against the required schema.",
        "Produce a corrected response that strictly matches the schema.",
        "Return only valid JSON, without explanations or code fences.",
        "Issues detected:",
    ]
    instructions.extend(f"- {issue}" for issue in issues)
    return ValidationFeedback(llm_text="\n".join(instructions), issues=issues)


def repair_arguments(raw: Any) -> Optional[Dict[str, Any]]:
    """Parse tool-call arguments, healing common JSON slips.

    Accepts an already-decoded mapping or a JSON string. On a decode failure
    trailing commas before ``}``/``]`` are removed and line breaks replaced by
    spaces before a second attempt. Returns None when the arguments are
    still unusable or do not decode to an object.
    """
    if isinstance(raw, dict):
        return dict(raw)
    if not isinstance(raw, str):
        return None

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        healed = _TRAILING_COMMA_OBJECT.sub("}", raw)
        healed = _TRAILING_COMMA_ARRAY.sub("]", healed)
        healed = healed.replace("\n", " ").replace("\r", " ")
        try:
            parsed = json.loads(healed)
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def _log_validation_failure(*, model_name: str, attempt: int, max_attempts: int, feedback: ValidationFeedback) -> None:
    log_error(f"Decision schema validation failed for {model_name} (attempt {attempt}/{max_attempts}).")
    for issue in feedback.issues:
        print(f"    - {issue}")


async def call_llm_with_retries(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    response_model: type[ModelT],
    max_attempts: int = 3,
    feedback_builder: Callable[[ValidationError], ValidationFeedback] = inject_validation_feedback,
    base_url: Optional[str] = None,
    timeout_seconds: float = LLM_TIMEOUT_SECONDS,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    max_service_attempts: int = 1,
    backoff_seconds: float = 0.0,
) -> ModelT:
    """Invoke a structured LLM call with validation retries and service backoff.

    Two retry loops are nested:

    - the inner loop retries ``ValidationError`` up to ``max_attempts`` times,
      appending correction feedback to the original prompt;
    - the outer loop retries everything else (timeouts, transport and
      provider errors) up to ``max_service_attempts`` times, waiting
      ``backoff_seconds * 2**n`` between attempts.

    The last exception of whichever loop gives up is re-raised. Local
    provider failures surface as ``RuntimeError``.
    """

    system_prompt = system_prompt.strip()
    base_user_prompt = user_prompt.strip()
    use_local_llm = llm_provider.lower() == "ollama"

    def _build_user_prompt(feedback_payload: ValidationFeedback | None) -> str:
        sections = [base_user_prompt]
        if feedback_payload is not None:
            sections.append(feedback_payload.llm_text)
        return "\n\n".join(section for section in sections if section)

    def _build_combined_prompt(user_section: str) -> str:
        return "\n\n".join(section for section in (system_prompt, user_section) if section)

    call_params: Dict[str, Any] = {}
    if temperature is not None:
        call_params["temperature"] = temperature
    if max_tokens is not None:
        call_params["max_tokens"] = max_tokens

    remote_invoke: Callable[[str], Any] | None = None
    if not use_local_llm:
        decorator_kwargs: Dict[str, Any] = {
            "provider": llm_provider,
            "model": llm_model,
            "response_model": response_model,
        }
        if call_params:
            decorator_kwargs["call_params"] = call_params

        @llm.call(**decorator_kwargs)
        async def _invoke(prompt: str) -> str:
            return prompt

        remote_invoke = _invoke

    async def _validated_call() -> ModelT:
        feedback_payload: ValidationFeedback | None = None
        attempt_number = 0
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ValidationError),
            stop=stop_after_attempt(max_attempts),
            reraise=True,
        ):
            with attempt:
                attempt_number += 1
                if attempt_number > 1:
                    log_error(
                        f"Decision retry {attempt_number}/{max_attempts} for {response_model.__name__};"
                        " attempting schema correction."
                    )
                user_section = _build_user_prompt(feedback_payload)
                try:
                    if use_local_llm:
                        raw_response = await asyncio.wait_for(
                            call_ollama_chat(
                                system_prompt=system_prompt,
                                user_prompt=user_section,
                                llm_model=llm_model,
                                base_url=base_url,
                                timeout=timeout_seconds,
                                options=call_params or None,
                            ),
                            timeout=timeout_seconds,
                        )
                        return response_model.model_validate_json(raw_response)

                    if remote_invoke is None:
                        raise RuntimeError("Remote LLM invoke is not initialized.")
                    return await asyncio.wait_for(
                        remote_invoke(_build_combined_prompt(user_section)),
                        timeout=timeout_seconds,
                    )
                except ValidationError as exc:
                    feedback_payload = feedback_builder(exc)
                    _log_validation_failure(
                        model_name=response_model.__name__,
                        attempt=attempt_number,
                        max_attempts=max_attempts,
                        feedback=feedback_payload,
                    )
                    raise
        raise RuntimeError("LLM retry mechanism exited unexpectedly")

    service_attempt = 0
    async for attempt in AsyncRetrying(
        retry=retry_if_not_exception_type(ValidationError),
        wait=wait_exponential(multiplier=backoff_seconds, min=0),
        stop=stop_after_attempt(max_service_attempts),
        reraise=True,
    ):
        with attempt:
            service_attempt += 1
            try:
                return await _validated_call()
            except asyncio.TimeoutError:
                log_error(
                    f"Decision call timed out after {timeout_seconds:g}s "
                    f"(service attempt {service_attempt}/{max_service_attempts})."
                )
                raise
            except LocalLLMError as exc:
                log_error(f"Local LLM provider error ({llm_provider}): {exc}")
                raise RuntimeError(f"Local LLM provider error ({llm_provider}): {exc}") from exc

    raise RuntimeError("LLM retry mechanism exited unexpectedly")


__all__ = [
    "LLM_TIMEOUT_SECONDS",
    "ValidationFeedback",
    "call_llm_with_retries",
    "inject_validation_feedback",
    "repair_arguments",
]
