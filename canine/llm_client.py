"""OpenAI chat completion client for grounded answers.

Wraps the OpenAI SDK so the rest of the codebase does not import
``openai`` directly. Failures are returned as a CompletionResult with
success=False rather than raised into the request handler.

Environment variables:
    OPENAI_API_KEY: Required for completions.
    OPENAI_MODEL: Override model (default: gpt-4o-mini).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from canine import config

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 900
COMPLETION_TIMEOUT_SECS = 30.0
_MAX_RETRIES = 3


@dataclass
class CompletionResult:
    """Result of a chat completion call."""

    success: bool
    text: str
    error: str | None = None
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0


def is_llm_available() -> bool:
    """Check whether an OpenAI API key is configured."""
    return bool(config.openai_api_key())


def complete_chat(
    messages: list[dict],
    model: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> CompletionResult:
    """Send messages to the chat completion API.

    Retries transient errors with exponential backoff (1s, 2s).

    Returns:
        CompletionResult; ``success`` is False on a missing key, a missing
        SDK, an empty reply, or an API error after all retries.
    """
    api_key = config.openai_api_key()
    model = model or config.openai_model()
    if not api_key:
        return CompletionResult(success=False, text="", error="OPENAI_API_KEY not set", model=model)

    try:
        from openai import OpenAI
    except ImportError:
        return CompletionResult(
            success=False, text="", model=model,
            error="openai package not installed. Run: pip install openai",
        )

    client = OpenAI(api_key=api_key, timeout=COMPLETION_TIMEOUT_SECS)
    start = time.monotonic()

    for attempt in range(_MAX_RETRIES):
        try:
            response = client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            break
        except Exception as e:
            if attempt < _MAX_RETRIES - 1:
                wait = 2 ** attempt
                logger.warning("Completion API error (attempt %d/%d), retrying in %ds: %s",
                               attempt + 1, _MAX_RETRIES, wait, e)
                time.sleep(wait)
            else:
                elapsed = int((time.monotonic() - start) * 1000)
                logger.error("Completion API failed after %d attempts: %s", _MAX_RETRIES, e)
                return CompletionResult(
                    success=False, text="", error=str(e), model=model, duration_ms=elapsed,
                )

    elapsed = int((time.monotonic() - start) * 1000)
    text = ""
    if response.choices:
        text = (response.choices[0].message.content or "").strip()

    usage = getattr(response, "usage", None)
    input_tokens = getattr(usage, "prompt_tokens", 0) or 0
    output_tokens = getattr(usage, "completion_tokens", 0) or 0

    if not text:
        return CompletionResult(
            success=False, text="", error="Empty completion", model=model,
            input_tokens=input_tokens, output_tokens=output_tokens, duration_ms=elapsed,
        )

    logger.info("Completion OK: model=%s in=%d out=%d %dms",
                model, input_tokens, output_tokens, elapsed)
    return CompletionResult(
        success=True, text=text, model=model,
        input_tokens=input_tokens, output_tokens=output_tokens, duration_ms=elapsed,
    )
