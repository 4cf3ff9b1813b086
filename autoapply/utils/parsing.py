"""Shared parsing and retry utilities for automation agent responses."""

import json
import logging
import re
from typing import Any, Awaitable, Callable, Mapping, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Envelope keys tried before the response itself, in priority order.
ENVELOPE_KEYS = ("output", "result")

ModelT = TypeVar("ModelT", bound=BaseModel)
T = TypeVar("T")


def strip_fences(text: str) -> str:
    """Strip markdown code fences from agent output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def _candidates(response: Any) -> list[Any]:
    candidates = []
    if isinstance(response, Mapping):
        candidates.extend(response.get(key) for key in ENVELOPE_KEYS)
    candidates.append(response)
    return candidates


def _coerce(candidate: Any) -> Any:
    if isinstance(candidate, str):
        try:
            return json.loads(strip_fences(candidate))
        except json.JSONDecodeError:
            return None
    return candidate


def extract_structured(response: Any, model: type[ModelT], default: ModelT) -> ModelT:
    """Decode ``response`` into ``model``, trying each known envelope in order.

    Tries ``response["output"]``, ``response["result"]`` and then the response
    itself; JSON strings are decoded first. The first candidate that validates
    wins. Falls back to ``default`` when none does.
    """
    for candidate in _candidates(response):
        candidate = _coerce(candidate)
        if not isinstance(candidate, Mapping):
            continue
        try:
            return model.model_validate(candidate)
        except ValidationError:
            continue

    logger.warning(
        "Agent response did not match %s; using default.",
        model.__name__,
        extra={"response_type": type(response).__name__},
    )
    return default


def _is_transient(exc: BaseException) -> bool:
    """Return True if the exception is a transient HTTP/network error worth retrying."""
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.ConnectError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (429, 500, 502, 503)
    return False


async def invoke_with_retry(
    call: Callable[[], Awaitable[T]], max_retries: int = 3, max_wait: float = 16
) -> T:
    """Await ``call()`` with exponential backoff on transient errors.

    Retries on HTTP 429/500/502/503, connection errors, and timeouts.
    Non-transient errors (auth failures, bad requests) are raised immediately.
    """

    def _log_retry(state) -> None:
        logger.warning(
            "Transient error: %r. Retrying in %.0fs (attempt %d/%d)...",
            state.outcome.exception(),
            state.next_action.sleep,
            state.attempt_number,
            max_retries,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),  # +1 because first attempt counts
        wait=wait_exponential(multiplier=1, min=min(2, max_wait), max=max_wait),
        retry=retry_if_exception(_is_transient),
        reraise=True,
        before_sleep=_log_retry,
    )
    async for attempt in retrying:
        with attempt:
            return await call()
