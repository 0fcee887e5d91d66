"""Text-completion oracle boundary and lenient JSON extraction."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


class OracleError(RuntimeError):
    """The oracle could not produce a completion (transport, timeout, empty reply)."""


@dataclass(frozen=True)
class OracleParams:
    """Generation parameters for one oracle call.

    Attributes:
        system_prompt: Role instruction sent ahead of the user prompt.
        temperature: Sampling temperature, or ``None`` for the model default.
        max_tokens: Output cap, or ``None`` for the model default.
    """

    system_prompt: str = ""
    temperature: float | None = None
    max_tokens: int | None = None


class Oracle(ABC):
    """Narrow interface over an external text-completion service."""

    @abstractmethod
    def complete(self, prompt: str, params: OracleParams) -> str:
        """Return the raw completion text for *prompt*.

        Raises:
            OracleError: If no completion could be obtained.
        """


class OpenAIOracle(Oracle):
    """:class:`Oracle` backed by the OpenAI chat-completions API.

    Args:
        model: Model name, e.g. ``"gpt-4"``.
        timeout_seconds: Per-request timeout; a timeout raises
            :class:`OracleError` like any other failure.
        client: An ``openai.OpenAI`` instance.  Built from the environment
            (``OPENAI_API_KEY``) when omitted.
    """

    def __init__(
        self,
        model: str,
        timeout_seconds: float = 30.0,
        client: Any = None,
    ) -> None:
        if client is None:
            from openai import OpenAI

            client = OpenAI(timeout=timeout_seconds, max_retries=0)
        self._client = client
        self._model = model
        self._timeout = timeout_seconds

    def complete(self, prompt: str, params: OracleParams) -> str:
        messages = []
        if params.system_prompt:
            messages.append({"role": "system", "content": params.system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {"model": self._model, "messages": messages, "timeout": self._timeout}
        if params.temperature is not None:
            kwargs["temperature"] = params.temperature
        if params.max_tokens is not None:
            kwargs["max_tokens"] = params.max_tokens

        try:
            response = self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise OracleError(f"{self._model} request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise OracleError(f"{self._model} returned an empty completion")
        logger.debug("Oracle raw response: %s", content)
        return content.strip()


# ---------------------------------------------------------------------------
# Lenient response parsing
# ---------------------------------------------------------------------------


def extract_json_array(text: str) -> list | None:
    """Return the JSON array spanning the first ``[`` to the last ``]``, or ``None``.

    The span is greedy, so bracketed prose after the array (``'["a"] [sic]'``)
    makes the span invalid JSON and the result ``None``.
    """
    if not text:
        return None
    match = _ARRAY_SPAN.search(text)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except ValueError:
        return None
    return value if isinstance(value, list) else None


def extract_json_object(text: str) -> dict | None:
    """Return the JSON object spanning the first ``{`` to the last ``}``, or ``None``."""
    if not text:
        return None
    match = _OBJECT_SPAN.search(text)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except ValueError:
        return None
    return value if isinstance(value, dict) else None
