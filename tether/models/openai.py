"""OpenAIModel: text completion through OpenAI's chat completions API.

Wraps the ``openai`` Python SDK. The SDK is imported lazily so that
the module can be imported without having ``openai`` installed (the
import fails only when the class is instantiated).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from tether.protocols import ModelError

logger = logging.getLogger(__name__)


class OpenAIModel:
    """TextModel backed by the OpenAI API.

    Requires the ``openai`` package::

        pip install tether[openai]

    Usage::

        model = OpenAIModel()  # uses OPENAI_API_KEY env var
        text = model.complete("Score this thread...")
    """

    def __init__(
        self,
        model_id: str = "gpt-4o-mini",
        *,
        api_key: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        try:
            import openai as _openai  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'openai' package is required for OpenAIModel. "
                "Install it with: pip install openai"
            ) from None

        resolved_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not resolved_key:
            raise ValueError("An API key is required. Pass api_key= or set OPENAI_API_KEY.")

        self._model_id = model_id
        self._max_tokens = max_tokens
        self._client = _openai.OpenAI(api_key=resolved_key, timeout=timeout)

    @property
    def model_id(self) -> str:
        return self._model_id

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self._client.chat.completions.create(
                model=self._model_id,
                messages=messages,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:
            raise self._classify_error(exc, "OpenAI API error") from exc

        if not response.choices:
            logger.warning("OpenAI returned no choices for model=%s", self._model_id)
            return ""
        return response.choices[0].message.content or ""

    @staticmethod
    def _classify_error(exc: Exception, prefix: str) -> ModelError:
        import openai as _openai

        checks = [
            ("RateLimitError", "rate_limit", "rate limited"),
            ("AuthenticationError", "auth", "auth failed"),
            ("APITimeoutError", "timeout", "timeout"),
        ]
        for attr, error_class, label in checks:
            exc_type = getattr(_openai, attr, None)
            if isinstance(exc_type, type) and isinstance(exc, exc_type):
                return ModelError(error_class, f"{prefix}: {label}: {exc}")

        api_status = getattr(_openai, "APIStatusError", None)
        if isinstance(api_status, type) and isinstance(exc, api_status):
            code = getattr(exc, "status_code", "?")
            return ModelError("server", f"{prefix}: API error ({code}): {exc}")

        return ModelError("unknown", f"{prefix}: {exc}")
