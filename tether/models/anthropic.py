"""AnthropicModel: text completion through Anthropic's messages API.

Wraps the ``anthropic`` Python SDK. The SDK is imported lazily so that
the module can be imported without having ``anthropic`` installed (the
import fails only when the class is instantiated).
"""

from __future__ import annotations

import os
from typing import Any, Optional

from tether.protocols import ModelError


class AnthropicModel:
    """TextModel backed by the Anthropic API.

    Requires the ``anthropic`` package::

        pip install tether[anthropic]

    Usage::

        model = AnthropicModel()  # uses ANTHROPIC_API_KEY env var
        text = model.complete("Score this thread...")
    """

    def __init__(
        self,
        model_id: str = "claude-haiku-4-5-20251001",
        *,
        api_key: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        try:
            import anthropic  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for AnthropicModel. "
                "Install it with: pip install anthropic"
            ) from None

        resolved_key = (
            api_key or os.environ.get("CLAUDE_API_KEY") or os.environ.get("ANTHROPIC_API_KEY")
        )
        if not resolved_key:
            raise ValueError(
                "An API key is required. Pass api_key= or set CLAUDE_API_KEY / ANTHROPIC_API_KEY."
            )

        self._model_id = model_id
        self._max_tokens = max_tokens
        self._client = anthropic.Anthropic(api_key=resolved_key, timeout=timeout)

    @property
    def model_id(self) -> str:
        return self._model_id

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        """Send one user message and return the concatenated text blocks."""
        kwargs: dict[str, Any] = {
            "model": self._model_id,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self._max_tokens,
        }
        if system:
            kwargs["system"] = system

        try:
            response = self._client.messages.create(**kwargs)
        except Exception as exc:
            raise self._classify_error(exc, "Anthropic API error") from exc

        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    @staticmethod
    def _classify_error(exc: Exception, prefix: str) -> ModelError:
        """Classify an Anthropic SDK exception into an error class.

        Uses defensive attribute access so this works even when the
        anthropic package is mocked or partially available.
        """
        import anthropic as _anthropic

        checks = [
            ("RateLimitError", "rate_limit", "rate limited"),
            ("AuthenticationError", "auth", "auth failed"),
            ("APITimeoutError", "timeout", "timeout"),
        ]
        for attr, error_class, label in checks:
            exc_type = getattr(_anthropic, attr, None)
            if isinstance(exc_type, type) and isinstance(exc, exc_type):
                return ModelError(error_class, f"{prefix}: {label}: {exc}")

        api_status = getattr(_anthropic, "APIStatusError", None)
        if isinstance(api_status, type) and isinstance(exc, api_status):
            code = getattr(exc, "status_code", "?")
            return ModelError("server", f"{prefix}: API error ({code}): {exc}")

        return ModelError("unknown", f"{prefix}: {exc}")
