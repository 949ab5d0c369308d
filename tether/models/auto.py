"""Pick the scoring backend for proactive follow-ups from the environment.

The proactive evaluator only needs a short JSON judgment per dormant thread,
so every provider defaults to its cheapest capable model. Used by
``tether proactive scan`` and by daemons that build a ``Governor`` without
passing an invoker explicitly.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from tether.protocols import TextModel

logger = logging.getLogger(__name__)

SCORING_MODEL_DEFAULTS = {
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
    "ollama": "llama3.2:latest",
}


def _detect_provider() -> Optional[str]:
    forced = os.environ.get("TETHER_MODEL_PROVIDER", "").strip().lower()
    if forced:
        return forced
    if os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("CLAUDE_API_KEY"):
        return "anthropic"
    if os.environ.get("OPENAI_API_KEY"):
        return "openai"
    # Ollama has no key to sniff; it must be requested explicitly.
    return None


def auto_configure_model() -> Optional[TextModel]:
    """Build the model that scores dormant threads, or None if none is configured.

    ``TETHER_MODEL_PROVIDER`` (anthropic, openai, ollama) wins when set.
    Otherwise an Anthropic key (``CLAUDE_API_KEY`` or ``ANTHROPIC_API_KEY``)
    is preferred over ``OPENAI_API_KEY``. ``TETHER_MODEL`` replaces the
    provider's default scoring model.
    """
    provider = _detect_provider()
    if provider is None:
        logger.debug("[models] no scoring backend configured")
        return None

    if provider not in SCORING_MODEL_DEFAULTS:
        logger.warning(
            "[models] unknown scoring provider '%s'; proactive scoring disabled", provider
        )
        return None

    model_id = os.environ.get("TETHER_MODEL", "").strip() or SCORING_MODEL_DEFAULTS[provider]

    if provider == "anthropic":
        from tether.models.anthropic import AnthropicModel

        model: TextModel = AnthropicModel(model_id=model_id)
    elif provider == "openai":
        from tether.models.openai import OpenAIModel

        model = OpenAIModel(model_id=model_id)
    else:
        from tether.models.ollama import OllamaModel

        model = OllamaModel(model_id=model_id)

    logger.info("[models] scoring follow-ups with %s (%s)", provider, model_id)
    return model
