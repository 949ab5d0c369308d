"""tether model adapters.

Concrete TextModel implementations for the scoring backend. Provider SDKs
are imported only when a model is constructed.
"""

from __future__ import annotations

from tether.models.anthropic import AnthropicModel
from tether.models.auto import auto_configure_model
from tether.models.invoker import model_invoker
from tether.models.ollama import OllamaModel
from tether.models.openai import OpenAIModel

__all__ = [
    "AnthropicModel",
    "OllamaModel",
    "OpenAIModel",
    "auto_configure_model",
    "model_invoker",
]
