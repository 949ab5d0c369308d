"""Adapt a TextModel to the ``prompt -> text or None`` backend contract."""

from __future__ import annotations

import logging
from typing import Optional

from tether.protocols import ModelError, ModelInvoker, TextModel

logger = logging.getLogger(__name__)


def model_invoker(model: TextModel, *, system: Optional[str] = None) -> ModelInvoker:
    """Wrap ``model`` so provider errors become ``None`` instead of exceptions."""

    def invoke(prompt: str) -> Optional[str]:
        try:
            text = model.complete(prompt, system=system)
        except ModelError as e:
            logger.error("Model %s failed (%s): %s", model.model_id, e.error_class, e)
            return None
        text = text.strip() if text else ""
        return text or None

    return invoke
