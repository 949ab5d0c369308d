"""OllamaModel: text completion from a local Ollama instance.

Uses HTTP requests to the Ollama REST API; ``requests`` is the only
dependency.
"""

from __future__ import annotations

from typing import Any, Optional

import requests

from tether.protocols import ModelError


class OllamaModel:
    """TextModel backed by a local Ollama server.

    Usage::

        model = OllamaModel(model_id="llama3.2:latest")
        text = model.complete("Score this thread...")
    """

    def __init__(
        self,
        model_id: str = "llama3.2:latest",
        *,
        base_url: str = "http://localhost:11434",
        timeout: int = 120,
    ) -> None:
        self._model_id = model_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def model_id(self) -> str:
        return self._model_id

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        data = self._post(
            "/api/chat",
            {"model": self._model_id, "messages": messages, "stream": False},
        )
        return (data.get("message") or {}).get("content", "")

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to the Ollama API and return parsed JSON."""
        url = f"{self._base_url}{path}"
        try:
            resp = requests.post(url, json=payload, timeout=self._timeout)
        except requests.ConnectionError as exc:
            raise ModelError(
                "timeout", f"Cannot connect to Ollama at {self._base_url}: {exc}"
            ) from exc
        except requests.Timeout as exc:
            raise ModelError(
                "timeout", f"Ollama request timed out after {self._timeout}s: {exc}"
            ) from exc

        if resp.status_code != 200:
            raise ModelError(
                self._classify_http_status(resp.status_code),
                f"Ollama returned HTTP {resp.status_code}: {resp.text}",
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise ModelError("server", f"Ollama returned invalid JSON: {exc}") from exc

    @staticmethod
    def _classify_http_status(status_code: int) -> str:
        """Map HTTP status codes to error classes."""
        if status_code == 401:
            return "auth"
        if status_code == 429:
            return "rate_limit"
        if status_code >= 500:
            return "server"
        return "unknown"
