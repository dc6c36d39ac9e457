"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/ai/openrouter_provider.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    OpenAI-compatible chat/embedding backend (OpenRouter by
                default) using requests.
------------------------------------------------------------------------------
"""

import base64
from typing import Any, Dict, List, Optional, Sequence

import requests

from papermind.ai.base import AIProvider
from papermind.errors import FailureKind, ModelError
from papermind.logger import get_logger

logger = get_logger("ai.openrouter")


def classify_status(status_code: int) -> FailureKind:
    if status_code in (408, 409, 425, 429) or status_code >= 500:
        return FailureKind.TRANSIENT
    return FailureKind.PERMANENT


class OpenRouterProvider(AIProvider):
    """Client for OpenAI-compatible endpoints."""

    name = "openrouter"

    def __init__(
        self,
        api_key: str,
        model_name: str = "google/gemini-2.0-flash-001",
        base_url: str = "https://openrouter.ai/api/v1",
        embed_model: str = "openai/text-embedding-3-small",
        timeout: int = 120,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.embed_model = embed_model
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ModelError("OpenRouter API key is not configured", FailureKind.PERMANENT)
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, path: str, payload: Dict[str, Any], stage_label: str) -> Dict[str, Any]:
        headers = self._headers()
        try:
            resp = requests.post(f"{self.base_url}{path}", headers=headers, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise ModelError(f"{stage_label} timed out after {self.timeout}s", FailureKind.TRANSIENT) from e
        except requests.RequestException as e:
            raise ModelError(f"{stage_label} connection failed: {e}", FailureKind.TRANSIENT) from e

        if resp.status_code != 200:
            kind = classify_status(resp.status_code)
            logger.error(f"OpenRouter error {resp.status_code} ({kind.value}): {resp.text[:500]}")
            raise ModelError(f"{stage_label} failed with HTTP {resp.status_code}", kind)

        try:
            return resp.json()
        except ValueError as e:
            raise ModelError(f"{stage_label} returned invalid JSON", FailureKind.TRANSIENT) from e

    def generate_json(self, prompt: str, images: Optional[Sequence[bytes]] = None, stage_label: str = "AI REQUEST") -> str:
        logger.info(f"OpenRouter request [{stage_label}] using {self.model_name}")
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for png in images or []:
            encoded = base64.b64encode(png).decode("ascii")
            content.append({"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}})

        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": "You are a specialized document analyzer. Always respond with valid JSON."},
                {"role": "user", "content": content},
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0.1,
        }
        result = self._post("/chat/completions", payload, stage_label)
        try:
            return result["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ModelError(f"{stage_label} returned no choices", FailureKind.PERMANENT) from e

    def embed(self, text: str, dimensions: int) -> List[float]:
        payload = {"model": self.embed_model, "input": text, "dimensions": dimensions}
        result = self._post("/embeddings", payload, "EMBEDDING")
        try:
            return [float(v) for v in result["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ModelError("Embedding response is malformed", FailureKind.PERMANENT) from e
