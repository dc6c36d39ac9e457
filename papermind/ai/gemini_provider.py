"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/ai/gemini_provider.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Google Gemini backend (google-genai) for vision extraction
                and embeddings. Classifies API failures into transient and
                permanent ModelErrors and honours rate-limit cooldowns.
------------------------------------------------------------------------------
"""

import datetime
import random
import time
from typing import List, Optional, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from papermind.ai.base import AIProvider
from papermind.errors import FailureKind, ModelError
from papermind.logger import get_logger

logger = get_logger("ai.gemini")

TRANSIENT_CODES = {408, 429, 500, 502, 503, 504}


def classify_exception(e: Exception) -> FailureKind:
    """Maps a google-genai (or transport) exception onto a failure kind."""
    if isinstance(e, genai_errors.APIError):
        code = getattr(e, "code", None)
        if code in TRANSIENT_CODES or (code is not None and code >= 500):
            return FailureKind.TRANSIENT
        return FailureKind.PERMANENT
    # Transport errors (timeouts, resets) carry no status code
    return FailureKind.TRANSIENT


class GeminiProvider(AIProvider):
    """Low-level Gemini API client."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.0-flash",
        embed_model: str = "gemini-embedding-001",
        timeout: int = 120,
    ) -> None:
        self.api_key: str = api_key
        self.model_name: str = model_name
        self.embed_model: str = embed_model
        self.timeout: int = timeout
        self.client: Optional[genai.Client] = None
        self._cooldown_until: Optional[datetime.datetime] = None
        self._adaptive_delay: float = 0.0

        if not self.api_key:
            logger.warning("Missing API key. Gemini Provider will be inactive.")
        else:
            # HttpOptions.timeout is in milliseconds
            self.client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=self.timeout * 1000),
            )

    def _require_client(self) -> genai.Client:
        if not self.client:
            raise ModelError("Gemini API key is not configured", FailureKind.PERMANENT)
        return self.client

    def generate_json(self, prompt: str, images: Optional[Sequence[bytes]] = None, stage_label: str = "AI REQUEST") -> str:
        client = self._require_client()
        contents: list = [prompt]
        for png in images or []:
            contents.append(types.Part.from_bytes(data=png, mime_type="image/png"))

        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            temperature=0.1,
        )

        self._wait_for_cooldown()
        try:
            response = client.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=config,
            )
        except Exception as e:
            kind = classify_exception(e)
            if getattr(e, "code", None) == 429 or "RESOURCE_EXHAUSTED" in str(e):
                self._handle_rate_limit()
            logger.warning(f"Gemini {stage_label} failed ({kind.value}): {e}")
            raise ModelError(f"Gemini request failed: {e}", kind) from e

        self._adaptive_delay *= 0.5
        if not response or not response.candidates:
            raise ModelError("Gemini returned no candidates", FailureKind.PERMANENT)

        candidate = response.candidates[0]
        if candidate.finish_reason == types.FinishReason.MAX_TOKENS:
            logger.warning(f"Response for {stage_label} was TRUNCATED!")
        if candidate.finish_reason == types.FinishReason.SAFETY:
            raise ModelError("Gemini blocked the content (safety)", FailureKind.PERMANENT)

        return response.text or ""

    def embed(self, text: str, dimensions: int) -> List[float]:
        client = self._require_client()
        self._wait_for_cooldown()
        try:
            response = client.models.embed_content(
                model=self.embed_model,
                contents=text,
                config=types.EmbedContentConfig(
                    task_type="RETRIEVAL_DOCUMENT",
                    output_dimensionality=dimensions,
                ),
            )
        except Exception as e:
            kind = classify_exception(e)
            if getattr(e, "code", None) == 429:
                self._handle_rate_limit()
            raise ModelError(f"Gemini embedding failed: {e}", kind) from e

        if not response.embeddings or not response.embeddings[0].values:
            raise ModelError("Gemini returned no embedding", FailureKind.PERMANENT)
        return list(response.embeddings[0].values)

    def _handle_rate_limit(self) -> None:
        self._adaptive_delay = min(256.0, max(2.0, self._adaptive_delay * 2.0))
        delay = self._adaptive_delay + random.uniform(0, 1)
        self._cooldown_until = datetime.datetime.now() + datetime.timedelta(seconds=delay)
        logger.info(f"Rate limited, cooling down for {delay:.1f}s")

    def _wait_for_cooldown(self) -> None:
        if self._cooldown_until and self._cooldown_until > datetime.datetime.now():
            wait_time = (self._cooldown_until - datetime.datetime.now()).total_seconds()
            if wait_time > 0:
                time.sleep(wait_time)
        self._cooldown_until = None
