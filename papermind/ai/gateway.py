"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/ai/gateway.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    AI gateway used by the pipeline. Prepares vision input,
                runs the single extraction call and the embedding call with
                bounded retries, and returns typed results or ModelError.
------------------------------------------------------------------------------
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

from papermind.ai.base import AIProvider, parse_json_response
from papermind.errors import (
    FailureKind,
    ModelError,
    PermanentProcessingError,
    TransientInfraError,
)
from papermind.importer import PDF_MIME, ImageImporter, is_image
from papermind.logger import get_logger, log_ai_interaction
from papermind.models import EMBEDDING_DIM
from papermind.rasterizer import PdfRasterizer
from papermind.settings_cache import SettingsCache

logger = get_logger("ai.gateway")

T = TypeVar("T")

EMBEDDING_TEXT_LIMIT = 8000
MAX_LOGICAL_RETRIES = 3


class ExtractionResult(BaseModel):
    """Typed outcome of the extraction call."""

    text: str = ""
    summary: Optional[str] = None
    structured_data: Dict[str, Any] = Field(default_factory=dict)
    title: Optional[str] = None
    correspondent: Optional[str] = None
    document_type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    document_date: Optional[str] = None
    language: Optional[str] = None
    page_count: int = 0


def build_embedding_text(title: Optional[str], summary: Optional[str], content: Optional[str]) -> str:
    parts = [p for p in (title, summary, content) if p]
    return "\n".join(parts)[:EMBEDDING_TEXT_LIMIT]


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "unknown", "n/a"):
        return None
    return text


class AIGateway:
    """
    Wraps the external text/vision model and the embedding model.

    Args:
        provider: Backend for extraction.
        embed_provider: Backend for embeddings (defaults to provider).
        rasterizer: Renders PDF pages for vision input.
        settings: Scoped runtime settings (prompt, page limit).
        retries: Attempts for transient failures.
        backoff: Base delay in seconds, doubled per attempt.
    """

    def __init__(
        self,
        provider: AIProvider,
        rasterizer: PdfRasterizer,
        settings: SettingsCache,
        embed_provider: Optional[AIProvider] = None,
        retries: int = 3,
        backoff: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.embed_provider = embed_provider or provider
        self.rasterizer = rasterizer
        self.settings = settings
        self.retries = max(1, retries)
        self.backoff = backoff
        self._sleep = sleep

    # --- Extraction ---

    def extract(
        self,
        file_bytes: bytes,
        mime_type: str = PDF_MIME,
        vocabulary: Optional[Dict[str, Sequence[str]]] = None,
    ) -> ExtractionResult:
        """
        Extracts text, summary and structured fields in one model call.

        Args:
            file_bytes: The original document.
            mime_type: PDF or a supported image type.
            vocabulary: Known names ({'tags': [...], 'correspondents': [...],
                        'types': [...]}) offered to the model for reuse.

        Raises:
            ModelError: transient (timeout, rate limit) or permanent
                        (unreadable or rejected content).
        """
        ai_settings = self.settings.ai()
        pages = self._vision_pages(file_bytes, mime_type, ai_settings.ocr_page_limit)
        prompt = self._build_prompt(ai_settings.extraction_prompt, vocabulary if ai_settings.known_tags_hint else None)

        payload = self._with_retries(
            lambda: self._generate_payload(prompt, pages), "EXTRACTION"
        )

        result = self._to_result(payload, ai_settings.max_tags)
        result.page_count = len(pages)
        if not result.text.strip():
            raise ModelError("Model returned no document text", FailureKind.PERMANENT)
        logger.info(
            f"Extracted {len(result.text)} chars from {len(pages)} page(s): "
            f"title={result.title!r} type={result.document_type!r}"
        )
        return result

    def _vision_pages(self, file_bytes: bytes, mime_type: str, max_pages: int) -> List[bytes]:
        try:
            if is_image(mime_type):
                pages = [ImageImporter.to_png(file_bytes)]
            elif mime_type == PDF_MIME:
                pages = self.rasterizer.render_document(file_bytes, max_pages)
            else:
                raise ModelError(f"Unsupported content type: {mime_type}", FailureKind.PERMANENT)
        except TransientInfraError as e:
            raise ModelError(str(e), FailureKind.TRANSIENT) from e
        except PermanentProcessingError as e:
            raise ModelError(str(e), FailureKind.PERMANENT) from e
        return [ImageImporter.for_vision(p) for p in pages]

    @staticmethod
    def _build_prompt(base_prompt: str, vocabulary: Optional[Dict[str, Sequence[str]]]) -> str:
        if not vocabulary:
            return base_prompt
        hints = []
        for label, names in vocabulary.items():
            if names:
                hints.append(f"Known {label} (reuse exact spelling when applicable): {', '.join(names[:100])}")
        if not hints:
            return base_prompt
        return base_prompt + "\n\n" + "\n".join(hints)

    def _generate_payload(self, prompt: str, pages: List[bytes]) -> Dict[str, Any]:
        """One model call with logical retries for unparsable JSON."""
        working_prompt = prompt
        error_msg = None
        for attempt in range(1, MAX_LOGICAL_RETRIES + 1):
            raw = self.provider.generate_json(working_prompt, images=pages, stage_label="EXTRACTION")
            payload, error_msg = parse_json_response(raw)
            if isinstance(payload, dict):
                log_ai_interaction(working_prompt, raw, payload)
                return payload
            error_msg = error_msg or "Top-level JSON value is not an object"
            logger.info(f"Logical retry {attempt}/{MAX_LOGICAL_RETRIES} for EXTRACTION due to: {error_msg}")
            working_prompt = prompt + f"\n\n### PREVIOUS ATTEMPT FAILED WITH ERROR:\n{error_msg}\n\nPLEASE FIX THE JSON STRUCTURE!"
        raise ModelError(f"Malformed model output: {error_msg}", FailureKind.PERMANENT)

    @staticmethod
    def _to_result(payload: Dict[str, Any], max_tags: int) -> ExtractionResult:
        data = payload.get("extractedData") or payload.get("structuredData") or {}
        if not isinstance(data, dict):
            data = {"value": data}

        raw_tags = payload.get("tags") or []
        if isinstance(raw_tags, str):
            raw_tags = [t for t in raw_tags.split(",")]
        tags: List[str] = []
        for tag in raw_tags:
            clean = _clean_str(tag)
            if clean and clean.lower() not in (t.lower() for t in tags):
                tags.append(clean)

        text = payload.get("content") or payload.get("text") or ""
        if not isinstance(text, str):
            text = json.dumps(text, ensure_ascii=False)

        return ExtractionResult(
            text=text,
            summary=_clean_str(payload.get("summary")),
            structured_data=data,
            title=_clean_str(payload.get("title")),
            correspondent=_clean_str(payload.get("correspondent")),
            document_type=_clean_str(payload.get("documentType")),
            tags=tags[:max_tags],
            document_date=_clean_str(payload.get("documentDate")),
            language=_clean_str(payload.get("language")),
        )

    # --- Embedding ---

    def embed(self, text: str) -> List[float]:
        """
        Embeds text into a fixed-size vector.

        Raises:
            ModelError: On failure or if the vector has the wrong size.
        """
        text = (text or "").strip()[:EMBEDDING_TEXT_LIMIT]
        if not text:
            raise ModelError("Nothing to embed", FailureKind.PERMANENT)

        vector = self._with_retries(lambda: self.embed_provider.embed(text, EMBEDDING_DIM), "EMBEDDING")
        if len(vector) != EMBEDDING_DIM:
            raise ModelError(
                f"Embedding has {len(vector)} dimensions, expected {EMBEDDING_DIM}", FailureKind.PERMANENT
            )
        return vector

    # --- Retry policy ---

    def _with_retries(self, call: Callable[[], T], label: str) -> T:
        for attempt in range(self.retries):
            try:
                return call()
            except ModelError as e:
                if not e.transient or attempt == self.retries - 1:
                    raise
                delay = self.backoff * (2 ** attempt)
                logger.warning(f"{label} transient failure ({e}); retry {attempt + 1}/{self.retries - 1} in {delay:.1f}s")
                self._sleep(delay)
        raise ModelError(f"{label} failed", FailureKind.TRANSIENT)
