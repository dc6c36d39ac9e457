"""Shared test data: sample PDFs/images, vectors and a deterministic AI provider."""

import hashlib
import io
import json
from typing import List, Optional

from PIL import Image
from reportlab.pdfgen import canvas

from papermind.ai import AIProvider
from papermind.models import EMBEDDING_DIM


def make_pdf(pages: int = 1, size=(600, 800), text: str = "Original Content") -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=size)
    for i in range(pages):
        c.drawString(100, 100, f"{text} {i + 1}")
        c.showPage()
    c.save()
    return buf.getvalue()


def make_png(size=(40, 20), color=(0, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def vector_for(seed: str) -> List[float]:
    """Deterministic unit-free test vector of the embedding size."""
    digest = hashlib.sha256(seed.encode()).digest()
    return [float(digest[i % len(digest)]) + 1.0 for i in range(EMBEDDING_DIM)]


def axis_vector(index: int, weight: float = 1.0, base: Optional[List[float]] = None) -> List[float]:
    vec = list(base) if base else [0.0] * EMBEDDING_DIM
    vec[index] += weight
    return vec


DEFAULT_PAYLOAD = {
    "title": "Invoice 2024-001",
    "content": "ACME Corp invoice number 2024-001, total 120.00 EUR",
    "summary": "An invoice from ACME Corp.",
    "correspondent": "ACME Corp",
    "documentType": "Invoice",
    "tags": ["Finance", "ACME"],
    "documentDate": "2024-03-01",
    "language": "en",
    "extractedData": {"total": "120.00", "currency": "EUR"},
}


class StubProvider(AIProvider):
    """Deterministic provider: fixed JSON payload, vectors derived from text."""

    name = "stub"

    def __init__(self, payload: Optional[dict] = None) -> None:
        self.payload = dict(payload or DEFAULT_PAYLOAD)
        self.prompts: List[str] = []
        self.embedded: List[str] = []
        self.fail_with: Optional[Exception] = None

    def generate_json(self, prompt, images=None, stage_label="AI REQUEST"):
        self.prompts.append(prompt)
        if self.fail_with is not None:
            raise self.fail_with
        return json.dumps(self.payload)

    def embed(self, text, dimensions):
        self.embedded.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        return vector_for(text)[:dimensions]


