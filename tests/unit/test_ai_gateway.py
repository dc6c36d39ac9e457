"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           tests/unit/test_ai_gateway.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Unit tests for the AI gateway: JSON repair, logical and
                transient retries, result normalization and embeddings.
------------------------------------------------------------------------------
"""

import json

import pytest

from papermind.ai import AIGateway, build_embedding_text, parse_json_response
from papermind.errors import FailureKind, ModelError, TransientInfraError
from papermind.models import AISettings
from papermind.models.settings import SETTINGS_AI

from tests.helpers import make_pdf, make_png


class ScriptedProvider:
    """Returns queued raw responses (or raises queued errors) in order."""

    name = "scripted"

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []

    def generate_json(self, prompt, images=None, stage_label="AI REQUEST"):
        self.prompts.append(prompt)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def embed(self, text, dimensions):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.mark.parametrize("raw, expected", [
    ('{"a": 1}', {"a": 1}),
    ('Sure! ```json\n{"a": 1}\n``` hope this helps', {"a": 1}),
    ('{"a": [1, 2,],}', {"a": [1, 2]}),
    ('{"a": {"b": 1}', {"a": {"b": 1}}),
])
def test_parse_json_response_repairs(raw, expected):
    payload, error = parse_json_response(raw)
    assert error is None
    assert payload == expected


@pytest.mark.parametrize("raw", ["", "no json here", None])
def test_parse_json_response_failures(raw):
    payload, error = parse_json_response(raw)
    assert payload is None
    assert error


def test_extract_normalizes_payload(gateway, provider):
    provider.payload.update({
        "correspondent": "null",
        "tags": "Finance, finance, Taxes",
        "extractedData": ["not", "a", "dict"],
    })

    result = gateway.extract(make_pdf(), "application/pdf", {"tags": ["Finance"], "correspondents": []})

    assert result.correspondent is None
    assert result.tags == ["Finance", "Taxes"]
    assert result.structured_data == {"value": ["not", "a", "dict"]}
    assert result.page_count == 1
    assert "Known tags (reuse exact spelling when applicable): Finance" in provider.prompts[-1]


def test_extract_limits_tags(gateway, provider, settings):
    settings.put(SETTINGS_AI, AISettings(max_tags=1, known_tags_hint=False))
    result = gateway.extract(make_pdf(), "application/pdf", {"tags": ["Finance"]})
    assert result.tags == ["Finance"]
    assert "Known tags" not in provider.prompts[-1]


def test_extract_image_skips_rasterizer(gateway, rasterizer):
    result = gateway.extract(make_png((50, 50)), "image/png")
    assert result.page_count == 1
    rasterizer.render_document.assert_not_called()


def test_logical_retry_on_malformed_json(gateway):
    good = json.dumps({"content": "text", "title": "T"})
    gateway.provider = ScriptedProvider(["garbage", good])

    result = gateway.extract(make_pdf())

    assert result.title == "T"
    assert "PREVIOUS ATTEMPT FAILED" in gateway.provider.prompts[1]


def test_persistent_malformed_json_is_permanent(gateway):
    gateway.provider = ScriptedProvider(["garbage"] * 3)
    with pytest.raises(ModelError) as excinfo:
        gateway.extract(make_pdf())
    assert excinfo.value.kind == FailureKind.PERMANENT


def test_transient_errors_are_retried_with_backoff(rasterizer, settings):
    delays = []
    scripted = ScriptedProvider([
        ModelError("busy", FailureKind.TRANSIENT),
        ModelError("busy", FailureKind.TRANSIENT),
        json.dumps({"content": "text"}),
    ])
    gateway = AIGateway(scripted, rasterizer, settings, retries=3, backoff=1.5, sleep=delays.append)

    assert gateway.extract(make_pdf()).text == "text"
    assert delays == [1.5, 3.0]


def test_permanent_errors_are_not_retried(gateway):
    gateway.provider = ScriptedProvider([ModelError("rejected", FailureKind.PERMANENT)])
    with pytest.raises(ModelError):
        gateway.extract(make_pdf())
    assert len(gateway.provider.prompts) == 1


def test_empty_text_is_permanent(gateway, provider):
    provider.payload["content"] = "   "
    with pytest.raises(ModelError) as excinfo:
        gateway.extract(make_pdf())
    assert excinfo.value.kind == FailureKind.PERMANENT


def test_render_timeout_becomes_transient(gateway, rasterizer):
    rasterizer.render_document.side_effect = TransientInfraError("pdftoppm timed out")
    with pytest.raises(ModelError) as excinfo:
        gateway.extract(make_pdf())
    assert excinfo.value.transient


def test_embed_checks_dimensions(gateway, provider):
    assert len(gateway.embed("some text")) == 768

    gateway.embed_provider = ScriptedProvider([[0.1, 0.2]])
    with pytest.raises(ModelError):
        gateway.embed("some text")
    with pytest.raises(ModelError):
        gateway.embed("   ")


def test_build_embedding_text():
    assert build_embedding_text("Title", None, "Body") == "Title\nBody"
    assert len(build_embedding_text("T", "S", "x" * 20000)) == 8000
