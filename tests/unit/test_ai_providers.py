import unittest
from unittest.mock import MagicMock, patch

import requests
from google.genai import errors as genai_errors

from papermind.ai.gemini_provider import GeminiProvider, classify_exception
from papermind.ai.openrouter_provider import OpenRouterProvider
from papermind.errors import FailureKind, ModelError


def _response(status_code=200, payload=None):
    mock_resp = MagicMock()
    mock_resp.status_code = status_code
    mock_resp.json.return_value = payload or {}
    mock_resp.text = "error body"
    return mock_resp


class TestOpenRouterProvider(unittest.TestCase):

    @patch("requests.post")
    def test_generate_json_success(self, mock_post):
        mock_post.return_value = _response(payload={
            "choices": [{"message": {"content": "{\"key\": \"value\"}"}}]
        })

        provider = OpenRouterProvider(api_key="fake-key")
        result = provider.generate_json("test prompt", images=[b"\x89PNG"])

        self.assertEqual(result, "{\"key\": \"value\"}")
        args, kwargs = mock_post.call_args
        self.assertTrue(args[0].endswith("/chat/completions"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer fake-key")
        self.assertEqual(kwargs["json"]["response_format"], {"type": "json_object"})
        content = kwargs["json"]["messages"][1]["content"]
        self.assertEqual(content[1]["type"], "image_url")
        self.assertTrue(content[1]["image_url"]["url"].startswith("data:image/png;base64,"))

    @patch("requests.post")
    def test_rate_limit_is_transient(self, mock_post):
        mock_post.return_value = _response(status_code=429)
        provider = OpenRouterProvider(api_key="fake-key")
        with self.assertRaises(ModelError) as ctx:
            provider.generate_json("test")
        self.assertEqual(ctx.exception.kind, FailureKind.TRANSIENT)

    @patch("requests.post")
    def test_bad_request_is_permanent(self, mock_post):
        mock_post.return_value = _response(status_code=400)
        provider = OpenRouterProvider(api_key="fake-key")
        with self.assertRaises(ModelError) as ctx:
            provider.generate_json("test")
        self.assertEqual(ctx.exception.kind, FailureKind.PERMANENT)

    @patch("requests.post")
    def test_timeout_is_transient(self, mock_post):
        mock_post.side_effect = requests.Timeout("read timed out")
        provider = OpenRouterProvider(api_key="fake-key", timeout=5)
        with self.assertRaises(ModelError) as ctx:
            provider.embed("text", 768)
        self.assertTrue(ctx.exception.transient)

    @patch("requests.post")
    def test_embed_success(self, mock_post):
        mock_post.return_value = _response(payload={"data": [{"embedding": [0.1, 0.2, 0.3]}]})
        provider = OpenRouterProvider(api_key="fake-key")

        self.assertEqual(provider.embed("text", 3), [0.1, 0.2, 0.3])
        self.assertEqual(mock_post.call_args[1]["json"]["dimensions"], 3)

    def test_missing_key_is_permanent(self):
        provider = OpenRouterProvider(api_key="")
        with self.assertRaises(ModelError) as ctx:
            provider.generate_json("test")
        self.assertEqual(ctx.exception.kind, FailureKind.PERMANENT)


class TestGeminiProvider(unittest.TestCase):

    def _provider(self):
        with patch("papermind.ai.gemini_provider.genai.Client") as client_cls:
            provider = GeminiProvider(api_key="fake-key")
        self.client = client_cls.return_value
        return provider

    def test_generate_json_returns_text(self):
        provider = self._provider()
        candidate = MagicMock()
        candidate.finish_reason = None
        response = MagicMock(candidates=[candidate], text="{\"a\": 1}")
        self.client.models.generate_content.return_value = response

        self.assertEqual(provider.generate_json("prompt", images=[b"png"]), "{\"a\": 1}")
        kwargs = self.client.models.generate_content.call_args[1]
        self.assertEqual(kwargs["model"], "gemini-2.0-flash")
        self.assertEqual(len(kwargs["contents"]), 2)

    def test_api_errors_are_classified(self):
        unavailable = genai_errors.APIError(503, {"error": {"message": "unavailable"}})
        invalid = genai_errors.APIError(400, {"error": {"message": "bad request"}})
        self.assertEqual(classify_exception(unavailable), FailureKind.TRANSIENT)
        self.assertEqual(classify_exception(invalid), FailureKind.PERMANENT)
        self.assertEqual(classify_exception(ConnectionResetError()), FailureKind.TRANSIENT)

    def test_rate_limit_sets_cooldown(self):
        provider = self._provider()
        self.client.models.generate_content.side_effect = genai_errors.APIError(
            429, {"error": {"message": "RESOURCE_EXHAUSTED"}}
        )
        with self.assertRaises(ModelError) as ctx:
            provider.generate_json("prompt")
        self.assertTrue(ctx.exception.transient)
        self.assertIsNotNone(provider._cooldown_until)
        self.assertGreaterEqual(provider._adaptive_delay, 2.0)

    def test_embed_returns_values(self):
        provider = self._provider()
        embedding = MagicMock(values=[0.5] * 8)
        self.client.models.embed_content.return_value = MagicMock(embeddings=[embedding])

        self.assertEqual(provider.embed("text", 8), [0.5] * 8)
        config = self.client.models.embed_content.call_args[1]["config"]
        self.assertEqual(config.output_dimensionality, 8)

    def test_missing_key_is_permanent(self):
        provider = GeminiProvider(api_key="")
        with self.assertRaises(ModelError) as ctx:
            provider.embed("text", 8)
        self.assertEqual(ctx.exception.kind, FailureKind.PERMANENT)


if __name__ == "__main__":
    unittest.main()
