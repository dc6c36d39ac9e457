"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/ai/__init__.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    AI backends and the gateway. create_provider() selects the
                backend configured in AppConfig.
------------------------------------------------------------------------------
"""

from papermind.config import AppConfig

from .base import AIProvider, parse_json_response
from .gateway import AIGateway, ExtractionResult, build_embedding_text
from .gemini_provider import GeminiProvider
from .openrouter_provider import OpenRouterProvider


def create_provider(config: AppConfig, name: str) -> AIProvider:
    """Instantiates the backend registered under name ('gemini' or 'openrouter')."""
    if name == "openrouter":
        return OpenRouterProvider(
            api_key=config.get_openrouter_key(),
            model_name=config.get_openrouter_model(),
            base_url=config.get_openrouter_url(),
            timeout=config.get_ai_timeout(),
        )
    if name == "gemini":
        return GeminiProvider(
            api_key=config.get_api_key(),
            model_name=config.get_gemini_model(),
            embed_model=config.get_embed_model(),
            timeout=config.get_ai_timeout(),
        )
    raise ValueError(f"Unknown AI provider: {name}")
