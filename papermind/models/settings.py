"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/settings.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Runtime settings stored in the database and served through
                the SettingsCache.
------------------------------------------------------------------------------
"""

from typing import List, Optional

from pydantic import Field

from .base import PaperModel

DEFAULT_EXTRACTION_PROMPT = """You are a document analysis assistant.
Read the attached page images of ONE document and respond with a single JSON object:
{
  "title": "short descriptive title",
  "content": "full text of all pages, preserving reading order",
  "summary": "2-3 sentence summary",
  "correspondent": "sender or issuing organization, or null",
  "documentType": "e.g. Invoice, Contract, Letter, Receipt, or null",
  "tags": ["up to 4 short topical tags"],
  "documentDate": "YYYY-MM-DD or null",
  "language": "ISO 639-1 code",
  "extractedData": {"key": "value pairs such as amounts, reference numbers, due dates"}
}
Respond with JSON only."""


class AISettings(PaperModel):
    extraction_prompt: str = DEFAULT_EXTRACTION_PROMPT
    ocr_page_limit: int = Field(default=5, ge=1, le=50)
    max_tags: int = Field(default=4, ge=0)
    known_tags_hint: bool = True


class EmailSettings(PaperModel):
    enabled: bool = False
    host: str = ""
    port: int = 993
    user: str = ""
    password: str = ""
    folder: str = "INBOX"
    poll_interval_minutes: int = Field(default=5, ge=1)
    timeout_seconds: int = Field(default=30, ge=1)
    allowed_senders: List[str] = Field(default_factory=list)

    @property
    def configured(self) -> bool:
        return bool(self.enabled and self.host and self.user and self.password)

    def redacted(self) -> "EmailSettings":
        return self.model_copy(update={"password": "********" if self.password else ""})


SETTINGS_AI = "ai_config"
SETTINGS_EMAIL = "email_config"
SETTINGS_MODELS = {
    SETTINGS_AI: AISettings,
    SETTINGS_EMAIL: EmailSettings,
}


def settings_model(key: str) -> Optional[type]:
    return SETTINGS_MODELS.get(key)
