"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/ai/base.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Provider interface for AI backends and the tolerant JSON
                parser shared by all of them.
------------------------------------------------------------------------------
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple


class AIProvider(ABC):
    """Abstract base class for all AI backends (Gemini, OpenRouter)."""

    name: str = "abstract"

    @abstractmethod
    def generate_json(self, prompt: str, images: Optional[Sequence[bytes]] = None, stage_label: str = "AI REQUEST") -> str:
        """
        Sends a prompt (plus optional PNG page images) and returns the raw
        model text. Raises ModelError on failure.
        """

    @abstractmethod
    def embed(self, text: str, dimensions: int) -> List[float]:
        """Returns an embedding vector. Raises ModelError on failure."""


def _attempt_repair(s: str) -> str:
    """Heuristic JSON repair for common AI mistakes."""
    s = re.sub(r',\s*([\]}])', r'\1', s)  # Remove trailing commas
    s = re.sub(r'}\s*\n\s*"', r'},\n"', s)  # Missing commas between objects
    s = re.sub(r'\]\s*\n\s*"', r'],\n"', s)  # Missing commas between arrays and items
    return s


def parse_json_response(txt: Optional[str]) -> Tuple[Optional[Any], Optional[str]]:
    """
    Extracts a JSON object from model output.

    Returns:
        (payload, None) on success, (None, error message) otherwise.
    """
    if not txt:
        return None, "Empty response"

    txt = txt.replace("\x00", "")
    start = txt.find('{')
    if start == -1:
        return None, "No JSON object found (missing '{')"

    current_json: Optional[str] = None

    # Tiered parse attempt
    for step in range(4):
        if step == 0:
            # Attempt 0: up to the last '}'
            end = txt.rfind('}')
            if end == -1:
                continue
            current_json = txt[start:end + 1]
        elif step == 1:
            # Attempt 1: balanced braces
            depth = 0
            balanced_end = -1
            for idx, char in enumerate(txt[start:]):
                if char == '{':
                    depth += 1
                elif char == '}':
                    depth -= 1
                    if depth == 0:
                        balanced_end = start + idx
                        break
            if balanced_end == -1:
                continue
            current_json = txt[start:balanced_end + 1]
        elif step == 2:
            # Attempt 2: heuristic repair
            if not current_json:
                continue
            current_json = _attempt_repair(current_json)
        elif step == 3:
            # Attempt 3: close truncated objects
            if not current_json:
                current_json = txt[start:]
            depth = current_json.count('{') - current_json.count('}')
            if depth <= 0:
                continue
            current_json += "}" * depth

        try:
            return json.loads(current_json, strict=False), None
        except (json.JSONDecodeError, TypeError):
            continue

    return None, "JSON syntax error after repair attempts"
