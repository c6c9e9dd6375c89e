"""
llm.py
------
LLM clients used by the optional day-theming pass.

Every client exposes `complete(prompt) -> str`. With USE_STUB_LLM=true the
stub is used and no API call is ever made; the theming stage then falls back
to its deterministic plan.
"""

from __future__ import annotations

import json
import os
import re

from google import genai

import config


# ── Stub LLM client (no API calls) ───────────────────────────────────────────
class StubLLMClient:
    """No-op client. Returns an empty JSON object for every prompt."""

    def complete(self, prompt: str) -> str:  # noqa: ARG002
        return "{}"


# ── Gemini LLM client ────────────────────────────────────────────────────────
class GeminiClient:
    """Gemini over google-genai, asked for a JSON reply."""

    def __init__(self, model: str | None = None, api_key: str | None = None):
        api_key = api_key or os.environ.get("GEMINI_API_KEY") or config.LLM_API_KEY
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY is not set; use USE_STUB_LLM=true to run offline")
        self._client = genai.Client(
            api_key=api_key,
            http_options={"timeout": int(config.LLM_TIMEOUT_SECONDS * 1000)},
        )
        self._model = model or config.LLM_MODEL_NAME

    def complete(self, prompt: str) -> str:
        response = self._client.models.generate_content(
            model=self._model,
            contents=prompt,
            config={"response_mime_type": "application/json", "temperature": 0.4},
        )
        text = getattr(response, "text", None)
        if not text:
            raise RuntimeError(f"{self._model} returned an empty reply")
        return text.strip()


def get_llm_client():
    """Stub or Gemini client depending on USE_STUB_LLM."""
    return StubLLMClient() if config.USE_STUB_LLM else GeminiClient()


def parse_json_object(raw: str) -> dict:
    """Extract the first JSON object from an LLM reply, tolerating ``` fences."""
    raw = re.sub(r"```(?:json)?", "", raw or "").strip().rstrip("`").strip()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", raw, re.DOTALL)
        if not match:
            raise ValueError("No JSON object in LLM reply")
        data = json.loads(match.group())
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
