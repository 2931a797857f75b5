"""Gemini backed matching, rule generation and template oracles."""

from .ai_service import AiService
from .gemini_client import GeminiClient, extract_json

__all__ = ["AiService", "GeminiClient", "extract_json"]
