"""Gemini REST API client."""
import json
import logging
import re
from typing import Any, Dict

import requests

from config import GeminiConfig
from sheetmapper.errors import OracleUnavailable

logger = logging.getLogger(__name__)

JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class GeminiClient:
    """Client for the Gemini generateContent endpoint."""

    def __init__(self, config: GeminiConfig):
        """Initialize client."""
        self.config = config
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key)

    def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the model text.

        Raises:
            OracleUnavailable: Missing key, transport error or unusable response
        """
        if not self.configured:
            raise OracleUnavailable("GEMINI_API_KEY is not set")

        url = f"{self.config.base_url}/v1beta/models/{self.config.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            response = self.session.post(
                url,
                params={"key": self.config.api_key},
                json=payload,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise OracleUnavailable(f"Gemini request failed: {e}") from e

        try:
            parts = body["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError) as e:
            raise OracleUnavailable(f"Unexpected Gemini response: {e}") from e

        if not text.strip():
            raise OracleUnavailable("Gemini returned an empty answer")

        logger.debug(f"Gemini answered with {len(text)} characters")
        return text

    def generate_json(self, prompt: str) -> Dict[str, Any]:
        """Send a prompt whose answer must contain a JSON object."""
        return extract_json(self.generate(prompt))


def extract_json(text: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model answer.

    Models wrap JSON in prose or code fences and sometimes use smart quotes.

    Raises:
        OracleUnavailable: No parsable object in the text
    """
    match = JSON_OBJECT.search(text or "")
    if not match:
        raise OracleUnavailable("No JSON object in model answer")

    candidate = match.group(0)
    try:
        parsed = json.loads(candidate)
    except ValueError:
        cleaned = candidate.replace("“", '"').replace("”", '"').replace("’", "'")
        cleaned = "".join(ch for ch in cleaned if ch >= " " or ch in ("\n", "\t"))
        try:
            parsed = json.loads(cleaned)
        except ValueError as e:
            raise OracleUnavailable(f"Unparsable JSON in model answer: {e}") from e

    if not isinstance(parsed, dict):
        raise OracleUnavailable("Model answer is not a JSON object")
    return parsed
