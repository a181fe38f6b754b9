"""
Gemini AI Service for Mira Oracle

Uses the google.genai SDK to write personalized reading text.
The SDK call is blocking, so it runs in a worker thread.
"""

import asyncio
import logging
from typing import Optional

from google import genai
from google.genai import types

from mira_oracle.config.settings import get_settings
from mira_oracle.infrastructure.exceptions import (
    AIServiceError,
    ConfigurationError,
)


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are Mira, a warm and poetic astrologer. Write a personal birth chart "
    "reading addressed directly to the seeker. Weave in their sign, birth "
    "place and the intentions they shared. Use flowing prose in three to five "
    "short paragraphs, no headings, no lists, no disclaimers."
)


class GeminiService:
    """Reading text generation through Gemini."""

    MAX_OUTPUT_TOKENS = 2048
    TEMPERATURE = 0.9

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        settings = get_settings()
        self._api_key = api_key or settings.google_api_key
        self._model = model or settings.gemini_model
        self._client: Optional[genai.Client] = None

        if not self._api_key:
            raise ConfigurationError(
                "Missing GOOGLE_API_KEY environment variable",
                missing_keys=["GOOGLE_API_KEY"]
            )

    @property
    def model(self) -> str:
        return self._model

    @property
    def client(self) -> genai.Client:
        """Get the Gemini client instance."""
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
            logger.info(f"GeminiService initialized with model: {self._model}")
        return self._client

    async def generate_reading(self, prompt: str) -> str:
        """
        Generate reading text for a prepared prompt.

        Raises:
            AIServiceError: the call failed or returned no text
        """
        try:
            response = await asyncio.to_thread(
                lambda: self.client.models.generate_content(
                    model=self._model,
                    contents=prompt,
                    config=types.GenerateContentConfig(
                        system_instruction=SYSTEM_PROMPT,
                        temperature=self.TEMPERATURE,
                        max_output_tokens=self.MAX_OUTPUT_TOKENS,
                    )
                )
            )
        except Exception as e:
            raise AIServiceError(
                f"Failed to generate reading: {str(e)}",
                model=self._model,
                operation="generate_reading",
                original_error=e
            )

        text = (response.text or "").strip()
        if not text:
            raise AIServiceError(
                "Empty response from Gemini",
                model=self._model,
                operation="generate_reading"
            )
        return text


# =============================================================================
# Singleton Instance
# =============================================================================

_gemini_service_instance: Optional[GeminiService] = None


def get_gemini_service() -> Optional[GeminiService]:
    """Get the Gemini service, or None when no API key is configured."""
    global _gemini_service_instance

    if _gemini_service_instance is None and get_settings().ai_enabled:
        _gemini_service_instance = GeminiService()

    return _gemini_service_instance
