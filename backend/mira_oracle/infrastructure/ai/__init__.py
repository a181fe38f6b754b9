"""
AI Infrastructure Module

Gemini-backed reading text generation.
"""

from mira_oracle.infrastructure.ai.gemini_service import (
    GeminiService,
    get_gemini_service,
)

__all__ = ["GeminiService", "get_gemini_service"]
