"""
Gemini helpers shared by newsletter copy, tag suggestion and copyright analysis
Every caller keeps a deterministic fallback for when the model is unavailable.
"""
import json
import logging
import re
from typing import Any, Optional

import google.generativeai as genai

from core.config import settings

logger = logging.getLogger(__name__)

if settings.GEMINI_API_KEY:
    genai.configure(api_key=settings.GEMINI_API_KEY)


def is_enabled() -> bool:
    return bool(settings.GEMINI_API_KEY)


def generate_text(prompt: str) -> Optional[str]:
    """
    Run a prompt through Gemini

    Returns:
        The response text, or None when no API key is set or the call fails
    """
    if not is_enabled():
        logger.debug("GEMINI_API_KEY not set, skipping AI generation")
        return None

    try:
        model = genai.GenerativeModel(settings.GEMINI_MODEL)
        response = model.generate_content(prompt)
        return response.text.strip()
    except Exception as e:
        logger.error(f"Gemini generation error: {str(e)}")
        return None


def extract_json(text: Optional[str]) -> Optional[Any]:
    """Pull the first JSON array or object out of a model reply (fenced or bare)"""
    if not text:
        return None

    match = re.search(r"(\[.*\]|\{.*\})", text, re.DOTALL)
    if not match:
        return None

    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        logger.warning("AI reply did not contain valid JSON")
        return None
