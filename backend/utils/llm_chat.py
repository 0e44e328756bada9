"""
Platform-agnostic LLM chat using Google Generative AI (Gemini).
Uses LLM_API_KEY from environment (Gemini API key from Google AI Studio).
Only the vision call used for document pre-fill is exposed.
"""
import asyncio
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

LLM_API_KEY = os.environ.get("LLM_API_KEY")
DEFAULT_MODEL = os.environ.get("OCR_MODEL", "gemini-2.0-flash")


def _get_api_key() -> Optional[str]:
    return LLM_API_KEY


def _sync_chat_with_image(
    system_prompt: str,
    user_text: str,
    image_bytes: bytes,
    mime_type: str,
    model: str = DEFAULT_MODEL,
) -> str:
    """Synchronous chat with an inline image (no upload round-trip)."""
    import google.generativeai as genai
    api_key = _get_api_key()
    if not api_key:
        raise ValueError("LLM_API_KEY not found in environment")
    genai.configure(api_key=api_key)
    model_name = model if model and "gemini" in model else "gemini-2.0-flash"
    gemini = genai.GenerativeModel(
        model_name,
        system_instruction=system_prompt,
    )
    response = gemini.generate_content([{"mime_type": mime_type, "data": image_bytes}, user_text])
    if not response or not response.text:
        raise ValueError("Empty response from LLM")
    return response.text


async def chat_with_image(
    system_prompt: str,
    user_text: str,
    image_bytes: bytes,
    mime_type: str,
    model: str = DEFAULT_MODEL,
) -> str:
    """Async chat with inline image. Runs sync SDK in thread pool."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(
        None,
        lambda: _sync_chat_with_image(system_prompt, user_text, image_bytes, mime_type, model),
    )
