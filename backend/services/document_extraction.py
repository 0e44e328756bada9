"""
Document Extraction - vision-model pre-fill for the onboarding form.

The three uploads (photo ID, voided check / bank letter, W-9) are sent to Gemini
concurrently. Replies are parsed leniently and normalized:
- dates become ISO YYYY-MM-DD (or "")
- routing/account numbers keep digits only
- W-9 taxpayer numbers (SSN/EIN/TIN) are never requested nor returned
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from services.field_formatters import digits_only, parse_date, safe_text
from utils.data_url import parse_data_url
from utils.llm_chat import chat_with_image

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = (
    "You read scanned onboarding documents for a payments company. "
    "Return ONLY valid JSON matching the schema you are given. No markdown, no commentary. "
    "Use an empty string for anything you cannot read."
)

ID_PROMPT = "Extract fields from a US Photo ID (driver license)."
ID_SCHEMA = """{
  "first_name": "",
  "middle_name": "",
  "last_name": "",
  "dob": "YYYY-MM-DD",
  "id_number": "",
  "id_expiration": "YYYY-MM-DD",
  "address_line": "",
  "city": "",
  "state": "",
  "postal_code": ""
}"""

CHECK_PROMPT = "Extract bank fields from a voided check or bank letter."
CHECK_SCHEMA = """{
  "bank_name": "",
  "routing_number": "",
  "account_number": ""
}"""

W9_PROMPT = "Extract ONLY NON-SENSITIVE fields from a W-9 (name + address). DO NOT extract SSN/EIN/TIN."
W9_SCHEMA = """{
  "name": "",
  "business_name": "",
  "address_line": "",
  "city": "",
  "state": "",
  "postal_code": ""
}"""


def empty_extraction() -> Dict[str, Dict[str, str]]:
    return {"id_fields": {}, "bank_fields": {}, "w9_fields": {}}


def parse_model_json(response_text: str) -> Dict[str, Any]:
    """Parse a model reply as a JSON object, tolerating markdown fences. {} on failure."""
    text = (response_text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Extraction reply was not valid JSON")
        return {}
    return data if isinstance(data, dict) else {}


def normalize_iso_date(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ""


def normalize_id_fields(raw: Dict[str, Any]) -> Dict[str, str]:
    return {
        "first_name": safe_text(raw.get("first_name")),
        "middle_name": safe_text(raw.get("middle_name")),
        "last_name": safe_text(raw.get("last_name")),
        "dob": normalize_iso_date(raw.get("dob")),
        "id_number": safe_text(raw.get("id_number")),
        "id_expiration": normalize_iso_date(raw.get("id_expiration")),
        "address_line": safe_text(raw.get("address_line")),
        "city": safe_text(raw.get("city")),
        "state": safe_text(raw.get("state")),
        "postal_code": safe_text(raw.get("postal_code")),
    }


def normalize_bank_fields(raw: Dict[str, Any]) -> Dict[str, str]:
    return {
        "bank_name": safe_text(raw.get("bank_name")),
        "routing_number": digits_only(raw.get("routing_number")),
        "account_number": digits_only(raw.get("account_number")),
    }


def normalize_w9_fields(raw: Dict[str, Any]) -> Dict[str, str]:
    # Only whitelisted keys survive; any TIN the model volunteers is dropped here.
    return {
        "name": safe_text(raw.get("name")),
        "business_name": safe_text(raw.get("business_name")),
        "address_line": safe_text(raw.get("address_line")),
        "city": safe_text(raw.get("city")),
        "state": safe_text(raw.get("state")),
        "postal_code": safe_text(raw.get("postal_code")),
    }


async def extract_from_image(label: str, data_url: Optional[str], prompt: str, schema: str) -> Dict[str, Any]:
    """Send one document to the vision model. Returns {} when unreadable or on model failure."""
    parsed = parse_data_url(data_url)
    if parsed is None:
        logger.warning(f"[extract:{label}] not a base64 data URL")
        return {}
    mime_type, content = parsed
    try:
        reply = await chat_with_image(
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            user_text=f"{prompt}\n\nSchema:\n{schema}\n\nReturn ONLY valid JSON.",
            image_bytes=content,
            mime_type=mime_type or "image/jpeg",
        )
    except Exception as e:
        logger.error(f"[extract:{label}] model call failed: {e}")
        return {}
    return parse_model_json(reply)


async def extract_documents(id_data_url: str, check_data_url: str, w9_data_url: str) -> Dict[str, Dict[str, str]]:
    id_raw, bank_raw, w9_raw = await asyncio.gather(
        extract_from_image("id", id_data_url, ID_PROMPT, ID_SCHEMA),
        extract_from_image("check", check_data_url, CHECK_PROMPT, CHECK_SCHEMA),
        extract_from_image("w9", w9_data_url, W9_PROMPT, W9_SCHEMA),
    )
    return {
        "id_fields": normalize_id_fields(id_raw),
        "bank_fields": normalize_bank_fields(bank_raw),
        "w9_fields": normalize_w9_fields(w9_raw),
    }
