"""Tests for OCR pre-fill: reply parsing, normalization, W-9 redaction."""
import json
from unittest.mock import AsyncMock, patch

import pytest

from services.document_extraction import (
    extract_documents,
    extract_from_image,
    normalize_bank_fields,
    normalize_id_fields,
    normalize_iso_date,
    normalize_w9_fields,
    parse_model_json,
)

PNG_URL = "data:image/png;base64,iVBORw0KGgo="


class TestParseModelJson:
    def test_plain_json(self):
        assert parse_model_json('{"bank_name": "First"}') == {"bank_name": "First"}

    def test_fenced_json(self):
        reply = '```json\n{"first_name": "Dana"}\n```'
        assert parse_model_json(reply) == {"first_name": "Dana"}

    def test_garbage_and_non_object(self):
        assert parse_model_json("I could not read this document.") == {}
        assert parse_model_json("[1, 2, 3]") == {}
        assert parse_model_json(None) == {}


def test_dates_become_iso_or_empty():
    assert normalize_iso_date("03/14/1980") == "1980-03-14"
    assert normalize_iso_date("1980-03-14") == "1980-03-14"
    assert normalize_iso_date("sometime in 1980") == ""


def test_id_fields_fill_missing_keys():
    fields = normalize_id_fields({"first_name": " Dana ", "dob": "3/14/1980"})
    assert fields["first_name"] == "Dana"
    assert fields["dob"] == "1980-03-14"
    assert fields["last_name"] == ""
    assert fields["id_expiration"] == ""


def test_bank_numbers_keep_digits_only():
    fields = normalize_bank_fields({"routing_number": "1110-0002 5", "account_number": "acct #0001 2345"})
    assert fields["routing_number"] == "111000025"
    assert fields["account_number"] == "00012345"


def test_w9_drops_taxpayer_numbers():
    fields = normalize_w9_fields({"name": "Dana Rivera", "ssn": "321549876", "ein": "12-3456789", "tin": "x"})
    assert fields["name"] == "Dana Rivera"
    assert not {"ssn", "ein", "tin"} & set(fields)


@pytest.mark.asyncio
async def test_extract_documents_groups_results():
    replies = {
        "US Photo ID": json.dumps({"first_name": "Dana", "last_name": "Rivera", "dob": "1980-03-14"}),
        "voided check": "```json\n" + json.dumps({"routing_number": "111-000-025"}) + "\n```",
        "W-9": json.dumps({"name": "Dana Rivera", "ssn": "321-54-9876"}),
    }

    async def fake_chat(system_prompt, user_text, image_bytes, mime_type):
        return next(reply for marker, reply in replies.items() if marker in user_text)

    with patch("services.document_extraction.chat_with_image", new=AsyncMock(side_effect=fake_chat)) as chat:
        extracted = await extract_documents(PNG_URL, PNG_URL, PNG_URL)

    assert chat.await_count == 3
    assert extracted["id_fields"]["last_name"] == "Rivera"
    assert extracted["bank_fields"]["routing_number"] == "111000025"
    assert extracted["w9_fields"]["name"] == "Dana Rivera"
    assert "ssn" not in extracted["w9_fields"]


@pytest.mark.asyncio
async def test_model_failure_yields_empty_group():
    with patch("services.document_extraction.chat_with_image", new=AsyncMock(side_effect=ValueError("Empty response from LLM"))):
        assert await extract_from_image("id", PNG_URL, "prompt", "{}") == {}


@pytest.mark.asyncio
async def test_non_data_url_not_sent_to_model():
    with patch("services.document_extraction.chat_with_image", new=AsyncMock()) as chat:
        assert await extract_from_image("id", "https://example.com/id.png", "prompt", "{}") == {}
    chat.assert_not_called()
