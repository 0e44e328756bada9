"""Tests for end-to-end submission processing with collaborators mocked."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from models.merchant import SubmitApplicationRequest
from services.document_errors import UnsupportedFormat
from services.monday_service import CRMError
from services.submission_service import process_submission


def _make_db():
    submissions = MagicMock()
    submissions.insert_one = AsyncMock()
    db = MagicMock()
    db.__getitem__.return_value = submissions
    db.merchant_submissions = submissions
    return db


@pytest.fixture
def request_model(full_form_data, pdf_factory, image_factory, data_url_factory):
    return SubmitApplicationRequest(**{
        "formData": full_form_data,
        "fileAttachments": {
            "idFile": {"filename": "id.jpg", "mimeType": "image/jpeg",
                       "dataUrl": data_url_factory("image/jpeg", image_factory("JPEG"))},
            "checkFile": {"filename": "check.pdf", "mimeType": "application/pdf",
                          "dataUrl": data_url_factory("application/pdf", pdf_factory(2))},
            "w9File": {"filename": "w9.pdf", "mimeType": "application/pdf",
                       "dataUrl": data_url_factory("application/pdf", pdf_factory(1))},
        },
    })


@pytest.fixture
def collaborators(monkeypatch):
    monkeypatch.setenv("RECIPIENTS", "ops@halo.example, risk@halo.example")
    db = _make_db()
    mocks = SimpleNamespace(
        db=db,
        storage=AsyncMock(return_value=SimpleNamespace(file_id="65a1b2c3d4e5f60718293a4b")),
        drive=AsyncMock(return_value={
            "skipped": False,
            "file_id": "drive-1",
            "web_view_link": "https://drive.google.com/file/d/drive-1/view",
            "direct_download_url": "https://drive.google.com/uc?export=download&id=drive-1",
        }),
        monday=AsyncMock(return_value="987654"),
        internal_email=AsyncMock(return_value=[SimpleNamespace(status="sent")]),
        merchant_email=AsyncMock(return_value=SimpleNamespace(status="sent")),
        whatsapp=AsyncMock(return_value={"skipped": False, "results": [{"success": True}]}),
        audit=AsyncMock(return_value="audit-1"),
    )
    with patch("services.submission_service.database.get_db", return_value=db), \
         patch("services.submission_service.get_next_app_id", new=AsyncMock(return_value="20260115-0001")), \
         patch("services.submission_service.upload_application_pdf", new=mocks.storage), \
         patch("services.submission_service.drive_storage.upload_pdf", new=mocks.drive), \
         patch("services.submission_service.monday_integration.create_application_item", new=mocks.monday), \
         patch("services.submission_service.email_service.send_internal_notification", new=mocks.internal_email), \
         patch("services.submission_service.email_service.send_merchant_confirmation", new=mocks.merchant_email), \
         patch("services.submission_service.whatsapp_service.notify_new_application", new=mocks.whatsapp), \
         patch("services.submission_service.create_audit_log", new=mocks.audit):
        yield mocks


@pytest.mark.asyncio
async def test_full_submission_delivers_everywhere(request_model, collaborators):
    record = await process_submission(request_model, ip_address="203.0.113.9")

    assert record.app_id == "20260115-0001"
    assert record.business_name == "Sunrise Fuel"
    assert record.owner_name == "Dana Rivera"
    assert record.pdf_filename == "sunrise_fuel_halo_20260115-0001.pdf"
    assert record.page_count >= 5  # application + 1 image page + 2 + 1
    assert record.drive_file_id == "drive-1"
    assert record.crm_item_id == "987654"

    collaborators.db.__getitem__.assert_any_call("merchant_submissions")
    collaborators.db.merchant_submissions.insert_one.assert_awaited_once()
    stored_doc = collaborators.db.merchant_submissions.insert_one.call_args.args[0]
    assert stored_doc["app_id"] == "20260115-0001"

    email_kwargs = collaborators.internal_email.call_args.kwargs
    assert email_kwargs["recipients"] == ["ops@halo.example", "risk@halo.example"]
    assert email_kwargs["pdf_content"].startswith(b"%PDF-")
    collaborators.merchant_email.assert_awaited_once()
    assert collaborators.merchant_email.call_args.kwargs["recipient"] == "dana@sunrisefuel.example"

    # WhatsApp gets a link, never the buffer
    whatsapp_args = collaborators.whatsapp.call_args.args
    assert whatsapp_args[-1] == "https://drive.google.com/uc?export=download&id=drive-1"
    assert not any(isinstance(a, bytes) for a in whatsapp_args)

    submitted = collaborators.audit.call_args_list[-1].kwargs
    assert submitted["action"].value == "APPLICATION_SUBMITTED"
    assert set(submitted["metadata"]["delivered"]) == {
        "storage", "drive", "crm", "email_internal", "email_merchant", "whatsapp",
    }


@pytest.mark.asyncio
async def test_delivery_failures_do_not_fail_submission(request_model, collaborators):
    collaborators.monday.side_effect = CRMError("Monday GraphQL error: board not found")
    collaborators.drive.side_effect = RuntimeError("Drive year folder failed")

    record = await process_submission(request_model)

    assert record.crm_item_id is None
    assert record.drive_file_id is None
    failed_channels = [
        c.kwargs["metadata"]["channel"] for c in collaborators.audit.call_args_list
        if c.kwargs["action"].value == "APPLICATION_DELIVERY_FAILED"
    ]
    assert set(failed_channels) == {"drive", "crm"}
    collaborators.db.merchant_submissions.insert_one.assert_awaited_once()


@pytest.mark.asyncio
async def test_bad_document_rejects_submission(request_model, collaborators):
    bad = request_model.file_attachments.check_file.model_copy(
        update={"mime_type": "application/zip", "data_url": "data:application/zip;base64,UEsDBA=="}
    )
    files = request_model.file_attachments.model_copy(update={"check_file": bad})
    request_model = request_model.model_copy(update={"file_attachments": files})

    with pytest.raises(UnsupportedFormat):
        await process_submission(request_model)

    collaborators.db.merchant_submissions.insert_one.assert_not_called()
    collaborators.storage.assert_not_called()
    rejected = collaborators.audit.call_args_list[-1].kwargs
    assert rejected["action"].value == "APPLICATION_REJECTED"
    assert rejected["metadata"]["error_code"] == "UNSUPPORTED_DOCUMENT_FORMAT"
