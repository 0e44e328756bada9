"""Tests for the public merchant onboarding endpoints."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from models.merchant import SubmissionRecord
from services.document_errors import DecodeError
from services.storage_adapter import StoredFileNotFound
from services.submission_service import SubmissionNotFound
from utils.rate_limiter import rate_limiter


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def record():
    return SubmissionRecord(
        app_id="20260115-0001",
        business_name="Sunrise Fuel",
        owner_name="Dana Rivera",
        created_at=datetime(2026, 1, 15, 14, 30, tzinfo=timezone.utc),
        pdf_filename="sunrise_fuel_halo_20260115-0001.pdf",
        pdf_file_id="65a1b2c3d4e5f60718293a4b",
        page_count=7,
        drive_web_view_link="https://drive.google.com/file/d/abc/view",
    )


@pytest.fixture
def submit_body(full_form_data, data_url_factory):
    upload = {"filename": "doc.pdf", "mimeType": "application/pdf",
              "dataUrl": data_url_factory("application/pdf", b"%PDF-1.4 stub")}
    return {
        "formData": full_form_data,
        "fileAttachments": {"idFile": upload, "checkFile": upload, "w9File": upload},
    }


def test_root_and_health(client):
    assert client.get("/api").json()["status"] == "operational"
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestSubmit:
    def test_success_response_shape(self, client, submit_body, record):
        with patch("routes.merchant.process_submission", new=AsyncMock(return_value=record)) as process:
            response = client.post("/api/submit", json=submit_body)

        assert response.status_code == 200
        data = response.json()
        assert data == {
            "success": True,
            "appId": "20260115-0001",
            "businessName": "Sunrise Fuel",
            "ownerName": "Dana Rivera",
            "createdAt": "2026-01-15T14:30:00+00:00",
            "pageCount": 7,
        }
        request_model = process.call_args.args[0]
        assert request_model.form_data.legal_business_name == "Sunrise Fuel Stop LLC"

    def test_missing_documents_400(self, client, submit_body):
        del submit_body["fileAttachments"]["w9File"]
        with patch("routes.merchant.process_submission", new=AsyncMock()) as process:
            response = client.post("/api/submit", json=submit_body)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error_code"] == "DOCUMENTS_REQUIRED"
        assert detail["missing"] == ["W-9"]
        process.assert_not_called()

    def test_missing_form_data_400(self, client, submit_body):
        del submit_body["formData"]
        response = client.post("/api/submit", json=submit_body)
        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "FORM_DATA_REQUIRED"

    def test_pipeline_error_422(self, client, submit_body):
        error = DecodeError("Photo ID: PDF could not be parsed")
        with patch("routes.merchant.process_submission", new=AsyncMock(side_effect=error)):
            response = client.post("/api/submit", json=submit_body)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error_code"] == "DOCUMENT_DECODE_FAILED"
        assert "Photo ID" in detail["message"]

    def test_rate_limited_429(self, client, submit_body, record):
        with patch("routes.merchant.SUBMIT_RATE_LIMIT", 1), \
             patch("routes.merchant.process_submission", new=AsyncMock(return_value=record)):
            first = client.post("/api/submit", json=submit_body)
            second = client.post("/api/submit", json=submit_body)

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["detail"]["error_code"] == "RATE_LIMITED"

    def test_rejected_requests_do_not_use_rate_limit(self, client, submit_body, record):
        incomplete = {"formData": submit_body["formData"], "fileAttachments": {}}
        with patch("routes.merchant.SUBMIT_RATE_LIMIT", 1), \
             patch("routes.merchant.process_submission", new=AsyncMock(return_value=record)):
            for _ in range(3):
                assert client.post("/api/submit", json={"fileAttachments": {}}).status_code == 400
                assert client.post("/api/submit", json=incomplete).status_code == 400
            response = client.post("/api/submit", json=submit_body)

        assert response.status_code == 200

    def test_malformed_body_422_with_request_id(self, client):
        response = client.post("/api/submit", json={"formData": ["not", "an", "object"]})
        assert response.status_code == 422
        assert "request_id" in response.json()


class TestExtract:
    def test_all_documents_required(self, client):
        response = client.post("/api/extract", json={"consent": True, "idImageDataUrl": "data:image/png;base64,AA=="})
        assert response.status_code == 400

    def test_no_consent_skips_ocr(self, client):
        body = {
            "consent": False,
            "idImageDataUrl": "data:image/png;base64,AA==",
            "checkImageDataUrl": "data:image/png;base64,AA==",
            "w9ImageDataUrl": "data:image/png;base64,AA==",
        }
        with patch("routes.merchant.extract_documents", new=AsyncMock()) as extract:
            response = client.post("/api/extract", json=body)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "extracted": {"id_fields": {}, "bank_fields": {}, "w9_fields": {}},
        }
        extract.assert_not_called()

    def test_consent_runs_extraction(self, client):
        body = {
            "consent": True,
            "idImageDataUrl": "data:image/png;base64,AA==",
            "checkImageDataUrl": "data:image/png;base64,AA==",
            "w9ImageDataUrl": "data:image/png;base64,AA==",
        }
        extracted = {
            "id_fields": {"first_name": "Dana"},
            "bank_fields": {"routing_number": "111000025"},
            "w9_fields": {"name": ""},
        }
        with patch("routes.merchant.extract_documents", new=AsyncMock(return_value=extracted)), \
             patch("routes.merchant.create_audit_log", new=AsyncMock()):
            response = client.post("/api/extract", json=body)

        assert response.status_code == 200
        assert response.json()["extracted"] == extracted


class TestSubmissionLookup:
    def test_details(self, client, record):
        with patch("routes.merchant.get_submission", new=AsyncMock(return_value=record)):
            response = client.get("/api/submission/20260115-0001")

        assert response.status_code == 200
        data = response.json()
        assert data["appId"] == "20260115-0001"
        assert data["driveWebViewLink"] == "https://drive.google.com/file/d/abc/view"

    def test_unknown_404(self, client):
        with patch("routes.merchant.get_submission", new=AsyncMock(side_effect=SubmissionNotFound("x"))):
            response = client.get("/api/submission/20990101-0001")
        assert response.status_code == 404

    def test_pdf_download(self, client):
        pdf = b"%PDF-1.4 merged"
        with patch("routes.merchant.get_submission_pdf", new=AsyncMock(return_value=(pdf, "acme_halo_1.pdf"))), \
             patch("routes.merchant.create_audit_log", new=AsyncMock()):
            response = client.get("/api/submission/20260115-0001/pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="acme_halo_1.pdf"' in response.headers["content-disposition"]
        assert response.content == pdf

    def test_pdf_missing_file_404(self, client):
        with patch("routes.merchant.get_submission_pdf", new=AsyncMock(side_effect=StoredFileNotFound("gone"))):
            response = client.get("/api/submission/20260115-0001/pdf")
        assert response.status_code == 404
