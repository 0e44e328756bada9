"""
Pytest configuration and shared test helpers for backend tests.
"""
import base64
import io

import pytest
from PIL import Image
from pypdf import PdfWriter

# Shared TestClient fixture so tests can use in-process requests without a running server.
from fastapi.testclient import TestClient
from server import app


@pytest.fixture
def client():
    """Return a TestClient for the main FastAPI app (server:app). Lifespan is not run."""
    return TestClient(app)


def make_pdf(pages: int, width: float = 612, height: float = 792) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=height)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def make_image(fmt: str = "PNG", size=(400, 200), color=(30, 64, 175)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def data_url(media_type: str, content: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def image_factory():
    return make_image


@pytest.fixture
def data_url_factory():
    return data_url


@pytest.fixture
def full_form_data():
    """A complete submission as the web form posts it (camelCase)."""
    return {
        "legalBusinessName": "Sunrise Fuel Stop LLC",
        "dbaName": "Sunrise Fuel",
        "businessType": "LLC",
        "businessEstablishedDate": "2015-06-01",
        "taxpayerId": "123456789",
        "fnsNumber": "7654321",
        "annualRevenue": "1250000",
        "businessPhone": "5551234567",
        "businessEmail": "owner@sunrisefuel.example",
        "businessWebsite": "sunrisefuel.example",
        "physicalStreet": "100 Main St",
        "physicalUnit": "Suite 2",
        "physicalCity": "Austin",
        "physicalState": "TX",
        "physicalZip": "78701",
        "businessSameAsPhysical": "true",
        "ownerFirstName": "Dana",
        "ownerMiddleName": "Q",
        "ownerLastName": "Rivera",
        "ownerTitle": "Managing Member",
        "ownerOwnershipPct": "100",
        "dob": "1980-03-14",
        "ownerSsn": "321-54-9876",
        "ownerHomePhone": "15559876543",
        "contactEmail": "dana@sunrisefuel.example",
        "contactPhone": "(555) 222-3333",
        "principalAddressStreet": "9 Oak Ln",
        "principalAddressCity": "Austin",
        "principalAddressState": "TX",
        "principalAddressZip": "78702",
        "idNumber": "D1234567",
        "dlState": "TX",
        "idExp": "2030-01-31",
        "bankName": "First Community Bank",
        "routingNumber": "111000025",
        "accountNumber": "000123450042",
        "otherNotes": "Two pumps, one kiosk.",
        "signatureName": "Dana Rivera",
        "signatureDate": "2026-01-15",
        "termsAccepted": True,
    }
