"""
Merchant onboarding models.

FormSubmission mirrors the web form (camelCase keys). Every text field is coerced to a
trimmed string and never trusted beyond that; formatting happens at render time.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Any
from datetime import datetime, timezone

BOOLEAN_FIELDS = {"business_same_as_physical", "terms_accepted"}


class FormSubmission(BaseModel):
    """Immutable merchant application as submitted by the onboarding form."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # Business
    legal_business_name: str = ""
    dba_name: str = ""
    business_type: str = ""
    business_type_other: str = ""
    business_established_date: str = ""
    taxpayer_id: str = ""
    fns_number: str = ""
    annual_revenue: str = ""
    business_phone: str = ""
    business_email: str = ""
    business_website: str = ""

    # Physical location
    physical_street: str = ""
    physical_unit: str = ""
    physical_city: str = ""
    physical_state: str = ""
    physical_zip: str = ""

    # Mailing address
    business_same_as_physical: bool = False
    business_street: str = ""
    business_unit: str = ""
    business_city: str = ""
    business_state: str = ""
    business_zip: str = ""

    # Principal
    owner_first_name: str = ""
    owner_middle_name: str = ""
    owner_last_name: str = ""
    owner_title: str = ""
    owner_ownership_pct: str = ""
    dob: str = ""
    owner_ssn: str = ""
    owner_home_phone: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    principal_address_street: str = ""
    principal_address_unit: str = ""
    principal_address_city: str = ""
    principal_address_state: str = ""
    principal_address_zip: str = ""

    # Identification
    id_number: str = ""
    dl_state: str = ""
    id_exp: str = ""

    # Banking
    bank_name: str = ""
    routing_number: str = ""
    account_number: str = ""

    # Additional
    cc_terminal: str = ""
    encryption: str = ""
    gas_station_pos: str = ""
    pricing: str = ""
    installation_date: str = ""
    other_fleet_cards: str = ""
    site_id: str = ""
    other_notes: str = ""

    # Signature
    signature_name: str = ""
    signature_date: str = ""
    signature_image_data_url: str = ""
    terms_accepted: bool = False

    @field_validator("*", mode="before")
    @classmethod
    def coerce_untrusted(cls, value: Any, info):
        if info.field_name in BOOLEAN_FIELDS:
            if isinstance(value, str):
                return value.strip().lower() in ("true", "1", "yes", "on")
            return bool(value)
        if value is None:
            return ""
        return str(value).strip()

    @property
    def owner_name(self) -> str:
        return f"{self.owner_first_name} {self.owner_last_name}".strip()

    @property
    def display_business_type(self) -> str:
        if self.business_type.lower() == "other" and self.business_type_other:
            return self.business_type_other
        return self.business_type


class FileAttachment(BaseModel):
    """One uploaded document as sent by the form: a data URL plus declared type."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    filename: Optional[str] = None
    mime_type: Optional[str] = ""
    data_url: str = ""


class FileAttachments(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id_file: Optional[FileAttachment] = None
    check_file: Optional[FileAttachment] = None
    w9_file: Optional[FileAttachment] = None


class SubmitApplicationRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    form_data: Optional[FormSubmission] = None
    file_attachments: Optional[FileAttachments] = None


class ExtractDocumentsRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    consent: bool = False
    id_image_data_url: Optional[str] = None
    check_image_data_url: Optional[str] = None
    w9_image_data_url: Optional[str] = None


class SubmissionRecord(BaseModel):
    """Stored metadata for one processed application (merchant_submissions)."""
    model_config = ConfigDict(extra="ignore")

    app_id: str
    business_name: str = ""
    owner_name: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    pdf_filename: str
    pdf_file_id: Optional[str] = None
    page_count: int = 0
    drive_file_id: Optional[str] = None
    drive_web_view_link: Optional[str] = None
    drive_direct_download_url: Optional[str] = None
    crm_item_id: Optional[str] = None
