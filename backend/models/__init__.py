from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum
import uuid

# ============================================================================
# ENUMS (System Constants)
# ============================================================================

class AuditAction(str, Enum):
    # Submission lifecycle
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    APPLICATION_REJECTED = "APPLICATION_REJECTED"
    APPLICATION_DOWNLOADED = "APPLICATION_DOWNLOADED"

    # Deliveries
    APPLICATION_DELIVERY_FAILED = "APPLICATION_DELIVERY_FAILED"

    # OCR pre-fill
    DOCUMENTS_EXTRACTED = "DOCUMENTS_EXTRACTED"

    # Email
    EMAIL_SENT = "EMAIL_SENT"
    EMAIL_FAILED = "EMAIL_FAILED"


class EmailTemplateAlias(str, Enum):
    APPLICATION_INTERNAL = "application-internal"  # Internal team notification with merged PDF
    APPLICATION_RECEIVED = "application-received"  # Merchant confirmation


class DeliveryChannel(str, Enum):
    STORAGE = "storage"
    DRIVE = "drive"
    CRM = "crm"
    EMAIL_INTERNAL = "email_internal"
    EMAIL_MERCHANT = "email_merchant"
    WHATSAPP = "whatsapp"


# ============================================================================
# LOG MODELS
# ============================================================================

class AuditLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    audit_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: AuditAction
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MessageLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    postmark_message_id: Optional[str] = None
    app_id: Optional[str] = None
    recipient: EmailStr
    template_alias: EmailTemplateAlias
    subject: str
    status: str = "queued"
    has_attachment: bool = False
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    provider_error_type: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
