from postmarker.core import PostmarkClient
from database import database
from models import MessageLog, EmailTemplateAlias, AuditAction
from utils.audit import create_audit_log
from datetime import datetime, timezone
from html import escape
import base64
import os
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

# Verified sender in Postmark
DEFAULT_SENDER = os.getenv("EMAIL_FROM", "onboarding@halopayments.com")
COMPANY_NAME = os.getenv("COMPANY_NAME", "Halo Payments")


def parse_recipients(value: Optional[str]) -> List[str]:
    """Split a comma-separated recipient list, dropping blanks."""
    return [r.strip() for r in (value or "").split(",") if r.strip()]


def pdf_attachment(filename: str, content: bytes) -> Dict[str, str]:
    """Postmark attachment payload for a PDF buffer."""
    return {
        "Name": filename,
        "Content": base64.b64encode(content).decode("ascii"),
        "ContentType": "application/pdf",
    }


class EmailService:
    def __init__(self):
        postmark_token = os.getenv("POSTMARK_SERVER_TOKEN")
        if not postmark_token:
            logger.warning("POSTMARK_SERVER_TOKEN not set - emails will be logged but not sent")
            self.client = None
        else:
            self.client = PostmarkClient(server_token=postmark_token)
            logger.info("Postmark email client initialized")

    async def send_email(
        self,
        recipient: str,
        template_alias: EmailTemplateAlias,
        template_model: Dict[str, Any],
        subject: str,
        app_id: Optional[str] = None,
        attachments: Optional[List[Dict[str, str]]] = None,
    ) -> MessageLog:
        """Send a built-in template email, optionally with attachments."""
        db = database.get_db()

        message_log = MessageLog(
            app_id=app_id,
            recipient=recipient,
            template_alias=template_alias,
            subject=subject,
            status="queued",
            has_attachment=bool(attachments),
        )

        try:
            if self.client:
                send_kw = dict(
                    From=DEFAULT_SENDER,
                    To=recipient,
                    Subject=subject,
                    HtmlBody=self._build_html_body(template_alias, template_model),
                    TextBody=self._build_text_body(template_alias, template_model),
                    Tag=template_alias.value,
                )
                if attachments:
                    send_kw["Attachments"] = [a for a in attachments if a.get("Content")]
                response = self.client.emails.send(**send_kw)

                message_log.postmark_message_id = response["MessageID"]
                message_log.status = "sent"
                message_log.sent_at = datetime.now(timezone.utc)
                logger.info(f"Email sent to {recipient}: {response['MessageID']}")
            else:
                # Dev mode - just log
                message_log.status = "sent"
                message_log.sent_at = datetime.now(timezone.utc)
                logger.info(f"[DEV MODE] Email logged (not sent) to {recipient}")

        except Exception as e:
            message_log.status = "failed"
            message_log.error_message = str(e)
            message_log.provider_error_type = type(e).__name__
            logger.error(f"Failed to send email to {recipient}: {e}")

        doc = message_log.model_dump(mode="json")
        await db.message_logs.insert_one(doc)

        await create_audit_log(
            action=AuditAction.EMAIL_SENT if message_log.status == "sent" else AuditAction.EMAIL_FAILED,
            resource_type="submission",
            resource_id=app_id,
            metadata={
                "template": template_alias.value,
                "status": message_log.status,
                "postmark_id": message_log.postmark_message_id,
                "error": message_log.error_message,
                "provider_error_type": message_log.provider_error_type,
            }
        )

        return message_log

    async def send_internal_notification(
        self,
        recipients: List[str],
        app_id: str,
        business_name: str,
        owner_name: str,
        created_at: str,
        page_count: int,
        filename: str,
        pdf_content: bytes,
        drive_link: Optional[str] = None,
    ) -> List[MessageLog]:
        """Notify the onboarding team with the merged application attached."""
        model = {
            "app_id": app_id,
            "business_name": business_name or "Merchant",
            "owner_name": owner_name,
            "created_at": created_at,
            "page_count": page_count,
            "drive_link": drive_link,
        }
        attachment = pdf_attachment(filename, pdf_content)
        subject = f"New Merchant Application - {business_name or 'Merchant'} ({app_id})"
        results = []
        for recipient in recipients:
            results.append(await self.send_email(
                recipient=recipient,
                template_alias=EmailTemplateAlias.APPLICATION_INTERNAL,
                template_model=model,
                subject=subject,
                app_id=app_id,
                attachments=[attachment],
            ))
        return results

    async def send_merchant_confirmation(
        self,
        recipient: str,
        app_id: str,
        business_name: str,
        owner_name: str,
    ) -> MessageLog:
        """Confirm receipt to the merchant contact. Never carries the PDF."""
        return await self.send_email(
            recipient=recipient,
            template_alias=EmailTemplateAlias.APPLICATION_RECEIVED,
            template_model={
                "app_id": app_id,
                "business_name": business_name or "your business",
                "owner_name": owner_name or "there",
            },
            subject=f"We received your application - {app_id}",
            app_id=app_id,
        )

    def _build_html_body(self, template_alias: EmailTemplateAlias, model: Dict[str, Any]) -> str:
        """Build HTML email body based on template type."""
        m = {k: escape(str(v)) if v is not None else "" for k, v in model.items()}
        footer = f"""
                <hr style="border: none; border-top: 1px solid #E2E8F0; margin: 30px 0;">
                <p style="color: #64748b; font-size: 13px; margin: 0;">{escape(COMPANY_NAME)}</p>
        """

        if template_alias == EmailTemplateAlias.APPLICATION_INTERNAL:
            drive_row = (
                f'<p><a href="{m["drive_link"]}" style="color: #2563EB;">Open in Google Drive</a></p>'
                if m.get("drive_link") else ""
            )
            return f"""
            <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <div style="background-color: #0F172A; padding: 20px; border-radius: 8px 8px 0 0;">
                    <h1 style="color: #FFFFFF; margin: 0; font-size: 20px;">New Merchant Application</h1>
                    <p style="margin-top: 10px;"><span style="background-color: #2563EB; color: white; padding: 4px 12px; border-radius: 4px; font-family: monospace; font-size: 13px;">APP-{m["app_id"]}</span></p>
                </div>
                <div style="padding: 20px; border: 1px solid #E2E8F0; border-top: none; border-radius: 0 0 8px 8px;">
                    <p><strong>Business:</strong> {m["business_name"]}</p>
                    <p><strong>Owner:</strong> {m["owner_name"]}</p>
                    <p><strong>Submitted:</strong> {m["created_at"]}</p>
                    <p><strong>Pages:</strong> {m["page_count"]}</p>
                    <p>The complete application package (application, photo ID, voided check, W-9) is attached.</p>
                    {drive_row}
                </div>
                {footer}
            </body>
            </html>
            """
        elif template_alias == EmailTemplateAlias.APPLICATION_RECEIVED:
            return f"""
            <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <div style="background-color: #0F172A; padding: 20px; border-radius: 8px 8px 0 0;">
                    <h1 style="color: #FFFFFF; margin: 0; font-size: 20px;">Application Received</h1>
                </div>
                <div style="padding: 20px; border: 1px solid #E2E8F0; border-top: none; border-radius: 0 0 8px 8px;">
                    <p>Hello {m["owner_name"]},</p>
                    <p>Thank you for submitting the merchant application for {m["business_name"]}.</p>
                    <p>Your application ID is <strong>APP-{m["app_id"]}</strong>. Please keep it for your records.</p>
                    <p style="color: #666; font-size: 14px;">Our onboarding team will contact you if anything else is needed.</p>
                </div>
                {footer}
            </body>
            </html>
            """
        raise ValueError(f"No built-in template for {template_alias.value}")

    def _build_text_body(self, template_alias: EmailTemplateAlias, model: Dict[str, Any]) -> str:
        """Build plain text email body based on template type."""
        if template_alias == EmailTemplateAlias.APPLICATION_INTERNAL:
            lines = [
                "New Merchant Application",
                f"AppId: {model.get('app_id')}",
                f"Business: {model.get('business_name')}",
                f"Owner: {model.get('owner_name')}",
                f"Submitted: {model.get('created_at')}",
                f"Pages: {model.get('page_count')}",
            ]
            if model.get("drive_link"):
                lines.append(f"Drive: {model['drive_link']}")
            lines.append("")
            lines.append("The complete application package is attached.")
            return "\n".join(lines) + f"\n\n{COMPANY_NAME}"
        elif template_alias == EmailTemplateAlias.APPLICATION_RECEIVED:
            return (
                f"Hello {model.get('owner_name')},\n\n"
                f"Thank you for submitting the merchant application for {model.get('business_name')}.\n"
                f"Your application ID is APP-{model.get('app_id')}.\n\n"
                f"{COMPANY_NAME}"
            )
        raise ValueError(f"No built-in template for {template_alias.value}")


email_service = EmailService()
