"""WhatsApp Service - Twilio notifications for new merchant applications.
Sends a short text (plus an optional link to the PDF) to the onboarding team.
The PDF buffer itself is never sent.
"""
from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
import os
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def to_whatsapp_address(number: str) -> str:
    number = number.strip()
    if number.lower().startswith(WHATSAPP_PREFIX):
        return number
    return f"{WHATSAPP_PREFIX}{number}"


def build_notification_body(app_id: str, business_name: str, owner_name: str, created_at: str) -> str:
    return (
        "New Merchant Application\n"
        f"AppId: {app_id}\n"
        f"Business: {business_name or '-'}\n"
        f"Owner: {owner_name or '-'}\n"
        f"Created: {created_at}"
    )


class WhatsAppService:
    def __init__(self):
        self.account_sid = os.getenv("TWILIO_ACCOUNT_SID")
        self.auth_token = os.getenv("TWILIO_AUTH_TOKEN")
        self.from_number = os.getenv("TWILIO_WHATSAPP_FROM")
        self.recipients = [
            n.strip() for n in (os.getenv("WHATSAPP_NOTIFY_TO") or "").split(",") if n.strip()
        ]

        self.client = None
        if self.account_sid and self.auth_token:
            try:
                self.client = Client(self.account_sid, self.auth_token)
                logger.info("Twilio WhatsApp client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Twilio client: {e}")

    def is_configured(self) -> bool:
        """Check if WhatsApp notifications are properly configured."""
        return bool(self.client and self.from_number and self.recipients)

    async def notify_new_application(
        self,
        app_id: str,
        business_name: str,
        owner_name: str,
        created_at: str,
        media_url: Optional[str] = None,
    ) -> dict:
        """Send the new-application notice to every configured recipient.

        Returns:
            dict with skipped flag and per-recipient results
        """
        if not self.is_configured():
            logger.warning("WhatsApp is not configured - notification skipped")
            return {"skipped": True, "results": []}

        body = build_notification_body(app_id, business_name, owner_name, created_at)
        results: List[dict] = []
        for recipient in self.recipients:
            to_number = to_whatsapp_address(recipient)
            kwargs = {
                "body": body,
                "from_": to_whatsapp_address(self.from_number),
                "to": to_number,
            }
            if media_url:
                kwargs["media_url"] = [media_url]
            try:
                message_obj = self.client.messages.create(**kwargs)
                logger.info(f"WhatsApp sent to {to_number[:14]}***: {message_obj.sid}")
                results.append({"to": to_number, "success": True, "message_sid": message_obj.sid})
            except TwilioRestException as e:
                logger.error(f"Twilio error sending WhatsApp: {e.code} - {e.msg}")
                results.append({"to": to_number, "success": False, "error": str(e.msg), "code": e.code})
            except Exception as e:
                logger.error(f"Error sending WhatsApp: {e}")
                results.append({"to": to_number, "success": False, "error": str(e)})

        return {"skipped": False, "results": results}


# Singleton instance
whatsapp_service = WhatsAppService()
