"""
Monday.com CRM Integration
One-way sync: each submitted application becomes an item on the onboarding board.
Only metadata is sent (application ID, business, owner, timestamp), never form values.
"""
import json
import os
import logging
import httpx
from typing import Optional

logger = logging.getLogger(__name__)

MONDAY_API_URL = "https://api.monday.com/v2"

CREATE_ITEM_MUTATION = """
mutation ($boardId: ID!, $itemName: String!, $columnValues: JSON!) {
  create_item(board_id: $boardId, item_name: $itemName, column_values: $columnValues) {
    id
  }
}
"""


class CRMError(Exception):
    """Monday.com request failed or returned GraphQL errors."""
    pass


def build_item_name(business_name: str, app_id: str) -> str:
    return f"{business_name or 'Merchant'} - {app_id}"


class MondayIntegration:
    """Monday.com GraphQL API integration for onboarding items."""

    def __init__(self):
        self.api_token = os.getenv("MONDAY_API_TOKEN")
        self.board_id = os.getenv("MONDAY_BOARD_ID")
        self.api_url = MONDAY_API_URL

    def is_configured(self) -> bool:
        return bool(self.api_token and self.board_id)

    async def create_application_item(
        self,
        app_id: str,
        business_name: str,
        owner_name: str,
        created_at: str,
    ) -> Optional[str]:
        """
        Create a board item for the application.

        Returns: the new item ID, or None when Monday is not configured.
        Raises: CRMError on HTTP or GraphQL failure.
        """
        if not self.is_configured():
            logger.warning("Monday: MONDAY_API_TOKEN / MONDAY_BOARD_ID not set - item skipped")
            return None

        payload = {
            "query": CREATE_ITEM_MUTATION,
            "variables": {
                "boardId": str(self.board_id),
                "itemName": build_item_name(business_name, app_id),
                "columnValues": json.dumps({
                    "app_id": app_id,
                    "business": business_name,
                    "owner": owner_name,
                    "created_at": created_at,
                }),
            },
        }
        headers = {
            "Authorization": self.api_token,
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(self.api_url, json=payload, headers=headers, timeout=15.0)
        except httpx.TimeoutException as e:
            raise CRMError("Monday API timeout") from e
        except httpx.HTTPError as e:
            raise CRMError(f"Monday API request failed: {e}") from e

        if response.status_code != 200:
            raise CRMError(f"Monday API error {response.status_code}: {response.text[:300]}")

        data = response.json()
        if data.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in data["errors"])
            raise CRMError(f"Monday GraphQL error: {messages}")

        item = (data.get("data") or {}).get("create_item") or {}
        item_id = item.get("id")
        if not item_id:
            raise CRMError("Monday response did not include an item id")

        logger.info(f"Monday: item {item_id} created for {app_id}")
        return str(item_id)


# Singleton instance
monday_integration = MondayIntegration()
