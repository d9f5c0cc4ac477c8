"""
WhatsApp gateway client.

Messages are posted to `{WHATSAPP_API_URL}/send/text` with the sending
instance token in the `token` header. Each owner connects their own
instance; system messages use WHATSAPP_SYSTEM_TOKEN.
"""

import logging
import re
from typing import Optional
import httpx
from cobrafacil.core import Settings

logger = logging.getLogger(__name__)


class WhatsAppService:
    """Sends text messages through the WhatsApp HTTP gateway."""

    def __init__(self, api_url: Optional[str] = None, system_token: Optional[str] = None, timeout: float = 30.0):
        self.api_url = (api_url or Settings.WHATSAPP_API_URL or "").rstrip("/")
        self.system_token = system_token or Settings.WHATSAPP_SYSTEM_TOKEN
        self.timeout = timeout

        if not self.api_url:
            logger.warning("WHATSAPP_API_URL not configured; WhatsApp messages will not be sent")

    @staticmethod
    def normalize_phone_number(phone_number: str) -> str:
        """
        Normalize a Brazilian phone number to the gateway format (55DDDNUMBER).

        Examples: "(11) 98765-4321" -> "5511987654321",
                  "011987654321" -> "5511987654321"

        Raises:
            ValueError: If the number has no digits
        """
        cleaned = re.sub(r"\D", "", phone_number or "")
        if not cleaned:
            raise ValueError("Phone number cannot be empty")

        if cleaned.startswith("0"):
            cleaned = cleaned[1:]

        if not cleaned.startswith("55"):
            cleaned = f"55{cleaned}"

        return cleaned

    async def send_text(self, phone_number: str, message: str, instance_token: Optional[str] = None) -> bool:
        """
        Send a text message. Delivery failures are logged and reported as
        False so callers can count them without aborting their own work.
        """
        token = instance_token or self.system_token
        if not self.api_url or not token:
            logger.error("Missing WhatsApp gateway URL or instance token")
            return False

        try:
            normalized = self.normalize_phone_number(phone_number)
        except ValueError as e:
            logger.warning(f"Invalid phone number for WhatsApp message: {e}")
            return False

        logger.info(f"Sending WhatsApp message to {normalized[:6]}...***, length {len(message)} chars")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_url}/send/text",
                    headers={"Content-Type": "application/json", "token": token},
                    json={"phone": normalized, "message": message},
                )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error sending WhatsApp to {normalized[:6]}...***: {e}")
            return False

        if response.is_success:
            logger.info(f"WhatsApp sent to {normalized[:6]}...***: HTTP {response.status_code}")
            return True

        logger.error(f"WhatsApp gateway error: HTTP {response.status_code} - {response.text[:200]}")
        return False


whatsapp_service = WhatsAppService()
