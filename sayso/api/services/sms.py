"""
SMS delivery for claim verification codes.
"""

import logging
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class SmsDeliveryError(Exception):
    """Raised when the SMS provider rejects or fails a send."""


class SmsSender(Protocol):
    def send(self, to: str, body: str) -> None:
        ...


class TwilioSmsSender:
    """Sends messages through the Twilio Messages REST API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        api_base: str = "https://api.twilio.com",
        timeout: float = 10.0,
    ):
        self.account_sid = account_sid
        self.from_number = from_number
        self._url = f"{api_base.rstrip('/')}/2010-04-01/Accounts/{account_sid}/Messages.json"
        self._auth = (account_sid, auth_token)
        self._timeout = timeout

    def send(self, to: str, body: str) -> None:
        try:
            response = httpx.post(
                self._url,
                data={"To": to, "From": self.from_number, "Body": body},
                auth=self._auth,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SmsDeliveryError(
                f"SMS provider returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise SmsDeliveryError(f"SMS provider unreachable: {e}") from e

        logger.info(f"SMS sent to {mask_phone(to)}")


class LoggingSmsSender:
    """Development sender: logs instead of delivering."""

    def __init__(self):
        self.sent = []

    def send(self, to: str, body: str) -> None:
        self.sent.append((to, body))
        logger.warning(f"SMS provider not configured; message to {mask_phone(to)} not delivered")


def mask_phone(phone: Optional[str]) -> str:
    """Keep the last three digits: ``+27821234567`` -> ``*** *** *567``."""
    digits = "".join(ch for ch in (phone or "") if ch.isdigit())
    if len(digits) < 3:
        return "***"
    return f"*** *** *{digits[-3:]}"
