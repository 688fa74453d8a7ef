"""
Transactional email for the claim workflow.

Messages go out through the Resend HTTP API. Without an API key the service
logs and reports success so local development never blocks on email.
"""

import html
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


def _layout(title: str, recipient_name: Optional[str], paragraphs: list) -> str:
    greeting = f"Hi {html.escape(recipient_name)}," if recipient_name else "Hi there,"
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head>"
        "<body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333; "
        "max-width: 600px; margin: 0 auto; padding: 20px;\">"
        f"<h1 style=\"font-size: 22px;\">{html.escape(title)}</h1>"
        f"<p>{greeting}</p>{body}"
        "<p style=\"margin-top: 30px;\">Best regards,<br>The SaySo Team</p>"
        "<p style=\"color: #999; font-size: 12px;\">"
        "This is an automated message. Please do not reply to this email.</p>"
        "</body></html>"
    )


class EmailService:
    """Sends claim-related emails."""

    def __init__(
        self,
        api_key: Optional[str],
        sender: str,
        api_base: str = "https://api.resend.com",
        public_base_url: str = "http://localhost:3000",
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_base = api_base.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout

    def send(self, to: str, subject: str, html_body: str) -> bool:
        """Send one email. Returns False when the provider call fails."""
        if not to:
            return False
        if not self.api_key:
            logger.warning(f"RESEND_API_KEY not configured, skipping email: {subject}")
            return True

        try:
            response = httpx.post(
                f"{self.api_base}/emails",
                json={"from": self.sender, "to": [to], "subject": subject, "html": html_body},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email '{subject}': {e}")
            return False

        logger.info(f"Email sent: {subject}")
        return True

    # Claim workflow messages

    def send_claim_received(self, to: str, name: Optional[str], business_name: str,
                            category: Optional[str], location: Optional[str]) -> bool:
        return self.send(
            to,
            "We received your business claim request",
            _layout("Claim Request Received", name, [
                f"Thank you for submitting a claim request for <strong>{html.escape(business_name)}</strong>.",
                f"Category: {html.escape(category or 'N/A')}<br>Location: {html.escape(location or 'N/A')}",
                "Our team will review it shortly. You'll receive an email once your claim has been reviewed.",
            ]),
        )

    def send_otp_sent(self, to: str, name: Optional[str], business_name: str, masked_phone: str) -> bool:
        return self.send(
            to,
            "Your verification code is on its way",
            _layout("Verification Code Sent", name, [
                f"We sent a verification code to {html.escape(masked_phone)} for your claim on "
                f"<strong>{html.escape(business_name)}</strong>. Enter it in the app to continue. "
                "The code expires in 10 minutes.",
            ]),
        )

    def send_otp_verified(self, to: str, name: Optional[str], business_name: str) -> bool:
        return self.send(
            to,
            "Phone verified - your claim is under review",
            _layout("Phone Verified", name, [
                f"Your phone number has been verified for <strong>{html.escape(business_name)}</strong>.",
                "Your claim is now under review. We'll let you know once it has been processed.",
            ]),
        )

    def send_docs_requested(self, to: str, name: Optional[str], business_name: str, claim_id: str) -> bool:
        url = f"{self.public_base_url}/claim-business?claimId={claim_id}"
        return self.send(
            to,
            "Documents needed to verify your claim",
            _layout("Documents Requested", name, [
                f"To finish verifying your claim on <strong>{html.escape(business_name)}</strong> "
                "we need a letterhead authorization or the first page of your lease.",
                f"<a href=\"{html.escape(url)}\">Upload your document</a>",
            ]),
        )

    def send_docs_received(self, to: str, name: Optional[str], business_name: str) -> bool:
        return self.send(
            to,
            "We received your document",
            _layout("Document Received", name, [
                f"We received your document for <strong>{html.escape(business_name)}</strong>. "
                "Your claim is now under review.",
            ]),
        )

    def send_claim_approved(self, to: str, name: Optional[str], business_name: str, business_id: str) -> bool:
        url = f"{self.public_base_url}/my-businesses/businesses/{business_id}"
        return self.send(
            to,
            f"Your claim for {business_name} has been approved",
            _layout("Claim Approved", name, [
                f"Your claim for <strong>{html.escape(business_name)}</strong> has been approved. "
                "You can now manage the listing.",
                f"<a href=\"{html.escape(url)}\">Go to your dashboard</a>",
            ]),
        )

    def send_claim_rejected(self, to: str, name: Optional[str], business_name: str,
                            reason: Optional[str]) -> bool:
        return self.send(
            to,
            f"Update on your claim for {business_name}",
            _layout("Claim Not Approved", name, [
                f"Your claim for <strong>{html.escape(business_name)}</strong> was not approved.",
                f"Reason: {html.escape(reason)}" if reason else "Contact support for details.",
            ]),
        )
