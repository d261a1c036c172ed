"""Transport adapters for the mail provider and the chat channel."""

from .gmail_client import GmailClient, extract_text_body
from .twilio_client import TwilioGateway, to_whatsapp_address

__all__ = ["GmailClient", "TwilioGateway", "extract_text_body", "to_whatsapp_address"]
