"""Inbox Relay: email triage and drafting over WhatsApp."""

__version__ = "0.1.0"
