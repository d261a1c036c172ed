"""Ingestion pipeline components."""

from .poller import MailPoller

__all__ = ["MailPoller"]
