"""Contact lookup built from the recipients of a user's sent mail."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from email.utils import getaddresses

from ..core.interfaces import MailProvider, Repository
from ..core.models import Contact

LOGGER = logging.getLogger(__name__)


class ContactService:
    """Search recipients the user has written to before."""

    def __init__(
        self,
        repository: Repository,
        mail_provider: MailProvider,
        *,
        scan_limit: int = 50,
    ) -> None:
        self._repository = repository
        self._mail_provider = mail_provider
        self._scan_limit = scan_limit

    def search_contacts(self, user_id: int, query: str) -> list[Contact]:
        """Return contacts whose name or address contains ``query``, most used first."""
        account = self._repository.get_email_account(user_id)
        if account is None:
            return []
        sent = self._mail_provider.scan_sent_emails(account, self._scan_limit)
        contacts = collect_contacts(item.to for item in sent)
        needle = query.strip().lower()
        matches = [
            contact
            for contact in contacts
            if needle in contact.name.lower() or needle in contact.email.lower()
        ]
        LOGGER.debug("Found %s contact(s) matching %r", len(matches), query)
        return matches


def collect_contacts(to_headers: Iterable[str]) -> list[Contact]:
    """Parse ``To`` headers into contacts ordered by descending frequency."""
    contacts: dict[str, Contact] = {}
    for header in to_headers:
        if not header:
            continue
        for name, address in getaddresses([header]):
            address = address.strip()
            if not address:
                continue
            key = address.lower()
            contact = contacts.get(key)
            if contact is None:
                contact = Contact(
                    name=name.strip() or address.split("@")[0],
                    email=address,
                )
                contacts[key] = contact
            contact.frequency += 1
    return sorted(contacts.values(), key=lambda item: item.frequency, reverse=True)


__all__ = ["ContactService", "collect_contacts"]
