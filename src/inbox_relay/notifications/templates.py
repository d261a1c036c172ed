"""Chat message templates for notifications and digests."""

from __future__ import annotations

from collections.abc import Sequence

from inbox_relay.core.models import Category, EmailMetadata


def render_notification(category: Category, email: EmailMetadata) -> str:
    """Render the message announcing a single email."""
    lines = [
        f"📧 *New Email from {category.display_name}*",
        f"From: {email.sender}",
        f"Subject: {email.subject}",
    ]
    if email.summary:
        lines.extend(["", email.summary])
    lines.extend(["", 'Reply "Read" to mark as read or "Reply" to respond.'])
    return "\n".join(lines)


def render_digest(category: Category, emails: Sequence[EmailMetadata]) -> str:
    """Render one digest message: a title line and one bullet per email."""
    bullets = []
    for email in emails:
        bullet = f"• *{email.sender}*: {email.subject or '(no subject)'}"
        if email.summary and email.summary != email.subject:
            bullet += f" — {email.summary}"
        bullets.append(bullet)
    return "\n".join([f"*{category.display_name} Digest* 📨", "", *bullets])


__all__ = ["render_digest", "render_notification"]
