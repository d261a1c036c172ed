"""Chat replies sent by the conversation engine."""

from __future__ import annotations

from collections.abc import Sequence

from ..core.models import Contact, EmailMetadata

DRAFT_FOOTER = 'Reply "Send" to send, or type feedback to revise.'

LINK_PENDING = (
    "I don't see your email connected yet. Please click the link and authorize "
    "access, then reply 'done'."
)
LINK_REPROMPT = "Please click the link above to connect your Gmail, then reply 'done'."
SCANNING = (
    "✅ Email connected! Now I'm scanning your inbox to learn your preferences "
    "and writing style... 🕵️‍♂️\n\nThis will take just a moment."
)
PROMO_MENU = """I've analyzed your email style! 📝

Now, let's set up your notifications.

How do you want to handle *Promotional* emails (ads, newsletters)?

1️⃣ Weekly Digest (Recommended)
2️⃣ Daily Digest
3️⃣ Never
4️⃣ Immediate (Not recommended)

Reply with the number."""
PROMO_REPROMPT = "Please reply with 1, 2, 3, or 4."
SCHEDULE_MENU = """Got it!

Now for *Work* and *Personal* emails.

I'll send you summaries at *9:00 AM* and *5:00 PM* daily.

Is this okay?
1️⃣ Yes, perfect
2️⃣ No, customize times

Reply with 1 or 2."""
CUSTOM_SCHEDULE_UNSUPPORTED = (
    "Okay! For now I'll stick to the defaults, but you can change them in "
    "settings later. (Custom scheduling coming soon!)"
)
ONBOARDING_COMPLETE = """🎉 *You're all set!*

I've learned your writing style and set up your notifications.

*What I can do:*
📧 *Summaries*: I'll send you digests at 9am & 5pm.
✍️ *Compose*: Just say "compose" and tell me who to write to.
↩️ *Reply*: Say "reply" to answer the last email I told you about.

Try sending me a voice note to draft an email! 🎤"""

ASK_RECIPIENT = "Who would you like to email? (Type a name or email address)"
ASK_BODY = "What would you like to say? (You can send a voice note 🎤)"
CONTACT_LOOKUP_FAILED = (
    "I couldn't look up your contacts right now. Please type an email address."
)
TRANSCRIBING = "Transcribing your voice note..."
VOICE_FAILED = "Sorry, I failed to process your voice note. Please type your message."
DRAFT_FAILED = "Sorry, I couldn't write that draft. Please try again."
REVISION_FAILED = "Sorry, I couldn't revise the draft. Please try again."
SENT = "Email sent! 🚀"
SEND_FAILED = "Failed to send email. Please try again."
NOTHING_TO_REPLY = "I can't find any recent emails to reply to."


def welcome(link_url: str) -> str:
    return (
        "👋 Welcome to Inbox Relay!\n\n"
        "I'm your intelligent email assistant. I'll help you manage your emails "
        "directly from WhatsApp.\n\n"
        "To get started, I need to connect to your email account.\n\n"
        f"Click this link to connect your Gmail:\n{link_url}\n\n"
        'Reply "done" when you\'ve connected your account.'
    )


def drafting_to(recipient: str, contact: Contact | None = None) -> str:
    target = f"{contact.name} ({contact.email})" if contact else recipient
    return f"Drafting email to {target}.\n\n{ASK_BODY}"


def no_contacts(query: str) -> str:
    return (
        f'No contacts found for "{query}". Please try again or type an email address.'
    )


def multiple_contacts(contacts: Sequence[Contact]) -> str:
    listing = "\n".join(
        f"{index}. {contact.name} ({contact.email})"
        for index, contact in enumerate(contacts[:3], start=1)
    )
    return f"Found multiple contacts:\n{listing}\n\nPlease type the email address to confirm."


def replying_to(email: EmailMetadata) -> str:
    return (
        f"Replying to {email.sender} (Re: {email.subject}).\n\n"
        "What would you like to say?"
    )


def draft_preview(subject: str, body: str, *, revised: bool = False) -> str:
    heading = "Revised draft:" if revised else "Here is your draft:"
    return f"{heading}\n\nSubject: {subject}\n\n{body}\n\n{DRAFT_FOOTER}"


def help_text(message: str) -> str:
    return (
        f'I received your message: "{message}"\n\n'
        'Type "compose" to start a new email or "reply" to respond to the last email.'
    )
