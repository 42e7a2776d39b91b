"""Mail sources for bank notification emails."""

from networth.mail.base import MailMessage, MailSource, MessageRef, extract_body_text
from networth.mail.imap import ImapConfig, ImapMailSource

__all__ = [
    "MailMessage",
    "MailSource",
    "MessageRef",
    "extract_body_text",
    "ImapConfig",
    "ImapMailSource",
]
