"""IMAP mail source.

Searches a mailbox with IMAP criteria strings (e.g. ``UNSEEN FROM
"notifications@bank.com"``), fetches messages without marking them read,
and marks a message consumed by setting the ``\\Seen`` flag.
"""

import email
import email.message
import email.policy
import email.utils
import imaplib
import logging
from dataclasses import dataclass
from typing import Any, Optional

from networth.domain.errors import MailSourceError, SourceAuthError
from networth.mail.base import (
    MailMessage,
    MailSource,
    MessageRef,
    encode_base64url,
    extract_body_text,
    headers_to_dict,
)
from networth.utils.date_parser import to_utc_naive, utc_now

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200


@dataclass
class ImapConfig:
    """Configuration for IMAP access."""

    server: str
    port: int
    username: str
    password: str
    mailbox: str = "INBOX"


def message_to_payload(msg: email.message.Message) -> dict[str, Any]:
    """Convert a parsed email message into a payload tree."""
    node: dict[str, Any] = {
        "mimeType": msg.get_content_type(),
        "headers": [{"name": name, "value": str(value)} for name, value in msg.items()],
        "body": {},
        "parts": [],
    }
    if msg.is_multipart():
        node["parts"] = [message_to_payload(part) for part in msg.get_payload()]
    else:
        raw = msg.get_payload(decode=True) or b""
        charset = msg.get_content_charset() or "utf-8"
        try:
            text = raw.decode(charset, errors="replace")
        except LookupError:
            text = raw.decode("utf-8", errors="replace")
        node["body"] = {"data": encode_base64url(text), "size": len(raw)}
    return node


class ImapMailSource(MailSource):
    """Mail source backed by an IMAP4-over-SSL mailbox."""

    def __init__(self, config: ImapConfig):
        self.config = config
        self.connection: Optional[imaplib.IMAP4_SSL] = None

    def __enter__(self) -> "ImapMailSource":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def connect(self) -> None:
        """Connect, log in and select the mailbox.

        Raises:
            SourceAuthError: If the server rejects the credentials
            MailSourceError: If the server cannot be reached
        """
        if self.connection is not None:
            return

        logger.info(f"Connecting to IMAP server: {self.config.server}:{self.config.port}")
        try:
            connection = imaplib.IMAP4_SSL(self.config.server, self.config.port)
        except OSError as e:
            raise MailSourceError(f"Cannot reach IMAP server {self.config.server}: {e}")

        try:
            connection.login(self.config.username, self.config.password)
        except imaplib.IMAP4.error as e:
            connection.shutdown()
            raise SourceAuthError(f"IMAP login failed for {self.config.username}: {e}")

        result, _ = connection.select(self.config.mailbox)
        if result != "OK":
            connection.logout()
            raise MailSourceError(f"Cannot select mailbox '{self.config.mailbox}'")

        self.connection = connection
        logger.info("Successfully connected to IMAP server")

    def disconnect(self) -> None:
        """Disconnect from IMAP server."""
        if self.connection is None:
            return
        try:
            self.connection.close()
            self.connection.logout()
            logger.info("Disconnected from IMAP server")
        except (imaplib.IMAP4.error, OSError) as e:
            logger.warning(f"Error during disconnect: {e}")
        finally:
            self.connection = None

    def _require_connection(self) -> imaplib.IMAP4_SSL:
        if self.connection is None:
            self.connect()
        return self.connection

    def _drop_connection(self, error: Exception) -> None:
        """Forget a connection the server dropped so the next call reconnects."""
        logger.warning(f"IMAP connection lost: {error}")
        connection, self.connection = self.connection, None
        try:
            connection.shutdown()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"Error shutting down dropped connection: {e}")

    def search(self, query: str, max_results: int = 10) -> list[MessageRef]:
        """List the most recent messages matching an IMAP search string."""
        connection = self._require_connection()
        try:
            result, data = connection.uid("SEARCH", None, query)
        except (imaplib.IMAP4.abort, OSError) as e:
            self._drop_connection(e)
            raise MailSourceError(f"IMAP search '{query}' failed: {e}")
        except imaplib.IMAP4.error as e:
            raise MailSourceError(f"IMAP search '{query}' failed: {e}")
        if result != "OK":
            raise MailSourceError(f"IMAP search '{query}' failed: {result}")

        uids = data[0].split() if data and data[0] else []
        # UIDs ascend with arrival; keep the newest batch, oldest first
        selected = uids[-max_results:] if max_results else uids
        logger.debug(f"IMAP search '{query}' matched {len(uids)} message(s)")
        return [MessageRef(id=uid.decode()) for uid in selected]

    def fetch(self, ref: MessageRef) -> MailMessage:
        """Fetch a message without setting its \\Seen flag."""
        connection = self._require_connection()
        try:
            result, data = connection.uid("FETCH", ref.id, "(BODY.PEEK[])")
        except (imaplib.IMAP4.abort, OSError) as e:
            self._drop_connection(e)
            raise MailSourceError(f"Cannot fetch message {ref.id}: {e}")
        except imaplib.IMAP4.error as e:
            raise MailSourceError(f"Cannot fetch message {ref.id}: {e}")
        if result != "OK" or not data or not isinstance(data[0], tuple):
            raise MailSourceError(f"Cannot fetch message {ref.id}: {result}")

        msg = email.message_from_bytes(data[0][1], policy=email.policy.compat32)
        payload = message_to_payload(msg)
        headers = headers_to_dict(payload["headers"])

        received_at = utc_now()
        if msg.get("Date"):
            try:
                received_at = to_utc_naive(email.utils.parsedate_to_datetime(msg["Date"]))
            except (TypeError, ValueError):
                logger.debug(f"Unparsable Date header on message {ref.id}: {msg['Date']}")

        body = extract_body_text(payload)
        snippet = " ".join(body.split())[:SNIPPET_LENGTH]

        # Message-ID survives moves between folders; the UID does not
        message_id = (msg.get("Message-ID") or "").strip() or f"imap-uid:{ref.id}"
        return MailMessage(
            id=message_id,
            headers=headers,
            payload=payload,
            snippet=snippet,
            received_at=received_at,
            metadata={"uid": ref.id, "mailbox": self.config.mailbox},
        )

    def mark_consumed(self, ref: MessageRef) -> None:
        """Set the \\Seen flag so UNSEEN searches skip the message."""
        connection = self._require_connection()
        try:
            result, _ = connection.uid("STORE", ref.id, "+FLAGS", "(\\Seen)")
        except (imaplib.IMAP4.abort, OSError) as e:
            self._drop_connection(e)
            raise MailSourceError(f"Cannot mark message {ref.id} as read: {e}")
        except imaplib.IMAP4.error as e:
            raise MailSourceError(f"Cannot mark message {ref.id} as read: {e}")
        if result != "OK":
            raise MailSourceError(f"Cannot mark message {ref.id} as read: {result}")
