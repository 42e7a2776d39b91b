"""Mail source interface and MIME payload helpers.

Messages are exposed as Gmail-style payload trees: each node has a
``mimeType``, optional ``headers`` (list of ``{"name", "value"}``), a
``body`` with base64url ``data``, and nested ``parts``.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from bs4 import BeautifulSoup, Comment

BLOCK_TAGS = ["p", "div", "tr", "li", "table", "h1", "h2", "h3", "h4", "h5", "h6"]


@dataclass(frozen=True)
class MessageRef:
    """Handle to a message in the source."""

    id: str


@dataclass(frozen=True)
class MailMessage:
    """A fetched message."""

    id: str
    headers: dict[str, str]
    payload: dict[str, Any]
    snippet: str
    received_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def subject(self) -> str:
        return self.headers.get("Subject", "No Subject")

    @property
    def text(self) -> str:
        """Body text for rule matching: the plain-text body, else the snippet."""
        return extract_body_text(self.payload) or self.snippet


class MailSource(ABC):
    """Where bank notification emails come from."""

    @abstractmethod
    def search(self, query: str, max_results: int = 10) -> list[MessageRef]:
        """List unconsumed messages matching a source-side query.

        Raises:
            SourceAuthError: If the source rejects our credentials
            MailSourceError: If the listing fails
        """
        pass

    @abstractmethod
    def fetch(self, ref: MessageRef) -> MailMessage:
        """Fetch a message's full content.

        Raises:
            MailSourceError: If the message cannot be fetched
        """
        pass

    @abstractmethod
    def mark_consumed(self, ref: MessageRef) -> None:
        """Mark a message processed so later searches skip it."""
        pass


def decode_base64url(data: str) -> str:
    """Decode base64url text, tolerating missing padding."""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def encode_base64url(text: str | bytes) -> str:
    """Encode text as unpadded base64url."""
    raw = text.encode("utf-8") if isinstance(text, str) else text
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _find_part(payload: dict[str, Any], mime_type: str) -> Optional[str]:
    if payload.get("mimeType", "").lower() == mime_type:
        data = (payload.get("body") or {}).get("data")
        if data:
            return decode_base64url(data)
    for part in payload.get("parts") or []:
        found = _find_part(part, mime_type)
        if found:
            return found
    return None


def html_to_text(markup: str) -> str:
    """Readable text of an HTML body, one line per block element.

    Comments (including Outlook conditional blocks) and script/style content
    are dropped, so hidden text never reaches the extraction rules.
    """
    soup = BeautifulSoup(markup, "html.parser")
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for cell in soup.find_all(["td", "th"]):
        cell.append(" ")
    for block in soup.find_all(BLOCK_TAGS):
        block.append("\n")

    text = soup.get_text()
    return "\n".join(" ".join(line.split()) for line in text.splitlines() if line.strip())


def extract_body_text(payload: dict[str, Any]) -> str:
    """Extract readable text from a payload tree.

    The first text/plain part (depth-first) wins; a text/html part is used,
    stripped of tags, only when there is no plain-text part.
    """
    if not payload:
        return ""
    plain = _find_part(payload, "text/plain")
    if plain:
        return plain.strip()
    markup = _find_part(payload, "text/html")
    if markup:
        return html_to_text(markup)
    return ""


def headers_to_dict(headers: list[dict[str, str]]) -> dict[str, str]:
    """Flatten a payload header list; the first occurrence of a name wins."""
    result: dict[str, str] = {}
    for header in headers or []:
        name = header.get("name")
        if name and name not in result:
            result[name] = header.get("value", "")
    return result
