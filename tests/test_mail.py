"""Tests for mail payload helpers and the IMAP mail source."""

import email
import imaplib
import pytest
from datetime import datetime
from decimal import Decimal

from networth.domain.errors import MailSourceError, SourceAuthError
from networth.domain.ingestion import IngestionOrchestrator
from networth.mail.base import (
    MailMessage,
    MessageRef,
    decode_base64url,
    encode_base64url,
    extract_body_text,
    headers_to_dict,
    html_to_text,
)
from networth.mail.imap import ImapConfig, ImapMailSource, message_to_payload

RAW_MESSAGE = (
    b"From: avisos@visa.es\r\n"
    b"To: me@example.com\r\n"
    b"Subject: Compra con tarjeta\r\n"
    b"Date: Fri, 01 Mar 2024 10:00:00 +0100\r\n"
    b"Message-ID: <abc123@visa.es>\r\n"
    b"MIME-Version: 1.0\r\n"
    b'Content-Type: multipart/alternative; boundary="XX"\r\n'
    b"\r\n"
    b"--XX\r\n"
    b'Content-Type: text/plain; charset="utf-8"\r\n'
    b"\r\n"
    b"Compra por importe de 12,34 EUR en CAFE con tu tarjeta\r\n"
    b"--XX\r\n"
    b'Content-Type: text/html; charset="utf-8"\r\n'
    b"\r\n"
    b"<p>HTML version</p>\r\n"
    b"--XX--\r\n"
)


def _part(mime_type, text=None, parts=None):
    node = {"mimeType": mime_type, "body": {}, "parts": parts or []}
    if text is not None:
        node["body"] = {"data": encode_base64url(text)}
    return node


class TestPayloadHelpers:
    """Tests for Gmail-style payload tree handling."""

    def test_base64url_without_padding(self):
        """Unpadded base64url decodes."""
        assert decode_base64url(encode_base64url("ñandú €")) == "ñandú €"
        assert decode_base64url("aGk") == "hi"

    def test_plain_text_preferred(self):
        """text/plain wins over text/html anywhere in the tree."""
        payload = _part(
            "multipart/mixed",
            parts=[
                _part("text/html", "<b>html</b>"),
                _part("multipart/alternative", parts=[_part("text/plain", "plain body\n")]),
            ],
        )
        assert extract_body_text(payload) == "plain body"

    def test_html_fallback(self):
        """Without text/plain the HTML is stripped of tags."""
        payload = _part(
            "multipart/alternative",
            parts=[_part("text/html", "<style>p{}</style><p>Importe:&nbsp;<b>5,00</b></p><p>Fin</p>")],
        )
        assert extract_body_text(payload) == "Importe: 5,00\nFin"

    def test_empty_payload(self):
        """Nothing readable yields an empty string."""
        assert extract_body_text({}) == ""
        assert extract_body_text(_part("image/png")) == ""

    def test_html_to_text_line_breaks(self):
        """Block tags and <br> become line breaks; inline tags do not."""
        assert html_to_text("<div>a<br/>b</div>c") == "a\nb\nc"
        assert html_to_text("<p>Compra de <b>5,00</b> EUR</p>") == "Compra de 5,00 EUR"

    def test_html_to_text_drops_comments(self):
        """Text inside comments and conditional blocks is not part of the body."""
        markup = "<p>Purchase of 12,00 EUR</p><!--[if mso]><p>Purchase of 999,00 EUR</p><![endif]-->"
        assert html_to_text(markup) == "Purchase of 12,00 EUR"

    def test_html_to_text_table_cells(self):
        """Cells in one row share a line."""
        markup = "<table><tr><td>Importe</td><td>7,50 EUR</td></tr><tr><td>Fin</td></tr></table>"
        assert html_to_text(markup) == "Importe 7,50 EUR\nFin"

    def test_headers_to_dict_first_wins(self):
        """Repeated headers keep their first value."""
        headers = [
            {"name": "Subject", "value": "one"},
            {"name": "Subject", "value": "two"},
            {"name": "From", "value": "bank"},
        ]
        assert headers_to_dict(headers) == {"Subject": "one", "From": "bank"}

    def test_message_text_falls_back_to_snippet(self):
        """A message with no readable body exposes its snippet."""
        message = MailMessage(
            id="1",
            headers={},
            payload=_part("image/png"),
            snippet="importe de 1,00 EUR",
            received_at=datetime(2024, 1, 1),
        )
        assert message.text == "importe de 1,00 EUR"
        assert message.subject == "No Subject"

    def test_message_to_payload(self):
        """Parsed MIME messages become payload trees."""
        msg = email.message_from_bytes(RAW_MESSAGE)
        payload = message_to_payload(msg)

        assert payload["mimeType"] == "multipart/alternative"
        assert [p["mimeType"] for p in payload["parts"]] == ["text/plain", "text/html"]
        assert extract_body_text(payload).startswith("Compra por importe de 12,34 EUR")


class FakeIMAP:
    """Stand-in for imaplib.IMAP4_SSL."""

    instances = []

    def __init__(self, server, port):
        self.server = server
        self.port = port
        self.stored = []
        self.closed = False
        FakeIMAP.instances.append(self)

    def login(self, username, password):
        if password == "wrong":
            raise imaplib.IMAP4.error("AUTHENTICATIONFAILED")
        return "OK", [b"Logged in"]

    def select(self, mailbox):
        return "OK", [b"3"]

    def uid(self, command, *args):
        if command == "SEARCH":
            return "OK", [b"101 102 103"]
        if command == "FETCH":
            return "OK", [(b"101 (UID 101 BODY[] {%d}" % len(RAW_MESSAGE), RAW_MESSAGE), b")"]
        if command == "STORE":
            self.stored.append(args)
            return "OK", [b""]
        raise AssertionError(f"unexpected command {command}")

    def shutdown(self):
        self.closed = True

    def close(self):
        pass

    def logout(self):
        self.closed = True


@pytest.fixture
def fake_imap(monkeypatch):
    FakeIMAP.instances = []
    monkeypatch.setattr(imaplib, "IMAP4_SSL", FakeIMAP)
    return FakeIMAP


def _config(password="secret"):
    return ImapConfig(server="imap.example.com", port=993, username="me@example.com", password=password)


class TestImapMailSource:
    """Tests for the IMAP mail source."""

    def test_search_returns_newest(self, fake_imap):
        """Only the newest max_results UIDs are returned."""
        with ImapMailSource(_config()) as source:
            refs = source.search('FROM "avisos@visa.es" UNSEEN', max_results=2)
        assert refs == [MessageRef(id="102"), MessageRef(id="103")]
        assert fake_imap.instances[0].closed

    def test_fetch_builds_message(self, fake_imap):
        """Fetched messages carry Message-ID, UTC timestamp and body text."""
        source = ImapMailSource(_config())
        message = source.fetch(MessageRef(id="101"))

        assert message.id == "<abc123@visa.es>"
        assert message.subject == "Compra con tarjeta"
        assert message.received_at == datetime(2024, 3, 1, 9, 0)
        assert "importe de 12,34 EUR" in message.text
        assert message.metadata == {"uid": "101", "mailbox": "INBOX"}

    def test_mark_consumed_sets_seen(self, fake_imap):
        """Consuming a message sets its \\Seen flag."""
        source = ImapMailSource(_config())
        source.mark_consumed(MessageRef(id="101"))
        assert fake_imap.instances[0].stored == [("101", "+FLAGS", "(\\Seen)")]

    def test_login_failure_is_source_auth_error(self, fake_imap):
        """Rejected credentials raise SourceAuthError."""
        source = ImapMailSource(_config(password="wrong"))
        with pytest.raises(SourceAuthError):
            source.search("UNSEEN")
        assert source.connection is None

    def test_unreachable_server(self, monkeypatch):
        """Connection failures raise MailSourceError."""

        def refuse(server, port):
            raise ConnectionRefusedError("refused")

        monkeypatch.setattr(imaplib, "IMAP4_SSL", refuse)
        with pytest.raises(MailSourceError):
            ImapMailSource(_config()).connect()


def _purchase_message(uid):
    return (
        b"From: avisos@visa.es\r\n"
        b"Subject: Compra con tarjeta\r\n"
        b"Date: Fri, 01 Mar 2024 10:00:00 +0100\r\n"
        b"Message-ID: <" + uid.encode() + b"@visa.es>\r\n"
        b"Content-Type: text/plain; charset=\"utf-8\"\r\n"
        b"\r\n"
        b"Compra por importe de 5,00 EUR en CAFE con tu tarjeta\r\n"
    )


class ResettingIMAP(FakeIMAP):
    """Server whose connection resets while fetching selected UIDs."""

    reset_uids = set()

    def uid(self, command, *args):
        if command == "SEARCH":
            return "OK", [b"1 2"]
        if command == "FETCH":
            uid = args[0]
            if uid in ResettingIMAP.reset_uids:
                ResettingIMAP.reset_uids.discard(uid)
                raise ConnectionResetError("connection reset by peer")
            raw = _purchase_message(uid)
            return "OK", [(b"%s (UID %s BODY[] {%d}" % (uid.encode(), uid.encode(), len(raw)), raw), b")"]
        return super().uid(command, *args)


@pytest.fixture
def resetting_imap(monkeypatch):
    FakeIMAP.instances = []
    ResettingIMAP.reset_uids = {"1"}
    monkeypatch.setattr(imaplib, "IMAP4_SSL", ResettingIMAP)
    return ResettingIMAP


class TestImapConnectionLoss:
    """Tests for recovering from dropped IMAP connections."""

    def test_reset_during_fetch_reconnects(self, resetting_imap):
        """A reset surfaces as MailSourceError and the next call opens a new connection."""
        source = ImapMailSource(_config())

        with pytest.raises(MailSourceError):
            source.fetch(MessageRef(id="1"))
        assert source.connection is None
        assert FakeIMAP.instances[0].closed

        message = source.fetch(MessageRef(id="2"))
        assert message.id == "<2@visa.es>"
        assert len(FakeIMAP.instances) == 2

    def test_reset_during_search(self, monkeypatch):
        """Socket errors on search are reported as MailSourceError."""

        class DroppingIMAP(FakeIMAP):
            def uid(self, command, *args):
                raise TimeoutError("timed out")

        FakeIMAP.instances = []
        monkeypatch.setattr(imaplib, "IMAP4_SSL", DroppingIMAP)
        source = ImapMailSource(_config())

        with pytest.raises(MailSourceError):
            source.search("UNSEEN")
        with pytest.raises(MailSourceError):
            source.mark_consumed(MessageRef(id="1"))
        assert source.connection is None
        assert len(FakeIMAP.instances) == 2

    def test_pass_continues_after_reset(self, resetting_imap, temp_db, card_rule, credit_card_account):
        """One reset costs one message; the rest of the pass still applies."""
        orchestrator = IngestionOrchestrator(temp_db, ImapMailSource(_config()), [card_rule])

        result = orchestrator.run_pass()

        assert result.failed_count == 1
        assert result.applied_count == 1
        assert temp_db.get_account(credit_card_account.id).balance == Decimal("5.00")
        stored = [args for instance in FakeIMAP.instances for args in instance.stored]
        assert stored == [("2", "+FLAGS", "(\\Seen)")]
