"""Tests for outbound transports."""
import smtplib
from unittest.mock import MagicMock

import pytest

from src import settings
from src.errors import DeliveryFailure
from src.mailer import DryRunTransport, SmtpTransport, build_transport


@pytest.fixture
def smtp(monkeypatch) -> MagicMock:
    factory = MagicMock()
    monkeypatch.setattr("src.mailer.smtplib.SMTP", factory)
    return factory.return_value.__enter__.return_value


def make_transport(attachment_path: str = "") -> SmtpTransport:
    return SmtpTransport(host="smtp.test", port=2525, user="me@example.com",
                         password="secret", attachment_path=attachment_path, timeout=5)


class TestSmtpTransport:
    def test_sends_html_message(self, smtp) -> None:
        make_transport().send("you@example.com", "Hello", "<p>Hi</p>")

        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("me@example.com", "secret")
        message = smtp.send_message.call_args.args[0]
        assert message["To"] == "you@example.com"
        assert message["From"] == "me@example.com"
        assert message["Subject"] == "Hello"
        assert "<p>Hi</p>" in message.get_body(preferencelist=("html",)).get_content()

    def test_attaches_file(self, smtp, tmp_path) -> None:
        resume = tmp_path / "resume.pdf"
        resume.write_bytes(b"%PDF-1.4 test")

        make_transport(str(resume)).send("you@example.com", "Hello", "<p>Hi</p>")

        message = smtp.send_message.call_args.args[0]
        attachments = list(message.iter_attachments())
        assert [a.get_filename() for a in attachments] == ["resume.pdf"]

    def test_missing_attachment_still_sends(self, smtp, tmp_path) -> None:
        make_transport(str(tmp_path / "missing.pdf")).send("you@example.com", "Hello", "<p>Hi</p>")

        message = smtp.send_message.call_args.args[0]
        assert list(message.iter_attachments()) == []

    def test_smtp_error_becomes_delivery_failure(self, smtp) -> None:
        smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused({"you@example.com": (550, b"no")})
        with pytest.raises(DeliveryFailure):
            make_transport().send("you@example.com", "Hello", "<p>Hi</p>")

    def test_connection_error_becomes_delivery_failure(self, monkeypatch) -> None:
        monkeypatch.setattr("src.mailer.smtplib.SMTP", MagicMock(side_effect=ConnectionRefusedError()))
        with pytest.raises(DeliveryFailure):
            make_transport().send("you@example.com", "Hello", "<p>Hi</p>")


class TestBuildTransport:
    def test_dry_run(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "DRY_RUN", True)
        transport = build_transport()
        assert isinstance(transport, DryRunTransport)
        assert transport.dry_run is True
        transport.send("you@example.com", "Hello", "<p>Hi</p>")

    def test_smtp(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "DRY_RUN", False)
        transport = build_transport()
        assert isinstance(transport, SmtpTransport)
        assert transport.dry_run is False
