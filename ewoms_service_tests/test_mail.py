import smtplib
from unittest.mock import MagicMock, patch

import pytest

from ewoms_service.config import settings
from ewoms_service.utils.mail import (
    MailError,
    generate_numeric_code,
    render_code_email,
    send_code_email,
    send_email,
)


def test_generate_numeric_code():
    code = generate_numeric_code()
    assert len(code) == 6
    assert code.isdigit()


def test_render_code_email():
    html = render_code_email("123456")
    assert "123456" in html
    assert "5分钟" in html


def test_send_without_smtp_only_logs():
    with patch("ewoms_service.utils.mail.smtplib.SMTP") as smtp:
        send_code_email("a@example.com", "654321")
    smtp.assert_not_called()


def test_send_over_smtp(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_USERNAME", "noreply@example.com")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "secret")
    conn = MagicMock()
    with patch("ewoms_service.utils.mail.smtplib.SMTP") as smtp:
        smtp.return_value.__enter__.return_value = conn
        send_email("a@example.com", "", "<p>hi</p>")

    conn.starttls.assert_called_once()
    conn.login.assert_called_once_with("noreply@example.com", "secret")
    message = conn.send_message.call_args[0][0]
    assert message["To"] == "a@example.com"
    assert message["Subject"] == settings.MAIL_SUBJECT


def test_smtp_failure_raises_mail_error(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_USERNAME", "noreply@example.com")
    with patch("ewoms_service.utils.mail.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, b"busy")):
        with pytest.raises(MailError):
            send_email("a@example.com", "subject", "<p>hi</p>")
