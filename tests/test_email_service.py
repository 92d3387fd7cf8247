import pytest

from marketplace.services import email_service


def test_render_otp_email_escapes_name():
    body = email_service.render_otp_email("<b>Asha</b>", "123456")
    assert "&lt;b&gt;Asha&lt;/b&gt;" in body
    assert "123456" in body
    assert "valid for 10 minutes" in body


async def test_send_otp_email_builds_message(monkeypatch):
    sent = []

    async def fake_send(message, **kwargs):
        sent.append((message, kwargs))

    monkeypatch.setattr(email_service.aiosmtplib, "send", fake_send)
    await email_service.send_otp_email("asha@marketplace.io", "Asha", "654321")

    message, kwargs = sent[0]
    assert message["To"] == "asha@marketplace.io"
    assert message["Subject"] == "Password Reset OTP"
    assert "654321" in message.get_content()
    assert kwargs["start_tls"] is True


async def test_send_email_propagates_smtp_failure(monkeypatch):
    async def failing_send(message, **kwargs):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(email_service.aiosmtplib, "send", failing_send)
    with pytest.raises(ConnectionRefusedError):
        await email_service.send_email("asha@marketplace.io", "Hi", "<p>x</p>")
