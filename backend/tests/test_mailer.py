import logging

import pytest
import resend

from notes_app.errors import EmailDeliveryError
from notes_app.mailer import ConsoleMailer, ResendMailer, get_mailer, render_otp_email
from notes_app.models import OtpType


def test_render_otp_email_for_each_type():
    subject, html, text = render_otp_email('123456', OtpType.SIGNUP)
    assert subject == 'Welcome! Verify your account'
    assert '123456' in html and '123456' in text
    assert 'signup' in text
    assert '10 minutes' in text
    subject, _, text = render_otp_email('654321', OtpType.SIGNIN)
    assert subject == 'Sign In Verification'
    assert 'signin' in text


def test_resend_mailer_sends_payload(monkeypatch):
    sent = []

    def fake_send(params):
        sent.append(params)
        return {'id': 'msg-1'}

    monkeypatch.setattr(resend.Emails, 'send', fake_send)
    monkeypatch.setattr(resend, 'api_key', None)
    mailer = ResendMailer('re_test', 'noreply@example.com')
    message_id = mailer.send_otp('ada@example.com', '111222', OtpType.SIGNIN)
    assert message_id == 'msg-1'
    assert resend.api_key == 're_test'
    params = sent[0]
    assert params['from'] == 'noreply@example.com'
    assert params['to'] == ['ada@example.com']
    assert params['subject'] == 'Sign In Verification'
    assert '111222' in params['html']


def test_resend_mailer_wraps_provider_errors(monkeypatch):
    def boom(params):
        raise RuntimeError('provider down')

    monkeypatch.setattr(resend.Emails, 'send', boom)
    monkeypatch.setattr(resend, 'api_key', None)
    with pytest.raises(EmailDeliveryError):
        ResendMailer('re_test', 'noreply@example.com').send_otp('ada@example.com', '111222', OtpType.SIGNUP)


def test_console_mailer_logs_code(caplog):
    with caplog.at_level(logging.WARNING, logger='notes_app.mailer'):
        assert ConsoleMailer().send_otp('ada@example.com', '987654', OtpType.SIGNUP) is None
    assert '987654' in caplog.text


def test_get_mailer_follows_settings(monkeypatch):
    from notes_app.config import settings
    assert isinstance(get_mailer(), ConsoleMailer)
    monkeypatch.setattr(settings, 'EMAIL_BACKEND', 'resend')
    monkeypatch.setattr(settings, 'RESEND_API_KEY', 're_test')
    monkeypatch.setattr(resend, 'api_key', None)
    assert isinstance(get_mailer(), ResendMailer)
