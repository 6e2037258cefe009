from datetime import timedelta

import jwt
import pytest
from fastapi import HTTPException

from notes_app import models
from notes_app.auth import decode_token
from notes_app.config import settings
from notes_app.errors import ServiceError
from notes_app.services import create_token, generate_otp, normalize_email, validate_email


def test_create_and_decode_token():
    expires_at = models.utcnow() + timedelta(hours=1)
    token = create_token('user-1', expires_at)
    payload = decode_token(token)
    assert payload['userId'] == 'user-1'
    assert payload['type'] == 'session'
    assert abs(payload['exp'] - payload['iat'] - 3600) <= 1


def test_tokens_are_unique_per_issue():
    expires_at = models.utcnow() + timedelta(hours=1)
    assert create_token('user-1', expires_at) != create_token('user-1', expires_at)


def test_decode_rejects_expired_token():
    token = create_token('user-1', models.utcnow() - timedelta(minutes=5))
    with pytest.raises(HTTPException) as exc:
        decode_token(token)
    assert exc.value.status_code == 401


def test_decode_rejects_other_token_types_and_keys():
    wrong_type = jwt.encode({'userId': 'u', 'type': 'refresh'}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    wrong_key = jwt.encode({'userId': 'u', 'type': 'session'}, 'another-secret', algorithm='HS256')
    for token in (wrong_type, wrong_key):
        with pytest.raises(HTTPException) as exc:
            decode_token(token)
        assert exc.value.detail == 'Invalid token'


def test_generate_otp_is_six_digits():
    for _ in range(200):
        code = generate_otp()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_email_helpers():
    assert normalize_email('  Mixed@Case.ORG ') == 'mixed@case.org'
    assert normalize_email(None) == ''
    validate_email('someone@example.com')
    for bad in ('plain', '@example.com', 'someone@', 'a@b@c', 'a b@c.d'):
        with pytest.raises(ServiceError):
            validate_email(bad)
