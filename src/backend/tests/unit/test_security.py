"""
Unit tests for JWT validation.
"""

from datetime import timedelta

import jwt
import pytest

from core.config import settings
from core.security import (
    TokenExpiredError,
    TokenInvalidError,
    create_access_token,
    decode_token,
    get_user_id_from_token,
)


def test_token_carries_user_id():
    token = create_access_token(42, "sara.hassan")

    payload = decode_token(token)

    assert get_user_id_from_token(payload) == 42
    assert payload["username"] == "sara.hassan"
    assert payload["iss"] == settings.security.jwt_issuer


def test_expired_token_rejected():
    token = create_access_token(42, "sara.hassan", expires_delta=timedelta(seconds=-30))

    with pytest.raises(TokenExpiredError):
        decode_token(token)


def test_foreign_audience_rejected():
    token = jwt.encode(
        {"sub": "42", "aud": "someone-else", "iss": settings.security.jwt_issuer},
        settings.security.jwt_secret_key_property,
        algorithm=settings.security.algorithm,
    )

    with pytest.raises(TokenInvalidError):
        decode_token(token)


def test_wrong_signature_rejected():
    token = jwt.encode(
        {
            "sub": "42",
            "aud": settings.security.jwt_audience,
            "iss": settings.security.jwt_issuer,
        },
        "not-the-secret",
        algorithm=settings.security.algorithm,
    )

    with pytest.raises(TokenInvalidError):
        decode_token(token)


@pytest.mark.parametrize("payload", [{}, {"sub": ""}, {"sub": "abc"}])
def test_subject_must_be_integer(payload):
    with pytest.raises(TokenInvalidError):
        get_user_id_from_token(payload)
