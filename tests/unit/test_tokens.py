from services.token_service import TokenService
from core.exceptions import InvalidTokenError
from jose import jwt
from core.config import settings
from datetime import datetime, timedelta, timezone
import pytest

def test_access_token_creation():
    test_token = TokenService.create_access_token(email="user@example.com", user_id=1, role="customer")
    assert test_token

    payload = jwt.decode(test_token, key=settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["sub"] == "user@example.com"
    assert payload["id"] == 1
    assert payload["role"] == "customer"
    assert payload["type"] == "access"
    assert payload["exp"]


def test_decode_access_token():
    token = TokenService.create_access_token(email="admin@example.com", user_id=3, role="admin")

    payload = TokenService.decode_access_token(token)

    assert payload["id"] == 3
    assert payload["role"] == "admin"


def test_expired_token_rejected():
    token = TokenService.create_access_token(
        email="user@example.com",
        user_id=1,
        role="customer",
        expires_delta=timedelta(minutes=-1)
    )

    with pytest.raises(InvalidTokenError):
        TokenService.decode_access_token(token)


def test_wrong_token_type_rejected():
    refresh_like = jwt.encode({
        "sub": "user@example.com",
        "id": 1,
        "role": "customer",
        "type": "refresh",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5)
    }, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    with pytest.raises(InvalidTokenError) as exc_info:
        TokenService.decode_access_token(refresh_like)

    assert "access token required" in exc_info.value.message.lower()


def test_tampered_token_rejected():
    token = jwt.encode({"sub": "x@example.com", "id": 1, "type": "access"}, "not-the-secret", algorithm="HS256")

    with pytest.raises(InvalidTokenError):
        TokenService.decode_access_token(token)
