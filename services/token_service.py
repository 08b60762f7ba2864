from datetime import datetime, timezone, timedelta
from jose import jwt, JWTError
from core.config import settings
from core.exceptions import InvalidTokenError


class TokenService:
    """
    Issues and verifies access tokens.
    """

    @staticmethod
    def create_access_token(email: str, user_id: int, role: str, expires_delta: timedelta = None):
        """
        Creates a JWT access token.

        Args:
            email: User's email
            user_id: User's ID
            role: User's role
            expires_delta: Token lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)

        Returns:
            JWT access token string
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        payload = {
            "sub": email,
            "id": user_id,
            "role": role,
            "type": "access",
            "exp": datetime.now(timezone.utc) + expires_delta
        }

        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_access_token(token: str) -> dict:
        """
        Verifies signature, expiry and token type.

        Raises:
            InvalidTokenError: If the token cannot be trusted
        """
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            raise InvalidTokenError("Could not validate credentials.")

        if payload.get("id") is None or payload.get("sub") is None:
            raise InvalidTokenError("Could not validate credentials.")

        if payload.get("type") != "access":
            raise InvalidTokenError("Invalid token type. Access token required.")

        return payload
