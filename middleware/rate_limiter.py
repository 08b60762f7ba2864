from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from core.exceptions import InvalidTokenError
from services.token_service import TokenService

def get_user_id(request: Request):
    """Rate-limit key: the token's user id, or the client address."""
    token = request.headers.get("Authorization")
    if token:
        try:
            payload = TokenService.decode_access_token(token.replace("Bearer ", ""))
            return str(payload["id"])
        except InvalidTokenError:
            pass

    return get_remote_address(request)

limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
