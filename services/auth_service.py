from passlib.context import CryptContext
from sqlalchemy import insert, select

from core.database import ConnectionPool
from core.exceptions import AuthError, InvalidTokenError, UserInactiveError, ValidationError
from core.executor import execute
from models.users import User
from schemas.auth_schemas import CreateUserRequest, Principal
from services.token_service import TokenService
from utils.logger import get_logger

logger = get_logger(__name__)

bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto')

users = User.__table__


def get_password_hash(password: str) -> str:
    # Bcrypt has a 72-byte limit
    return bcrypt_context.hash(password[:72])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt_context.verify(plain_password[:72], hashed_password)


class AuthService:

    @staticmethod
    def create_user(request: CreateUserRequest, pool: ConnectionPool) -> dict:
        """
        Registers a customer account. Self-registration never grants admin.

        Raises:
            ValidationError: The email is already registered
        """
        email = request.email.lower().strip()

        existing = execute(pool, select(users.c.id).where(users.c.email == email)).first()
        if existing:
            logger.warning("Registration attempt with existing email", extra={"user_id": existing["id"]})
            raise ValidationError("Email already registered")

        user_id = execute(pool, insert(users).values(
            email=email,
            first_name=request.first_name,
            last_name=request.last_name,
            hashed_password=get_password_hash(request.password),
            is_active=True,
            role="customer"
        )).inserted_id

        return execute(
            pool,
            select(users.c.id, users.c.email, users.c.first_name, users.c.last_name, users.c.role)
            .where(users.c.id == user_id)
        ).first()

    @staticmethod
    def authenticate(raw_token: str, pool: ConnectionPool) -> Principal:
        """
        Resolves a bearer token to the active user behind it.

        Raises:
            InvalidTokenError: Bad, expired or wrong-type token, or unknown user
            UserInactiveError: The user exists but is deactivated
        """
        payload = TokenService.decode_access_token(raw_token)

        row = execute(
            pool,
            select(users.c.id, users.c.role, users.c.is_active).where(users.c.id == payload["id"])
        ).first()

        if row is None:
            logger.warning("Token for unknown user", extra={"user_id": payload["id"]})
            raise InvalidTokenError("User not found or inactive")

        if not row["is_active"]:
            logger.warning("Token for inactive user", extra={"user_id": row["id"]})
            raise UserInactiveError()

        return Principal(user_id=row["id"], role=row["role"])

    @staticmethod
    def authenticate_user(email: str, password: str, pool: ConnectionPool) -> dict:
        row = execute(
            pool,
            select(users).where(users.c.email == email.lower().strip())
        ).first()

        if not row or not row["is_active"] or not verify_password(password, row["hashed_password"]):
            logger.warning("Login failed", extra={"email": email})
            raise AuthError("Could not validate user.")

        logger.debug("User authenticated successfully", extra={"user_id": row["id"]})
        return row
