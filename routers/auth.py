from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from starlette import status
from schemas.auth_schemas import CreateUserRequest, Token, UserResponse
from services.auth_service import AuthService
from services.token_service import TokenService
from utils.deps import pool_dependency
from middleware.rate_limiter import limiter
from utils.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/token", response_model=Token)
@limiter.limit("5/minute")
def login_for_access_token(request: Request, pool: pool_dependency,
                           form_data: OAuth2PasswordRequestForm = Depends()):
    user = AuthService.authenticate_user(form_data.username, form_data.password, pool)

    token = TokenService.create_access_token(user["email"], user["id"], user["role"])

    logger.info("User logged in successfully", extra={"user_id": user["id"]})

    return {"access_token": token, "token_type": "bearer"}


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
@limiter.limit("3/minute")
def create_user(request: Request, body: CreateUserRequest, pool: pool_dependency):
    user = AuthService.create_user(body, pool)

    logger.info("User registered successfully", extra={"user_id": user["id"]})

    return user
