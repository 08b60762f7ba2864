from typing import Annotated
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from core.database import ConnectionPool
from schemas.auth_schemas import Principal
from services.auth_service import AuthService
from services.order_service import OrderService

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/token")


def get_pool(request: Request) -> ConnectionPool:
    # Created in main.lifespan; tests override this dependency.
    return request.app.state.pool

pool_dependency = Annotated[ConnectionPool, Depends(get_pool)]


def get_order_service(pool: pool_dependency) -> OrderService:
    return OrderService(pool)

order_service_dependency = Annotated[OrderService, Depends(get_order_service)]


def get_current_user(token: Annotated[str, Depends(oauth2_bearer)], pool: pool_dependency) -> Principal:
    return AuthService.authenticate(token, pool)

user_dependency = Annotated[Principal, Depends(get_current_user)]
