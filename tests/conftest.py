import os

# Must be set before the app (and its Settings) is imported
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from decimal import Decimal
from typing import Generator
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert

from main import app
from core.database import ConnectionPool
from core.executor import execute
from models.users import User
from models.products import Product
from services.auth_service import get_password_hash
from services.order_service import OrderService
from services.token_service import TokenService
from utils.deps import get_pool

TEST_DATABASE_URL = "sqlite:///./test.db"
TEST_PASSWORD = "TestPassword123!"

ORDER_BODY = {
    "order_items": [{"product_id": 7, "qty": 2, "price": "10.00"}],
    "shipping_address": {"street": "1 Main St"},
    "shipping_phone": "555-0100",
    "payment_method": "cash_on_delivery",
}

# Hashed once: bcrypt is slow and every user fixture shares the password
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


def create_user(pool: ConnectionPool, email: str, role: str = "customer", is_active: bool = True) -> dict:
    user_id = execute(pool, insert(User.__table__).values(
        email=email,
        first_name="Test",
        last_name=role.title(),
        hashed_password=TEST_PASSWORD_HASH,
        is_active=is_active,
        role=role
    )).inserted_id
    return {"id": user_id, "email": email, "role": role}


def create_product(pool: ConnectionPool, product_id: int, name: str, price: str) -> dict:
    execute(pool, insert(Product.__table__).values(
        id=product_id,
        name=name,
        description=f"{name} description",
        price=Decimal(price),
        image_url=f"/uploads/{product_id}.png",
        stock=100
    ))
    return {"id": product_id, "name": name, "price": Decimal(price)}


def auth_headers(user: dict) -> dict:
    token = TokenService.create_access_token(user["email"], user["id"], user["role"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def pool() -> Generator[ConnectionPool, None, None]:
    """
    A fresh, empty database for each test.
    """
    pool = ConnectionPool(TEST_DATABASE_URL, size=5, timeout=5)
    pool.create_schema()
    try:
        yield pool
    finally:
        pool.drop_schema()
        pool.dispose()


@pytest.fixture
def customer(pool) -> dict:
    return create_user(pool, "customer@example.com")


@pytest.fixture
def other_customer(pool) -> dict:
    return create_user(pool, "other@example.com")


@pytest.fixture
def admin(pool) -> dict:
    return create_user(pool, "admin@example.com", role="admin")


@pytest.fixture
def products(pool) -> dict:
    return {
        7: create_product(pool, 7, "Mechanical Keyboard", "10.00"),
        8: create_product(pool, 8, "USB-C Cable", "4.50"),
    }


@pytest.fixture
def order_service(pool) -> OrderService:
    return OrderService(pool)


@pytest.fixture
async def client(pool: ConnectionPool):
    """
    HTTP client talking to the app, with the pool dependency pointed at the
    test database.
    """
    app.dependency_overrides[get_pool] = lambda: pool

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
