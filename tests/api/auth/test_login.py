from jose import jwt
from core.config import settings
from conftest import TEST_PASSWORD, create_user


async def test_login_success(client, customer):
    """Test successful user login."""
    response = await client.post("/auth/token", data={
        "username": customer["email"],
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"

    payload = jwt.decode(data["access_token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["sub"] == customer["email"]
    assert payload["id"] == customer["id"]
    assert payload["role"] == "customer"
    assert payload["type"] == "access"


async def test_login_token_places_orders(client, customer, products):
    """The issued token is accepted by the order endpoints."""
    login = await client.post("/auth/token", data={
        "username": customer["email"],
        "password": TEST_PASSWORD
    })
    token = login.json()["access_token"]

    response = await client.get("/orders/myorders", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == []


async def test_login_wrong_password(client, customer):
    response = await client.post("/auth/token", data={
        "username": customer["email"],
        "password": "WrongPassword123!"
    })

    assert response.status_code == 401
    assert "could not validate user" in response.json()["detail"].lower()


async def test_login_nonexistent_user(client):
    response = await client.post("/auth/token", data={
        "username": "nonexistent@example.com",
        "password": TEST_PASSWORD
    })

    assert response.status_code == 401


async def test_login_inactive_user(client, pool):
    inactive = create_user(pool, "inactive@example.com", is_active=False)

    response = await client.post("/auth/token", data={
        "username": inactive["email"],
        "password": TEST_PASSWORD
    })

    assert response.status_code == 401
