"""Pytest configuration and fixtures"""
import os
from typing import Callable, Generator, Optional

# Must be set before the application module builds its default settings
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"

import pyotp
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from worship_api.config import Settings
from worship_api.container import ServiceContainer, build_container
from worship_api.main import create_app

PRIMARY_ADMIN = "root-admin"
PRIMARY_PASSWORD = "RootPass!2026"


def make_settings(data_dir, **overrides) -> Settings:
    values = {
        "DATA_DIR": data_dir,
        "JWT_SECRET": "test-jwt-secret",
        "BCRYPT_ROUNDS": 4,
        "PRIMARY_ADMIN_USERNAME": PRIMARY_ADMIN,
        "PRIMARY_ADMIN_PASSWORD": PRIMARY_PASSWORD,
        "RATE_LIMIT_ENABLED": False,
        "METRICS_ENABLED": False,
        "LOG_FORMAT": "text",
    }
    values.update(overrides)
    return Settings(**values)


async def make_container(settings: Settings) -> ServiceContainer:
    container = build_container(settings)
    await container.initialize()
    return container


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a fresh data directory"""
    return make_settings(tmp_path / "data")


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with the lifespan (store bootstrap) running"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client: TestClient) -> Callable[..., dict]:
    """Log in and return Bearer headers; the cookie jar is cleared so callers stay independent"""

    def _login(username: str, password: str, otp: Optional[str] = None) -> dict:
        body = {"username": username, "password": password}
        if otp is not None:
            body["otp"] = otp
        response = client.post("/api/auth/login", json=body)
        assert response.status_code == 200, response.text
        token = response.cookies.get("session_token")
        assert token
        client.cookies.clear()
        return {"Authorization": f"Bearer {token}"}

    return _login


@pytest.fixture
def primary_headers(login) -> dict:
    return login(PRIMARY_ADMIN, PRIMARY_PASSWORD)


@pytest.fixture
def create_user(client: TestClient, primary_headers: dict) -> Callable[..., dict]:
    """Create an account through the admin API"""

    def _create(username: str, password: str = "StrongPass1!", role: str = "user") -> dict:
        response = client.post(
            "/api/admin/users",
            json={"username": username, "password": password, "role": role},
            headers=primary_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["user"]

    return _create


@pytest.fixture
def enable_two_factor(client: TestClient) -> Callable[[dict], pyotp.TOTP]:
    """Enrol the caller in 2FA; returns the TOTP generator for the new secret"""

    def _enable(headers: dict) -> pyotp.TOTP:
        setup = client.post("/api/admin/2fa/setup", headers=headers)
        assert setup.status_code == 200, setup.text
        totp = pyotp.TOTP(setup.json()["secret"])
        verify = client.post("/api/admin/2fa/verify", json={"otp": totp.now()}, headers=headers)
        assert verify.status_code == 200, verify.text
        client.cookies.clear()
        return totp

    return _enable


def read_data_lines(settings: Settings, name: str) -> list:
    path = settings.DATA_DIR / name
    if not path.exists():
        return []
    return [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
