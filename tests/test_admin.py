"""Admin API tests."""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

TOKEN = "test-admin-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def admin_client(make_client: Callable[..., TestClient]) -> TestClient:
    """Client for an app with the admin token configured."""
    return make_client(admin_token=TOKEN)


def test_missing_token_is_unauthorized(admin_client: TestClient) -> None:
    response = admin_client.post("/__livedev/reload")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_malformed_authorization_is_unauthorized(admin_client: TestClient) -> None:
    response = admin_client.post("/__livedev/reload", headers={"Authorization": TOKEN})

    assert response.status_code == 401


def test_wrong_token_is_forbidden(admin_client: TestClient) -> None:
    response = admin_client.post(
        "/__livedev/reload",
        headers={"Authorization": "Bearer wrong"},
    )

    assert response.status_code == 403


def test_reload_with_token(admin_client: TestClient) -> None:
    response = admin_client.post("/__livedev/reload", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"success": True, "delivered": 0}


def test_token_does_not_guard_site_files(admin_client: TestClient) -> None:
    assert admin_client.get("/data.json").status_code == 200


def test_status_reports_counters(client: TestClient, site: Path) -> None:
    response = client.get("/__livedev/status")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["root"] == str(site)
    assert data["subscribers"] == 0
    assert data["features"]["live_reload"] is True
    assert data["features"]["spa_fallback"] is False


def test_reload_without_token_configured(client: TestClient) -> None:
    response = client.post("/__livedev/reload", json={"path": "/about.html"})

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_reload_rejects_malformed_body(client: TestClient) -> None:
    response = client.post(
        "/__livedev/reload",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400


def test_exec_requires_configured_token(client: TestClient) -> None:
    response = client.post("/__livedev/exec", json={"command": ["true"]})

    assert response.status_code == 403


def test_exec_rejects_malformed_body(admin_client: TestClient) -> None:
    response = admin_client.post("/__livedev/exec", json={"command": []}, headers=AUTH)

    assert response.status_code == 400


def test_exec_runs_command(admin_client: TestClient) -> None:
    response = admin_client.post(
        "/__livedev/exec",
        json={"command": [sys.executable, "-c", "print('hi')"]},
        headers=AUTH,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["exit_code"] == 0
    assert data["stdout"].strip() == "hi"


def test_exec_reports_nonzero_exit(admin_client: TestClient) -> None:
    response = admin_client.post(
        "/__livedev/exec",
        json={"command": [sys.executable, "-c", "import sys; sys.exit(3)"]},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.json()["exit_code"] == 3


def test_exec_missing_binary_is_server_error(admin_client: TestClient) -> None:
    response = admin_client.post(
        "/__livedev/exec",
        json={"command": ["definitely-not-a-real-binary-livedev"]},
        headers=AUTH,
    )

    assert response.status_code == 500


def test_exec_timeout(admin_client: TestClient) -> None:
    response = admin_client.post(
        "/__livedev/exec",
        json={"command": [sys.executable, "-c", "import time; time.sleep(5)"], "timeout": 0.2},
        headers=AUTH,
    )

    assert response.status_code == 504
