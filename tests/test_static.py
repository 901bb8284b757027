"""Static file lookup tests."""

from collections.abc import Callable
from pathlib import Path

from fastapi.testclient import TestClient

from livedev.static import is_excluded, render_listing


def test_directory_without_index_is_not_found(client: TestClient) -> None:
    """Directory contents are never exposed when listing is disabled."""
    assert client.get("/docs/").status_code == 404
    assert client.get("/docs").status_code == 404


def test_empty_directory_is_not_found(client: TestClient, site: Path) -> None:
    (site / "empty").mkdir()

    assert client.get("/empty/").status_code == 404


def test_directory_with_index_serves_index(client: TestClient) -> None:
    response = client.get("/blog/")

    assert response.status_code == 200
    assert "Blog" in response.text


def test_directory_without_trailing_slash_redirects(client: TestClient) -> None:
    response = client.get("/blog", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"].endswith("/blog/")


def test_directory_listing_when_enabled(make_client: Callable[..., TestClient]) -> None:
    response = make_client(directory_listing=True).get("/docs/")

    assert response.status_code == 200
    assert "guide.txt" in response.text
    assert ".secret" not in response.text


def test_listing_orders_directories_first(site: Path) -> None:
    html = render_listing("/", str(site))

    assert html.index("blog/") < html.index("app.js")
    assert "../" not in html


def test_listing_hides_sensitive_names() -> None:
    assert is_excluded(".env")
    assert is_excluded("server.pem")
    assert is_excluded("node_modules")
    assert not is_excluded("index.html")


def test_files_are_served(client: TestClient, site: Path) -> None:
    response = client.get("/styles/app.css")

    assert response.status_code == 200
    assert response.content == (site / "styles" / "app.css").read_bytes()


def test_unsupported_method_is_rejected(client: TestClient) -> None:
    assert client.post("/data.json").status_code == 405
