"""Pytest configuration and fixtures."""

import sys
from collections.abc import Callable, Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from livedev.app import create_app
from livedev.config import Settings

INDEX_HTML = (
    "<!DOCTYPE html>\n<html>\n<head>\n<title>Home</title>\n"
    '<link rel="stylesheet" href="/styles/app.css">\n</head>\n'
    "<body>\n<h1>Hello</h1>\n<script src=\"/app.js\"></script>\n</body>\n</html>\n"
)


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """Create a small static site."""
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    (root / "styles").mkdir()
    (root / "styles" / "app.css").write_text("body { color: red; }\n", encoding="utf-8")
    (root / "app.js").write_text("console.log('app');\n", encoding="utf-8")
    (root / "data.json").write_text('{"ok": true}\n', encoding="utf-8")
    (root / "404.html").write_text("<html><body>Custom missing page</body></html>", encoding="utf-8")
    (root / "docs").mkdir()
    (root / "docs" / "guide.txt").write_text("guide\n", encoding="utf-8")
    (root / "docs" / ".secret").write_text("hidden\n", encoding="utf-8")
    (root / "blog").mkdir()
    (root / "blog" / "index.html").write_text("<html><body>Blog</body></html>", encoding="utf-8")
    return root.resolve()


@pytest.fixture
def settings(site: Path) -> Settings:
    """Create test settings."""
    return Settings(_env_file=None, root=site, debounce_ms=50)


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client with configured app, running its lifespan."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def make_client(site: Path) -> Iterator[Callable[..., TestClient]]:
    """Factory for test clients with setting overrides."""
    clients: list[TestClient] = []

    def factory(**overrides: object) -> TestClient:
        settings = Settings(_env_file=None, root=site, debounce_ms=50, **overrides)  # type: ignore[arg-type]
        test_client = TestClient(create_app(settings))
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield factory

    for test_client in clients:
        test_client.__exit__(None, None, None)
