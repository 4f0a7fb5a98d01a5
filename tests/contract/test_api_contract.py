from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from redirector.src.config import AppConfig
from redirector.src.main import create_app


@pytest.fixture
def client(tmp_path: Path) -> TestClient:
    yaml_file = tmp_path / "paths.yml"
    json_file = tmp_path / "paths.json"
    yaml_file.write_text("- path: /y\n  url: https://y.example\n", encoding="utf-8")
    json_file.write_text('[{"path":"/a","url":"https://x.com"}]', encoding="utf-8")
    config = AppConfig(
        yaml_file=str(yaml_file),
        json_file=str(json_file),
        db_path=str(tmp_path / "url.db"),
    )
    return TestClient(create_app(config), raise_server_exceptions=False, follow_redirects=False)


def test_framework_doc_paths_are_not_served(client: TestClient) -> None:
    for path in ("/openapi.json", "/docs", "/redoc"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.text == "Hello, world!\n"


def test_redirect_contract(client: TestClient) -> None:
    response = client.get("/a")
    assert response.status_code == 302
    assert response.headers["location"] == "https://x.com"


def test_default_handler_contract(client: TestClient) -> None:
    response = client.get("/missing")
    assert response.status_code == 200
    assert response.text == "Hello, world!\n"
    assert response.headers["content-type"].startswith("text/plain")


def test_healthz_contract(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.text == "ok"
    assert response.headers["content-type"].startswith("text/plain")


def test_readyz_contract(client: TestClient) -> None:
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.text == "ok namespace=UrlShortener mappings=2"
    assert response.headers["content-type"].startswith("text/plain")


def test_metrics_contract(client: TestClient) -> None:
    client.get("/a")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_requests_total" in response.text


def test_non_get_method_contract(client: TestClient) -> None:
    response = client.post("/a")
    assert response.status_code == 302
    assert response.headers["location"] == "https://x.com"
