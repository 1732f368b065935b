from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from watchpost_core.app import create_app


def test_healthz_ok(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("WATCHPOST_HOME", str(tmp_path))

    with TestClient(create_app()) as client:
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


def test_root_redirects_to_user_tokens(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("WATCHPOST_HOME", str(tmp_path))

    with TestClient(create_app()) as client:
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/ui/user/tokens"
