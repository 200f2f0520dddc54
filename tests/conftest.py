"""Shared fixtures: a temporary content root holding the test certificate, and app clients."""
import shutil
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from basicapi.config import build_settings
from basicapi.main import create_app
from basicapi.services.jwt import CERTIFICATE_FILE_NAME

REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def content_root(tmp_path):
    shutil.copy(REPO_ROOT / CERTIFICATE_FILE_NAME, tmp_path / CERTIFICATE_FILE_NAME)
    return tmp_path


@pytest.fixture
def settings(content_root):
    return build_settings({"contentroot": str(content_root)})


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def _token(client, username):
    response = client.get("/token", params={"username": username})
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
def reader_headers(client):
    return {"Authorization": f"Bearer {_token(client, 'reader@example.com')}"}


@pytest.fixture
def writer_headers(client):
    return {"Authorization": f"Bearer {_token(client, 'writer@example.com')}"}
