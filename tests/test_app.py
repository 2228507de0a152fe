"""
Tests for the studio HTTP endpoints (FastAPI TestClient, remover mocked)

Run with:
    pytest tests/test_app.py -v
"""

import io
import threading
import zipfile
import pytest
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from conftest import FakeRemover
from app import app, get_session
from optimizer.constants import BACKGROUND_COLORS, BORDER_COLORS
from optimizer import session as session_module
from optimizer.errors import CollaboratorUnavailable, ExtractionFailed, SurfaceAcquisitionFailed
from optimizer.session import StudioSession


@pytest.fixture
def remover(product_on_white_bytes):
    return FakeRemover(product_on_white_bytes)


@pytest.fixture
def session(remover):
    return StudioSession(remover=remover)


@pytest.fixture
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, content, name="product.png", content_type="image/png"):
    return client.post("/upload", files={"photo": (name, content, content_type)})


class TestInfoEndpoints:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_config(self, client):
        data = client.get("/api/config").json()

        assert data["allowed_variant_counts"] == [1, 3, 5, 10]
        assert data["default_variant_count"] == 3
        assert data["background_colors"] == BACKGROUND_COLORS
        assert data["border_colors"] == BORDER_COLORS
        assert data["canvas_size"] == 1000

    def test_config_check_has_no_secret(self, client, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "super-secret-key")
        data = client.get("/api/config-check").json()

        assert data["gemini_configured"] is True
        assert "super-secret-key" not in str(data)


class TestUpload:

    def test_upload_image(self, client, product_photo_bytes):
        response = upload(client, product_photo_bytes)
        data = response.json()

        assert response.status_code == 200
        assert data["loaded"] is True
        assert (data["width"], data["height"]) == (500, 300)
        assert data["content_type"] == "image/png"

    def test_empty_file_is_noop(self, client, session):
        response = upload(client, b"")

        assert response.status_code == 200
        assert response.json()["loaded"] is False
        assert session.epoch == 0

    def test_not_an_image(self, client):
        response = upload(client, b"just some text content", name="notes.txt", content_type="text/plain")
        assert response.status_code == 400

    def test_too_large(self, client):
        response = upload(client, b"\x89PNG\r\n\x1a\n" + b"\x00" * (5 * 1024 * 1024 + 1))
        assert response.status_code == 413


class TestGenerate:

    def test_generate_and_download(self, client, product_photo_bytes, remover):
        upload(client, product_photo_bytes)

        response = client.post("/generate", json={"count": 3})
        data = response.json()

        assert response.status_code == 200
        assert data["success"] is True
        variants = data["run"]["variants"]
        assert len(variants) == 3
        assert [v["filename"] for v in variants] == [
            "meesho_variant_1.jpg", "meesho_variant_2.jpg", "meesho_variant_3.jpg"
        ]
        assert variants[0]["data_url"].startswith("data:image/jpeg;base64,")

        single = client.get(f"/api/variants/{variants[0]['id']}")
        assert single.status_code == 200
        assert single.headers["content-type"] == "image/jpeg"

        cutout = client.get("/api/cutout")
        assert cutout.headers["content-type"] == "image/png"

        archive = zipfile.ZipFile(io.BytesIO(client.get("/api/download").content))
        assert len(archive.namelist()) == 3

        client.post("/generate", json={"count": 1})
        assert remover.calls == 1

    def test_default_count(self, client, product_photo_bytes):
        upload(client, product_photo_bytes)
        data = client.post("/generate", json={}).json()
        assert len(data["run"]["variants"]) == 3

    def test_invalid_count(self, client, product_photo_bytes):
        upload(client, product_photo_bytes)
        response = client.post("/generate", json={"count": 7})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_COUNT"

    def test_no_source(self, client):
        response = client.post("/generate", json={"count": 3})

        assert response.status_code == 400
        assert response.json()["error_code"] == "NO_SOURCE"

    @pytest.mark.parametrize("error,status,code", [
        (CollaboratorUnavailable("Gemini API error: HTTP 500"), 502, "COLLABORATOR_UNAVAILABLE"),
        (ExtractionFailed("Failed to extract product from image."), 422, "EXTRACTION_FAILED"),
    ])
    def test_removal_errors(self, client, product_photo_bytes, remover, error, status, code):
        remover.error = error
        upload(client, product_photo_bytes)

        response = client.post("/generate", json={"count": 3})

        assert response.status_code == status
        assert response.json()["error_code"] == code
        assert client.get("/api/status").json()["error"] == str(error)

    def test_surface_failure(self, client, product_photo_bytes, monkeypatch):
        def fail(*args, **kwargs):
            raise SurfaceAcquisitionFailed("out of memory")

        monkeypatch.setattr(session_module, "acquire_surface", fail)
        upload(client, product_photo_bytes)

        response = client.post("/generate", json={"count": 3})

        assert response.status_code == 500
        assert response.json()["error_code"] == "SURFACE_FAILED"
        assert client.get("/api/download").status_code == 404

    def test_busy_while_run_in_flight(self, client, session, remover, product_photo_bytes):
        entered = threading.Event()
        release = threading.Event()

        def hold():
            entered.set()
            release.wait(timeout=10)

        remover.on_call = hold
        upload(client, product_photo_bytes)

        worker = threading.Thread(target=session.generate, args=(1,))
        worker.start()
        try:
            assert entered.wait(timeout=10)
            response = client.post("/generate", json={"count": 1})
            assert response.status_code == 409
            assert response.json()["error_code"] == "BUSY"
        finally:
            release.set()
            worker.join(timeout=30)

        assert len(session.variants) == 1
        assert client.get("/api/status").json()["is_generating"] is False

    def test_new_upload_clears_variants(self, client, product_photo_bytes):
        upload(client, product_photo_bytes)
        client.post("/generate", json={"count": 1})
        upload(client, product_photo_bytes)

        assert client.get("/api/download").status_code == 404
        assert client.get("/api/cutout").status_code == 404

    def test_unknown_variant(self, client):
        assert client.get("/api/variants/v-0-0-0").status_code == 404
