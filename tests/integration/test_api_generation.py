"""Integration tests for the generation API endpoints."""

import threading
from unittest.mock import MagicMock, patch

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from scrollgen.config import AppConfig
from scrollgen.exceptions import GenerationFailedError
from scrollgen.models.model_profile import ModelRegistry
from scrollgen.models.session import SessionStore
from scrollgen.models.tile import SliceSpec, Tile
from scrollgen.services.generation_service import GenerationOutcome, GenerationService


def _outcome(model_used="flux-fill-pro", requested="flux-fill-pro"):
    tile = Tile(
        image_url="data:image/png;base64,AAAA",
        prompt="Continue this top-down aerial view... a canyon",
        model_used=model_used,
        generation_time=1.234,
        width=1024,
        height=500,
        slice_spec=SliceSpec(slice_height=268, gradient_zone=60),
        strategy="inpaint",
    )
    return GenerationOutcome(
        tile=tile,
        requested_model=requested,
        evolved_prompt="a canyon, then a river",
        original_user_prompt="red desert",
        model_config={"id": model_used},
    )


@pytest.fixture
def service(app_config):
    """Generation service with mocked backends and a mocked pipeline."""
    svc = GenerationService(
        config=app_config,
        registry=ModelRegistry(),
        replicate_service=MagicMock(is_configured=True),
        gemini_service=MagicMock(),
        session_store=SessionStore(),
    )
    svc.generate = MagicMock(return_value=_outcome())
    return svc


@pytest.fixture
def client(service, app_config):
    """TestClient with the shared service and config patched."""
    from scrollgen.api.main import app

    with patch("scrollgen.api.routers.generation.get_generation_service", return_value=service), \
         patch("scrollgen.api.main.get_config", return_value=app_config):
        yield TestClient(app)


class TestGenerateNextImage:
    """Test POST /api/generate-next-image."""

    def test_success(self, client, service):
        response = client.post("/api/generate-next-image", json={
            "previousImage": "https://cdn.example.com/prev.png",
            "currentPrompt": "a canyon",
            "originalUserPrompt": "red desert",
            "sessionId": "abc",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["imageUrl"] == "data:image/png;base64,AAAA"
        assert data["modelUsed"] == "flux-fill-pro"
        assert data["requestedModel"] == "flux-fill-pro"
        assert data["evolvedPrompt"] == "a canyon, then a river"
        assert data["originalUserPrompt"] == "red desert"
        assert data["generationTime"] == 1234
        assert data["debugInfo"] is None

        request = service.generate.call_args.args[0]
        assert request.previous_image == "https://cdn.example.com/prev.png"
        assert request.session_id == "abc"
        assert isinstance(service.generate.call_args.args[1], threading.Event)

    def test_reports_fallback_model(self, client, service):
        service.generate.return_value = _outcome(model_used="flux-schnell", requested="flux-fill-pro")
        data = client.post("/api/generate-next-image", json={"currentPrompt": "x"}).json()
        assert data["modelUsed"] == "flux-schnell"
        assert data["requestedModel"] == "flux-fill-pro"

    def test_debug_info(self, client):
        data = client.post(
            "/api/generate-next-image", json={"currentPrompt": "x", "debugMode": True}
        ).json()
        assert data["debugInfo"]["sliceSpec"]["sliceHeight"] == 268
        assert data["debugInfo"]["strategy"] == "inpaint"

    def test_invalid_body(self, client):
        response = client.post("/api/generate-next-image", json={"inferenceSteps": 0})
        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid request"
        assert "inferenceSteps" in data["details"]
        assert "timestamp" in data

    def test_generation_failure(self, client, service):
        service.generate.side_effect = GenerationFailedError("all strategies failed")
        response = client.post("/api/generate-next-image", json={"currentPrompt": "x"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Failed to generate image"
        assert data["details"] == "all strategies failed"
        assert data["timestamp"]

    def test_unexpected_error_returns_structured_body(self, client, service):
        service.generate.side_effect = RuntimeError("decoder exploded")
        # Unhandled exceptions are re-raised by TestClient unless disabled
        lenient = TestClient(client.app, raise_server_exceptions=False)
        response = lenient.post("/api/generate-next-image", json={"currentPrompt": "x"})

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        data = response.json()
        assert data["error"] == "Failed to generate image"
        assert data["details"] == "decoder exploded"
        assert data["timestamp"]

    def test_timeout_cancels_pipeline(self, client, service):
        service.config = service.config.model_copy(update={"request_timeout": 0.2})

        def slow_generate(request, cancel_event):
            cancel_event.wait(timeout=5)
            return _outcome()

        service.generate.side_effect = slow_generate
        response = client.post("/api/generate-next-image", json={"currentPrompt": "x"})

        assert response.status_code == 504
        assert "did not finish" in response.json()["error"]


class TestModels:
    """Test GET /api/models."""

    def test_list_models(self, client):
        data = client.get("/api/models").json()
        ids = [m["id"] for m in data["models"]]
        assert ids[0] == "flux-schnell"
        assert "flux-fill-pro" in ids
        assert data["default"] == "flux-schnell"
        assert data["defaultContinuation"] == "flux-fill-pro"
        fill = next(m for m in data["models"] if m["id"] == "flux-fill-pro")
        assert fill["supportsOutpainting"] is True
        assert fill["guidanceScale"] == 3.5


class TestSessions:
    """Test POST /api/sessions/{id}/reset."""

    def test_reset(self, client, service):
        service.sessions.get("abc").remember_theme("red desert")
        response = client.post("/api/sessions/abc/reset")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert "abc" not in service.sessions


class TestHealth:
    """Test GET /api/health."""

    def test_healthy(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "ok"
        assert data["services"] == {"replicate": True, "gemini": True}
        assert data["defaultModel"] == "flux-schnell"
        assert "flux-fill-pro" in data["availableModels"]
        assert "r8_fake_token" not in str(data)

    def test_degraded_without_credentials(self, service, tmp_path):
        from scrollgen.api.main import app

        config = AppConfig(replicate_api_token="r8", output_dir=tmp_path)
        with patch("scrollgen.api.routers.generation.get_generation_service", return_value=service), \
             patch("scrollgen.api.main.get_config", return_value=config):
            data = TestClient(app).get("/api/health").json()

        assert data["status"] == "degraded"
        assert data["services"]["gemini"] is False
