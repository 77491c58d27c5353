import io
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from nameplate.api.v1.endpoints import scan as scan_endpoints
from nameplate.core.config import settings
from nameplate.core.dependencies import get_scan_service
from nameplate.infrastructure.inventory import InMemoryInventory
from nameplate.main import app
from nameplate.services.image_preprocessor import ImagePreprocessor
from nameplate.services.recognition_orchestrator import RecognitionOrchestrator
from nameplate.services.scan_service import NameplateScanService
from tests.mocks.mock_ocr_client import MockOcrClient, RecordingSleep, parsed, status_error
from tests.mocks.mock_storage_service import MockStorageService

client = TestClient(app)


def jpeg_bytes(size=(320, 240)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def use_ocr_script():
    def install(script):
        service = NameplateScanService(
            preprocessor=ImagePreprocessor(),
            orchestrator=RecognitionOrchestrator(MockOcrClient(script), sleep=RecordingSleep()),
            storage_port=MockStorageService(),
            inventory=InMemoryInventory(),
        )
        app.dependency_overrides[get_scan_service] = lambda: service
        return service

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def queued(monkeypatch):
    task = MagicMock()
    monkeypatch.setattr(scan_endpoints, "run_scan_task", task)
    return task


def test_health():
    response = client.get("/api/v1/health/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "X-Correlation-ID" in response.headers


def test_extract_text_strict():
    response = client.post(
        "/api/v1/scan/extract",
        json={"text": "DEYE\nMODEL: SUN-10K-G\nS/N: 2201A00123456789"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["brand"] == "DEYE"
    assert body["category"] == "inverter"
    assert body["model"] == "SUN-10K-G"
    assert body["serial"] == "2201A00123456789"
    assert body["rating"] == 10.0
    assert body["strict"] is True


def test_extract_text_quick():
    response = client.post(
        "/api/v1/scan/extract",
        json={"text": "SolaX Power\nModel: XL-BOOST-5K", "strict": False},
    )
    assert response.status_code == 200
    assert response.json()["model"] == "XL-BOOST-5K"
    assert response.json()["strict"] is False


def test_extract_text_unrecognized():
    response = client.post("/api/v1/scan/extract", json={"text": "ACME 5000"})
    assert response.status_code == 200
    assert response.json()["brand"] is None
    assert response.json()["model"] is None


def test_preview_returns_quick_reading(use_ocr_script):
    use_ocr_script([parsed("DEYE\nMODEL: SUN-10K-G\nS/N: 2201A00123456789")])

    response = client.post(
        "/api/v1/scan/preview",
        files={"file": ("label.jpg", jpeg_bytes(), "image/jpeg")},
        data={"engine": "3"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["engine"] == "3"
    assert body["attempts"] == 1
    assert body["record"]["brand"] == "DEYE"
    assert body["record"]["strict"] is False


def test_preview_recognition_failure_is_bad_gateway(use_ocr_script):
    use_ocr_script([status_error(403)])

    response = client.post(
        "/api/v1/scan/preview",
        files={"file": ("label.jpg", jpeg_bytes(), "image/jpeg")},
    )

    assert response.status_code == 502


def test_preview_unreadable_upload(use_ocr_script):
    use_ocr_script([])

    response = client.post(
        "/api/v1/scan/preview",
        files={"file": ("label.jpg", b"not a photo", "image/jpeg")},
    )

    assert response.status_code == 413


def test_assign_queues_background_scan(use_ocr_script, queued):
    use_ocr_script([])

    response = client.post(
        "/api/v1/scan/assign",
        files={"file": ("label.jpg", jpeg_bytes(), "image/jpeg")},
        data={"installation_id": "42"},
        headers={"X-Correlation-ID": "corr-123"},
    )

    assert response.status_code == 202
    assert response.json() == {
        "ok": True,
        "request_id": "corr-123",
        "status": "processing_background",
        "message": "Nameplate is being processed in the background.",
    }
    kwargs = queued.delay.call_args.kwargs
    assert kwargs["installation_id"] == 42
    assert kwargs["request_id"] == "corr-123"
    assert kwargs["mime_type"] == "image/jpeg"
    assert kwargs["image_b64"]


def test_assign_requires_file_and_installation(use_ocr_script, queued):
    use_ocr_script([])

    missing_installation = client.post(
        "/api/v1/scan/assign",
        files={"file": ("label.jpg", jpeg_bytes(), "image/jpeg")},
    )
    missing_file = client.post("/api/v1/scan/assign", data={"installation_id": "42"})

    assert missing_installation.status_code == 400
    assert missing_file.status_code == 400
    queued.delay.assert_not_called()


def test_assign_rejects_unpreparable_upload(use_ocr_script, queued):
    use_ocr_script([])

    response = client.post(
        "/api/v1/scan/assign",
        files={"file": ("label.jpg", b"not a photo", "image/jpeg")},
        data={"installation_id": "42"},
    )

    assert response.status_code == 413
    queued.delay.assert_not_called()


def test_assign_rejects_oversized_upload(use_ocr_script, queued, monkeypatch):
    use_ocr_script([])
    monkeypatch.setattr(settings, "MAX_CAPTURE_BYTES", 100)

    response = client.post(
        "/api/v1/scan/assign",
        files={"file": ("label.jpg", jpeg_bytes(), "image/jpeg")},
        data={"installation_id": "42"},
    )

    assert response.status_code == 413
    queued.delay.assert_not_called()
