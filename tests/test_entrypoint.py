"""
Serverless entry point: the real app when it imports, a JSON 500 otherwise.
"""
import importlib
import sys
from unittest.mock import patch

from fastapi.testclient import TestClient

from api.index import build_startup_error_app


def test_exposes_the_real_app():
    from app.main import app

    assert importlib.import_module("api.index").app is app


def test_import_failure_is_reported_as_json():
    with patch.dict(sys.modules):
        sys.modules.pop("api.index", None)
        sys.modules["app.main"] = None  # makes `from app.main import app` raise ImportError
        index = importlib.import_module("api.index")
    sys.modules["api"].index = sys.modules["api.index"]

    with TestClient(index.app) as client:
        for method, path in [("GET", "/"), ("POST", "/api/diagnose"), ("GET", "/health")]:
            response = client.request(method, path)
            assert response.status_code == 500
            data = response.json()
            assert data["status"] == "startup_failed"
            assert data["type"] == "ImportError"


def test_startup_error_details():
    app = build_startup_error_app(RuntimeError("SECRET_KEY missing"))

    with TestClient(app) as client:
        data = client.get("/anything").json()

    assert data["service"] == "plant-doctor"
    assert data["error"] == "SECRET_KEY missing"
    assert data["type"] == "RuntimeError"
