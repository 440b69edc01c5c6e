# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from immoinvest.api.http import app  # package is importable from src/ via the pytest pythonpath


@pytest.fixture(scope="session")
def client():
    return TestClient(app)
