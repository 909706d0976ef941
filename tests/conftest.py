from pathlib import Path

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from schemakit.main import app

load_dotenv(Path(__file__).resolve().parents[1] / ".env")


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides() -> None:
    yield
    app.dependency_overrides.clear()
