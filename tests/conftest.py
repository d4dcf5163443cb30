from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import app  # noqa: E402
from app.repos.store import InMemoryStore  # noqa: E402
from tests.helpers import shared_store  # noqa: E402


@pytest.fixture(autouse=True)
def reset_store() -> None:
    shared_store.reset()


@pytest.fixture
def store() -> InMemoryStore:
    return shared_store


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)
