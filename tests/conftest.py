"""
Pytest configuration for the orchestrator simulator.

Provides fixtures for:
- an isolated sqlite file per test
- a FastAPI TestClient bound to that file
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from orchsim.store import db


@pytest.fixture
def temp_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Point the store at a fresh sqlite file and create the schema."""
    path = str(tmp_path / "simulator-test.db")
    monkeypatch.setattr(db, "DB_PATH", path)
    db.init()
    return path


@pytest.fixture
def client(temp_db: str) -> TestClient:
    from orchsim.main import app

    return TestClient(app)


@pytest.fixture
def environment(temp_db: str) -> dict:
    return db.create_environment({"name": "Development", "code": "DEV"})
