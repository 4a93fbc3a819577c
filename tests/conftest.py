import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def _isolated_stores(monkeypatch):
    """Fresh in-memory stores and dev identity provider for every test."""
    from src.aidee.infrastructure import message_store, repository
    from src.aidee.security import auth, rate_limit

    monkeypatch.setenv("AIDEE_STORE_IMPL", "memory")
    monkeypatch.setenv("AIDEE_AUTH_IMPL", "local")
    monkeypatch.delenv("AIDEE_RATE_LIMIT_DISABLED", raising=False)
    monkeypatch.setattr(repository, "_repo", None)
    monkeypatch.setattr(message_store, "_store", None)
    monkeypatch.setattr(auth, "_provider", None)
    rate_limit.reset_rate_limits()
    yield
    rate_limit.reset_rate_limits()


@pytest.fixture
def no_inference_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_GENERATIVE_AI_API_KEY", raising=False)


@pytest.fixture
def inference_key(monkeypatch):
    monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "test-key")
    monkeypatch.setenv("AIDEE_MAX_DURATION_S", "5")
