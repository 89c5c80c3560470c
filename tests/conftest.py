"""
Pytest configuration and fixtures for openjsonui tests.
"""
from __future__ import annotations

import pytest

from openjsonui import session as session_module
from openjsonui.canvas import CanvasController
from openjsonui.session import Session
from openjsonui.state import SharedStateStore
from openjsonui.tools import llm as llm_module

_ENV_VARS = (
    "OPENAI_API_KEY",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_API_BASE",
    "AZURE_OPENAI_API_VERSION",
    "AZURE_OPENAI_DEPLOYMENT_NAME",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "LANGFUSE_PUBLIC_KEY",
    "LANGFUSE_SECRET_KEY",
    "LANGFUSE_HOST",
    "AGENT_CONFIG_PATH",
)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1) -> int:
        self.now += ms
        return self.now


# ============================================================
# Environment
# ============================================================

@pytest.fixture(autouse=True)
def offline_environment(monkeypatch):
    """No language model, no tracing, and a fresh session registry per test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    llm_module._cached_llms.clear()
    monkeypatch.setattr(session_module, "_registry", None)
    yield
    llm_module._cached_llms.clear()


# ============================================================
# Core fixtures
# ============================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SharedStateStore(clock=clock)


@pytest.fixture
def canvas(clock):
    counter = iter(range(1, 10_000))
    return CanvasController(clock=clock, id_factory=lambda: f"inst-{next(counter)}")


@pytest.fixture
def session(clock):
    return Session("test-session", clock=clock)


@pytest.fixture
def weather_payload():
    return {"type": "weather", "id": "w1", "location": "Tokyo"}


@pytest.fixture
def form_payload():
    return {"type": "form", "id": "f1", "fields": [{"name": "email", "type": "email"}]}
