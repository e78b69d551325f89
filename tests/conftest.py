"""Pytest configuration and fixtures.

Provides environment isolation, marker registration and small test doubles
for provider SDK clients. Fixtures marked autouse apply to every test.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os
from typing import Any

import pytest

from switchyard.types import CompletionResponse, StreamChunk, TokenUsage

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeProvider:
    """Provider test double for dispatcher behavior verification.

    Records calls and returns configurable results. Set ``error`` to make
    every network-shaped method raise it.
    """

    kind: str = "local"
    ready: bool = True
    models: list[str] = field(default_factory=lambda: ["fake-model"])
    valid: bool = True
    error: BaseException | None = None
    chunks: list[str] = field(default_factory=lambda: ["a", "b"])
    complete_calls: list[tuple[Any, Any]] = field(default_factory=list)
    closed: bool = False

    def is_ready(self) -> bool:
        return self.ready

    def get_default_model(self) -> str:
        return "fake-model"

    async def list_models(self) -> list[str]:
        if self.error is not None:
            raise self.error
        return list(self.models)

    async def validate_credentials(self) -> bool:
        if self.error is not None:
            raise self.error
        return self.valid

    async def complete(self, messages: Any, options: Any = None) -> CompletionResponse:
        self.complete_calls.append((messages, options))
        if self.error is not None:
            raise self.error
        return CompletionResponse(
            id=f"{self.kind}-1",
            model="fake-model",
            content=f"from {self.kind}",
            finish_reason="stop",
            usage=TokenUsage.from_counts(1, 1),
            latency_ms=0.0,
        )

    async def stream(self, messages: Any, options: Any = None):
        del messages, options
        for text in self.chunks:
            yield StreamChunk(id=f"{self.kind}-s", content=text)
        yield StreamChunk(id=f"{self.kind}-s", finish_reason="stop")

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_provider_factory():
    """Return the FakeProvider class for building dispatcher doubles."""
    return FakeProvider


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "switchyard.config.load_dotenv",
            lambda *_args, **_kwargs: False,
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears OPENAI_*, ANTHROPIC_* and LOCAL_LLM_* env vars to prevent test
    pollution. Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith(("OPENAI_", "ANTHROPIC_", "LOCAL_LLM_")):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging & Markers
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "contract: Provider wire-format characterization tests",
        "integration: Component integration tests with faked transports",
        "allow_dotenv: Let python-dotenv read .env files",
        "allow_env_pollution: Keep provider environment variables",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)
