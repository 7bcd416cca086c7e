"""
Shared fixtures for gridprompt tests.

Provides an in-process remote client and a fake clock so scheduler and
rate limiter tests never touch the network or wait on real time.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from gridprompt.client import GenerateResponse


class FakeClock:
    """Manually advanced monotonic clock with a recording async sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeRemoteClient:
    """
    Remote client double.

    ``respond`` maps a prompt to response text; it may raise to simulate a
    failure. ``delay`` is awaited before responding and may be a callable
    of the prompt.
    """

    def __init__(
        self,
        respond: Callable[[str], str] | None = None,
        delay: float | Callable[[str], float] = 0.0,
    ):
        self.respond = respond or (lambda prompt: '{"answer": "ok"}')
        self.delay = delay
        self.prompts: list[str] = []
        self.log: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def generate(self, prompt: str) -> GenerateResponse:
        self.prompts.append(prompt)
        self.log.append(("start", prompt))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = self.delay(prompt) if callable(self.delay) else self.delay
            await asyncio.sleep(delay)
            return GenerateResponse(text=self.respond(prompt))
        finally:
            self.active -= 1
            self.log.append(("end", prompt))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_client() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def sample_rows() -> list[dict[str, Any]]:
    """Five rows keyed by company name."""
    return [{"name": f"company-{i}", "country": "JP"} for i in range(5)]


@pytest.fixture
def make_client() -> type[FakeRemoteClient]:
    """The FakeRemoteClient class, for tests that need custom behavior."""
    return FakeRemoteClient
