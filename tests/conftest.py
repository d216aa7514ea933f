from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import pytest

from pitchcoach.simulation.testing import create_mock_session_setup


@pytest.fixture
def session_setup() -> dict:
    return create_mock_session_setup()


@pytest.fixture
def drain() -> Callable[..., Awaitable[None]]:
    """Let pending tasks and call_soon callbacks run."""

    async def _drain(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _drain
