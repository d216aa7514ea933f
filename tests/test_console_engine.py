"""Tests for typed input as a speech engine."""

from __future__ import annotations

import asyncio
import io

import pytest

from pitchcoach.infrastructure.audio.engines import ConsoleSpeechEngine
from pitchcoach.simulation.capture import SpeechCaptureManager
from pitchcoach.simulation.schemas import CaptureState


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_lines_become_utterances_and_commands() -> None:
    commands: list[str] = []
    finals: list[str] = []
    engine = ConsoleSpeechEngine(on_command=commands.append, stream=io.StringIO("We save you money.\n\n/end\n"))
    capture = SpeechCaptureManager(engine)
    capture.subscribe(finals.append)

    capture.start()
    await _wait_for(lambda: "/end" in commands)

    assert finals == ["We save you money."]
    assert capture.state is CaptureState.LISTENING


@pytest.mark.asyncio
async def test_end_of_input_reports_end_command() -> None:
    commands: list[str] = []
    engine = ConsoleSpeechEngine(on_command=commands.append, stream=io.StringIO(""))
    capture = SpeechCaptureManager(engine)

    capture.start()
    await _wait_for(lambda: bool(commands))

    assert commands == ["/end"]


@pytest.mark.asyncio
async def test_lines_typed_while_stopped_are_delivered_on_restart(drain) -> None:
    commands: list[str] = []
    finals: list[str] = []
    engine = ConsoleSpeechEngine(on_command=commands.append, stream=io.StringIO(""))
    capture = SpeechCaptureManager(engine)
    capture.subscribe(finals.append)
    capture.start()
    await _wait_for(lambda: bool(commands))

    capture.stop()
    await drain()
    assert capture.state is CaptureState.IDLE

    engine._on_line("Typed while the client was talking.\n")
    assert finals == []

    capture.start()
    await drain()

    assert finals == ["Typed while the client was talking."]
