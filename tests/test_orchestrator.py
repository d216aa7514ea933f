"""Tests for turn sequencing in ConversationOrchestrator."""

from __future__ import annotations

import pytest

from pitchcoach.simulation.events import EventType
from pitchcoach.simulation.models import Sender
from pitchcoach.simulation.schemas import CaptureState, ChatReply, TurnState
from pitchcoach.simulation.testing import create_mock_session_setup, network_error

RIFF_PAYLOAD = "UklGRg=="


def _record_events(orchestrator) -> list:
    events: list = []
    orchestrator.event_bus.subscribe_all(events.append)
    return events


@pytest.mark.asyncio
async def test_start_session_listens_and_counts_time(session_setup) -> None:
    orchestrator = session_setup["orchestrator"]

    ctx = orchestrator.start_session(session_setup["scenario"])

    assert orchestrator.state is TurnState.AWAITING_USER
    assert session_setup["capture"].is_listening
    assert orchestrator.timer.is_running
    assert ctx.transcript == []
    orchestrator.reset()


@pytest.mark.asyncio
async def test_utterance_gets_text_reply_and_capture_stays_on(session_setup, drain) -> None:
    orchestrator = session_setup["orchestrator"]
    engine = session_setup["engine"]
    orchestrator.start_session(session_setup["scenario"])

    engine.emit_final("Hi, I'd like to show you our scheduling tool.")
    assert orchestrator.state is TurnState.AI_THINKING
    await drain()

    request = session_setup["chat_service"].requests[0]
    assert request.user_transcript == "Hi, I'd like to show you our scheduling tool."
    assert request.conversation_history == []
    assert request.scenario.title == "Hesitant Client"
    assert orchestrator.state is TurnState.AWAITING_USER
    assert [m.sender for m in orchestrator.transcript] == [Sender.USER, Sender.AI]
    assert orchestrator.transcript[1].audio is None
    assert session_setup["capture"].is_listening


@pytest.mark.asyncio
async def test_utterances_during_pending_reply_are_kept_but_not_sent(drain) -> None:
    setup = create_mock_session_setup(hold_chat=True)
    orchestrator, engine, chat = setup["orchestrator"], setup["engine"], setup["chat_service"]
    events = _record_events(orchestrator)
    orchestrator.start_session(setup["scenario"])

    engine.emit_final("First line.")
    await drain()
    engine.emit_final("Second line.")
    engine.emit_final("Third line.")
    await drain()

    assert len(chat.requests) == 1
    assert [m.text for m in orchestrator.transcript] == ["First line.", "Second line.", "Third line."]
    assert sum(e.event_type is EventType.UTTERANCE_QUEUED for e in events) == 2

    chat.release.set()
    await drain()
    assert len(chat.requests) == 1
    assert orchestrator.state is TurnState.AWAITING_USER

    engine.emit_final("Fourth line.")
    await drain()

    # four utterances, two of them arrived while a reply was pending
    assert len(chat.requests) == 4 - 2
    assert orchestrator.get_metrics()["ai_requests"] == 2
    assert orchestrator.get_metrics()["utterances_queued"] == 2


@pytest.mark.asyncio
async def test_same_message_is_never_dispatched_twice(session_setup, drain) -> None:
    orchestrator = session_setup["orchestrator"]
    orchestrator.start_session(session_setup["scenario"])
    message = orchestrator.handle_utterance("Only once please.")
    await drain()

    orchestrator._dispatch(message)
    await drain()

    assert len(session_setup["chat_service"].requests) == 1


@pytest.mark.asyncio
async def test_audio_reply_pauses_capture_until_playback_ends(drain) -> None:
    setup = create_mock_session_setup(
        chat_responses=[ChatReply(ai_response="What would it cost us?", audio_content=RIFF_PAYLOAD)],
        hold_playback=True,
    )
    orchestrator, capture, sink = setup["orchestrator"], setup["capture"], setup["sink"]
    orchestrator.start_session(setup["scenario"])

    setup["engine"].emit_final("Our tool saves you ten hours a week.")
    await drain()

    assert orchestrator.state is TurnState.AI_SPEAKING
    assert capture.state is CaptureState.IDLE
    assert orchestrator.playback.is_playing
    assert sink.played == [b"RIFF"]
    assert orchestrator.transcript[-1].audio == RIFF_PAYLOAD

    sink.release.set()
    await drain()

    assert orchestrator.state is TurnState.AWAITING_USER
    assert capture.is_listening
    assert not orchestrator.playback.is_playing


@pytest.mark.asyncio
async def test_capture_and_playback_never_overlap(drain) -> None:
    setup = create_mock_session_setup(
        chat_responses=[
            ChatReply(ai_response="Tell me more.", audio_content=RIFF_PAYLOAD),
            ChatReply(ai_response="And the price?", audio_content=RIFF_PAYLOAD),
        ],
    )
    orchestrator, capture = setup["orchestrator"], setup["capture"]
    overlaps: list = []
    orchestrator.event_bus.subscribe_all(
        lambda event: overlaps.append(event.event_type)
        if capture.is_listening and orchestrator.playback.is_playing else None
    )
    orchestrator.start_session(setup["scenario"])

    setup["engine"].emit_final("Hello.")
    await drain()
    setup["engine"].emit_final("It integrates with your calendar.")
    await drain()

    assert len(setup["sink"].played) == 2
    assert overlaps == []


@pytest.mark.asyncio
async def test_failed_playback_returns_to_listening(drain) -> None:
    setup = create_mock_session_setup(
        chat_responses=[ChatReply(ai_response="Hmm.", audio_content=RIFF_PAYLOAD)],
        fail_playback=True,
    )
    orchestrator = setup["orchestrator"]
    events = _record_events(orchestrator)
    orchestrator.start_session(setup["scenario"])

    setup["engine"].emit_final("Any questions so far?")
    await drain()

    finished = [e for e in events if e.event_type is EventType.PLAYBACK_FINISHED]
    assert finished[0].data["succeeded"] is False
    assert orchestrator.state is TurnState.AWAITING_USER
    assert setup["capture"].is_listening


@pytest.mark.asyncio
async def test_text_only_reply_restarts_stopped_capture(drain) -> None:
    setup = create_mock_session_setup(hold_chat=True)
    orchestrator, capture = setup["orchestrator"], setup["capture"]
    orchestrator.start_session(setup["scenario"])

    setup["engine"].emit_final("Let me walk you through it.")
    await drain()
    orchestrator.stop_listening()
    assert capture.state is CaptureState.IDLE

    setup["chat_service"].release.set()
    await drain()

    assert orchestrator.state is TurnState.AWAITING_USER
    assert capture.is_listening


@pytest.mark.asyncio
async def test_network_error_is_surfaced_and_session_continues(drain) -> None:
    setup = create_mock_session_setup(chat_responses=[network_error()])
    orchestrator = setup["orchestrator"]
    events = _record_events(orchestrator)
    orchestrator.start_session(setup["scenario"])

    setup["engine"].emit_final("Can I have five minutes?")
    await drain()

    assert orchestrator.state is TurnState.AWAITING_USER
    assert "Connection refused" in orchestrator.last_error
    assert [m.sender for m in orchestrator.transcript] == [Sender.USER]
    errors = [e for e in events if e.event_type is EventType.ERROR_OCCURRED]
    assert errors[0].data["component"] == "ai_response"

    setup["engine"].emit_final("Let me try again.")
    await drain()
    assert len(setup["chat_service"].requests) == 2


@pytest.mark.asyncio
async def test_failed_reply_leaves_stopped_capture_off_until_resumed(drain) -> None:
    setup = create_mock_session_setup(chat_responses=[network_error()], hold_chat=True)
    orchestrator, capture = setup["orchestrator"], setup["capture"]
    orchestrator.start_session(setup["scenario"])

    setup["engine"].emit_final("Can I have five minutes?")
    await drain()
    orchestrator.stop_listening()
    assert capture.state is CaptureState.IDLE

    setup["chat_service"].release.set()
    await drain()

    assert orchestrator.state is TurnState.AWAITING_USER
    assert orchestrator.last_error
    assert capture.state is CaptureState.IDLE
    assert setup["engine"].start_calls == 1

    orchestrator.resume_listening()

    assert capture.is_listening
    assert setup["engine"].start_calls == 2


@pytest.mark.asyncio
async def test_empty_reply_goes_back_to_user(drain) -> None:
    setup = create_mock_session_setup(chat_responses=[ChatReply(ai_response="   ")])
    orchestrator = setup["orchestrator"]
    orchestrator.start_session(setup["scenario"])

    setup["engine"].emit_final("Hello?")
    await drain()

    assert orchestrator.state is TurnState.AWAITING_USER
    assert len(orchestrator.transcript) == 1


@pytest.mark.asyncio
async def test_context_is_sent_with_every_turn(session_setup, drain) -> None:
    orchestrator = session_setup["orchestrator"]
    orchestrator.start_session(session_setup["scenario"], "  Selling a CRM to a dental clinic ")

    for line in ["Good morning.", "We help clinics fill empty slots."]:
        session_setup["engine"].emit_final(line)
        await drain()

    contexts = [r.initial_context for r in session_setup["chat_service"].requests]
    assert contexts == ["Selling a CRM to a dental clinic"] * 2


@pytest.mark.asyncio
async def test_history_is_windowed(session_setup, drain) -> None:
    orchestrator = session_setup["orchestrator"]
    orchestrator.start_session(session_setup["scenario"])

    for i in range(4):
        session_setup["engine"].emit_final(f"Point {i}.")
        await drain()

    last = session_setup["chat_service"].requests[-1]
    assert last.user_transcript == "Point 3."
    assert len(last.conversation_history) == 4
    assert last.conversation_history[0].text == "Point 1."


@pytest.mark.asyncio
async def test_end_session_analyses_full_transcript(session_setup, drain) -> None:
    orchestrator = session_setup["orchestrator"]
    events = _record_events(orchestrator)
    orchestrator.start_session(session_setup["scenario"])
    session_setup["engine"].emit_final("Thanks for your time.")
    await drain()

    outcome = await orchestrator.end_session()

    assert outcome.available
    assert outcome.result.score == 72
    assert orchestrator.state is TurnState.SESSION_ENDED
    assert session_setup["capture"].state is CaptureState.IDLE
    assert not orchestrator.timer.is_running
    assert len(session_setup["analysis_service"].calls[0]) == 2
    assert events[-1].event_type is EventType.SESSION_ENDED
    assert events[-1].data["score"] == 72
    assert await orchestrator.end_session() is outcome


@pytest.mark.asyncio
async def test_end_session_without_messages_skips_analysis(session_setup) -> None:
    orchestrator = session_setup["orchestrator"]
    orchestrator.start_session(session_setup["scenario"])

    outcome = await orchestrator.end_session()

    assert outcome.skipped
    assert session_setup["analysis_service"].calls == []
    assert orchestrator.state is TurnState.SESSION_ENDED


@pytest.mark.asyncio
async def test_end_session_survives_analysis_failure(drain) -> None:
    setup = create_mock_session_setup(analysis_response=RuntimeError("503 Service Unavailable"))
    orchestrator = setup["orchestrator"]
    orchestrator.start_session(setup["scenario"])
    setup["engine"].emit_final("Shall we sign today?")
    await drain()

    outcome = await orchestrator.end_session()

    assert not outcome.available
    assert "503" in outcome.error
    assert orchestrator.state is TurnState.SESSION_ENDED


@pytest.mark.asyncio
async def test_late_reply_after_end_is_discarded(drain) -> None:
    setup = create_mock_session_setup(hold_chat=True)
    orchestrator = setup["orchestrator"]
    orchestrator.start_session(setup["scenario"])
    setup["engine"].emit_final("One last thing.")
    await drain()

    await orchestrator.end_session()
    setup["chat_service"].release.set()
    await drain()

    assert [m.sender for m in orchestrator.transcript] == [Sender.USER]
    assert orchestrator.state is TurnState.SESSION_ENDED
    assert orchestrator.handle_utterance("Hello?") is None


@pytest.mark.asyncio
async def test_resume_listening_after_capture_error(session_setup) -> None:
    orchestrator = session_setup["orchestrator"]
    events = _record_events(orchestrator)
    orchestrator.start_session(session_setup["scenario"])

    session_setup["engine"].emit_error("audio-capture")
    assert session_setup["capture"].state is CaptureState.IDLE
    assert any(e.event_type is EventType.CAPTURE_ERROR for e in events)

    orchestrator.resume_listening()

    assert session_setup["capture"].is_listening
    orchestrator.reset()


@pytest.mark.asyncio
async def test_new_session_replaces_the_previous_one(session_setup, drain) -> None:
    orchestrator = session_setup["orchestrator"]
    first = orchestrator.start_session(session_setup["scenario"])
    session_setup["engine"].emit_final("First attempt.")
    await drain()

    second = orchestrator.start_session(session_setup["scenario"])

    assert second.session_id != first.session_id
    assert orchestrator.transcript == []
    assert orchestrator.timer.elapsed_seconds == 0
    assert orchestrator.state is TurnState.AWAITING_USER
    orchestrator.reset()
