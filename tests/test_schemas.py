"""Tests for wire schemas and analysis parsing."""

from __future__ import annotations

import pytest

from pitchcoach.simulation.schemas import (
    AnalysisValidationError,
    CaptureError,
    CaptureErrorKind,
    ChatReply,
    ChatRequest,
    parse_analysis_response,
)


def test_chat_request_serializes_with_wire_names() -> None:
    request = ChatRequest(
        user_transcript="We cut onboarding time in half.",
        scenario={"title": "Curious Client", "description": "Asks many questions."},
        conversation_history=[{"text": "Hi", "sender": "user"}],
    )

    payload = request.to_payload()

    assert payload["userTranscript"] == "We cut onboarding time in half."
    assert payload["conversationHistory"] == [{"text": "Hi", "sender": "user"}]
    assert "initialContext" not in payload


def test_chat_request_includes_context_when_set() -> None:
    request = ChatRequest(
        user_transcript="Hello",
        scenario={"title": "t", "description": "d"},
        initial_context="Selling a CRM to a dental clinic",
    )

    assert request.to_payload()["initialContext"] == "Selling a CRM to a dental clinic"


def test_chat_reply_accepts_null_audio() -> None:
    reply = ChatReply.model_validate({"aiResponse": "Sounds expensive.", "audioContent": None})

    assert reply.ai_response == "Sounds expensive."
    assert reply.audio_content is None


def test_parse_plain_json_string() -> None:
    result = parse_analysis_response('{"score": 64.5, "advice": ["a"], "improvements": ["b", "c"]}')

    assert result.score == 64.5
    assert result.improvements == ["b", "c"]


def test_parse_accepts_boundary_scores() -> None:
    assert parse_analysis_response({"score": 0, "advice": [], "improvements": []}).score == 0
    assert parse_analysis_response({"score": 100, "advice": [], "improvements": []}).score == 100


@pytest.mark.parametrize(
    "raw",
    [
        {"score": True, "advice": [], "improvements": []},
        {"score": -1, "advice": [], "improvements": []},
        {"score": 50, "advice": [1, 2], "improvements": []},
        "[1, 2, 3]",
        "no json here",
    ],
)
def test_parse_rejects_invalid_reports(raw) -> None:
    with pytest.raises(AnalysisValidationError):
        parse_analysis_response(raw)


def test_capture_error_from_unknown_code() -> None:
    error = CaptureError.from_engine(None)

    assert error.kind is CaptureErrorKind.OTHER
    assert "unknown" in error.message
