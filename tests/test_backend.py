"""Tests for the reference backend routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi.testclient import TestClient

from pitchcoach.backend import AnalysisRejected, ClientSimulator, CoachPrompts, PitchAnalyzer, create_app
from pitchcoach.infrastructure.llm import ContentBlockedError, LLMError
from pitchcoach.simulation.models import AnalysisResult
from pitchcoach.simulation.schemas import ChatReply, ChatRequest

SCENARIO = {"title": "Budget-Conscious Client", "description": "Everything is too expensive."}


@dataclass
class _FakeSimulator:
    reply_text: str = "That sounds pricey."
    error: Exception | None = None
    requests: list[ChatRequest] = field(default_factory=list)

    def reply(self, request: ChatRequest) -> ChatReply:
        self.requests.append(request)
        if self.error:
            raise self.error
        return ChatReply(ai_response=self.reply_text, audio_content="UklGRg==")


@dataclass
class _FakeAnalyzer:
    error: Exception | None = None
    conversations: list[Any] = field(default_factory=list)

    def analyze(self, conversation):
        self.conversations.append(conversation)
        if self.error:
            raise self.error
        return AnalysisResult(score=81, advice=["Strong opener"], improvements=["Quantify savings"])


def _client(simulator=None, analyzer=None) -> TestClient:
    return TestClient(create_app(simulator=simulator or _FakeSimulator(), analyzer=analyzer or _FakeAnalyzer()))


def test_liveness_route() -> None:
    resp = _client().get("/api/test")

    assert resp.status_code == 200
    assert "running" in resp.json()["message"]


def test_chat_returns_reply_and_audio() -> None:
    simulator = _FakeSimulator()

    resp = _client(simulator).post("/api/chat", json={
        "userTranscript": "It pays for itself in three months.",
        "scenario": SCENARIO,
        "conversationHistory": [{"text": "Hello", "sender": "user"}, {"text": "Hi.", "sender": "ai"}],
        "initialContext": "Selling solar panels",
    })

    assert resp.status_code == 200
    assert resp.json() == {"aiResponse": "That sounds pricey.", "audioContent": "UklGRg=="}
    request = simulator.requests[0]
    assert request.initial_context == "Selling solar panels"
    assert len(request.conversation_history) == 2


@pytest.mark.parametrize(
    "body",
    [
        {"scenario": SCENARIO},
        {"userTranscript": "Hello"},
        {"userTranscript": "", "scenario": SCENARIO},
    ],
)
def test_chat_requires_transcript_and_scenario(body) -> None:
    resp = _client().post("/api/chat", json=body)

    assert resp.status_code == 400
    assert "error" in resp.json()


def test_chat_rejects_malformed_scenario() -> None:
    resp = _client().post("/api/chat", json={"userTranscript": "Hi", "scenario": {"title": "only a title"}})

    assert resp.status_code == 400
    assert resp.json()["details"]


def test_blocked_content_maps_to_422() -> None:
    simulator = _FakeSimulator(error=ContentBlockedError("Prompt blocked: SAFETY", {"blockReason": "SAFETY"}))

    resp = _client(simulator).post("/api/chat", json={"userTranscript": "...", "scenario": SCENARIO})

    assert resp.status_code == 422
    assert resp.json()["details"] == {"blockReason": "SAFETY"}


def test_model_failure_maps_to_500() -> None:
    simulator = _FakeSimulator(error=LLMError("Vertex REST error 503", "unavailable"))

    resp = _client(simulator).post("/api/chat", json={"userTranscript": "Hi", "scenario": SCENARIO})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Model service error.", "details": "unavailable"}


def test_analyze_returns_report() -> None:
    analyzer = _FakeAnalyzer()

    resp = _client(analyzer=analyzer).post("/api/analyze", json={
        "conversation": [{"text": "Hello", "sender": "user"}],
    })

    assert resp.status_code == 200
    assert resp.json() == {"score": 81, "advice": ["Strong opener"], "improvements": ["Quantify savings"]}
    assert analyzer.conversations == [[{"text": "Hello", "sender": "user"}]]


def test_analyze_rejects_empty_conversation() -> None:
    resp = _client().post("/api/analyze", json={"conversation": []})

    assert resp.status_code == 400


def test_invalid_analysis_maps_to_502() -> None:
    analyzer = _FakeAnalyzer(error=AnalysisRejected("bad score", '{"score": "great"}'))

    resp = _client(analyzer=analyzer).post("/api/analyze", json={
        "conversation": [{"text": "Hello", "sender": "user"}],
    })

    assert resp.status_code == 502
    assert resp.json()["details"] == '{"score": "great"}'


class _FakeLLM:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls: list[tuple] = []

    def generate_chat(self, system_instruction, history, message, temperature=0.0, max_output_tokens=512):
        self.calls.append((system_instruction, history, message))
        return self.text

    def generate_content(self, prompt_text, temperature=0.0, max_output_tokens=512):
        self.calls.append((prompt_text,))
        return self.text


def test_simulator_maps_history_roles_and_voices_reply() -> None:
    llm = _FakeLLM("  Why should I switch?  ")
    simulator = ClientSimulator(llm, synthesizer=lambda text: "QUJD")
    request = ChatRequest(
        user_transcript="Our support is 24/7.",
        scenario=SCENARIO,
        conversation_history=[{"text": "Hello", "sender": "user"}, {"text": "Hi.", "sender": "ai"}],
    )

    reply = simulator.reply(request)

    assert reply.ai_response == "Why should I switch?"
    assert reply.audio_content == "QUJD"
    system_instruction, history, message = llm.calls[0]
    assert SCENARIO["description"] in system_instruction
    assert [h["role"] for h in history] == ["user", "model"]
    assert message == "Our support is 24/7."


def test_simulator_first_turn_wraps_opening_line() -> None:
    llm = _FakeLLM("Who are you?")
    simulator = ClientSimulator(llm)

    reply = simulator.reply(ChatRequest(user_transcript="Good morning!", scenario=SCENARIO))

    assert reply.audio_content is None
    _, history, message = llm.calls[0]
    assert history == []
    assert message == CoachPrompts.first_turn("Good morning!")


def test_simulator_replies_without_audio_when_tts_fails() -> None:
    def broken_tts(text: str) -> str:
        raise RuntimeError("TTS quota exceeded")

    simulator = ClientSimulator(_FakeLLM("Fine."), synthesizer=broken_tts)

    reply = simulator.reply(ChatRequest(user_transcript="Hi", scenario=SCENARIO))

    assert reply.ai_response == "Fine."
    assert reply.audio_content is None


def test_simulator_prompt_includes_seller_context() -> None:
    prompt = CoachPrompts.client_simulator("t", "d", "We sell payroll software")

    assert "We sell payroll software" in prompt
    assert "Never say that you are an AI" in prompt


def test_analyzer_parses_fenced_output() -> None:
    llm = _FakeLLM('```json\n{"score": 77, "advice": ["a"], "improvements": ["b"]}\n```')

    result = PitchAnalyzer(llm).analyze([{"text": "Hi", "sender": "user"}])

    assert result.score == 77
    assert "Salesperson: Hi" in llm.calls[0][0]


def test_analyzer_rejects_invalid_output() -> None:
    with pytest.raises(AnalysisRejected) as excinfo:
        PitchAnalyzer(_FakeLLM("no idea")).analyze([{"text": "Hi", "sender": "user"}])

    assert excinfo.value.raw == "no idea"
