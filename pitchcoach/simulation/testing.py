"""
Testing infrastructure with mock services for the rehearsal system.
"""
import asyncio
from typing import Dict, Any, List, Optional, Union

from .models import Message, Sender, Scenario
from .schemas import ChatRequest, ChatReply, Segment
from .capture import SpeechEngine, SpeechCaptureManager
from .playback import AudioSink
from .services import ChatService, AnalysisService, ChatServiceError
from .analysis import AnalysisTrigger
from .timer import SessionTimer
from .windowing import HistoryWindower
from .orchestrator import ConversationOrchestrator


class MockSpeechEngine(SpeechEngine):
    """Scriptable speech engine. Tests push recognition events with the emit_* helpers."""

    def __init__(self, end_on_stop: bool = True, fail_on_start: int = 0):
        super().__init__()
        self.end_on_stop = end_on_stop
        self.fail_on_start = fail_on_start  # number of upcoming start() calls that raise
        self.running = False
        self.start_calls = 0
        self.stop_calls = 0

    def start(self) -> None:
        self.start_calls += 1
        if self.fail_on_start > 0:
            self.fail_on_start -= 1
            raise RuntimeError("mock engine refused to start")
        self.running = True

    def stop(self) -> None:
        self.stop_calls += 1
        if self.end_on_stop:
            self.emit_end()

    def emit_segments(self, segments: List[Segment]) -> None:
        self.listener.on_segments(segments)

    def emit_final(self, text: str) -> None:
        self.emit_segments([Segment(text=text, is_final=True)])

    def emit_interim(self, text: str) -> None:
        self.emit_segments([Segment(text=text, is_final=False)])

    def emit_error(self, code: str, detail: Optional[str] = None) -> None:
        self.running = False
        self.listener.on_engine_error(code, detail)

    def emit_end(self) -> None:
        self.running = False
        self.listener.on_engine_end()


class MockAudioSink(AudioSink):
    """Records played clips; can fail or block until released."""

    def __init__(self, fail: bool = False, hold: bool = False):
        self.fail = fail
        self.played: List[bytes] = []
        self.release = asyncio.Event() if hold else None

    async def play(self, audio: bytes) -> None:
        self.played.append(audio)
        if self.release is not None:
            await self.release.wait()
        if self.fail:
            raise RuntimeError("mock playback rejected")


class MockChatService(ChatService):
    """Returns scripted replies in order; exceptions in the script are raised."""

    def __init__(self, responses: Optional[List[Union[ChatReply, Exception]]] = None, hold: bool = False):
        self.responses = list(responses or [])
        self.requests: List[ChatRequest] = []
        self.release = asyncio.Event() if hold else None

    async def reply(self, request: ChatRequest) -> ChatReply:
        self.requests.append(request)
        if self.release is not None:
            await self.release.wait()
        if self.responses:
            response = self.responses.pop(0)
        else:
            response = ChatReply(ai_response="Interesting, tell me more.", audio_content=None)
        if isinstance(response, Exception):
            raise response
        return response


class MockAnalysisService(AnalysisService):
    """Returns (or raises) a fixed analysis response."""

    def __init__(self, response: Any = None):
        self.response = response if response is not None else {
            "score": 72,
            "advice": ["Ask more open questions"],
            "improvements": ["Handle price objections earlier"],
        }
        self.calls: List[List[Dict[str, str]]] = []

    async def analyze(self, conversation: List[Dict[str, str]]) -> Union[Dict[str, Any], str]:
        self.calls.append(conversation)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def create_test_scenario() -> Scenario:
    return Scenario(
        id="hesitant",
        title="Hesitant Client",
        description="The client shows interest but voices doubts and needs reassurance.",
    )


def create_test_transcript() -> List[Message]:
    """A short two-turn conversation."""
    return [
        Message(id="m1_user", text="Hello, I'd like to present our CRM.", sender=Sender.USER),
        Message(id="m2_ai", text="I'm not sure we need a new tool.", sender=Sender.AI),
        Message(id="m3_user", text="It saves your team two hours a week.", sender=Sender.USER),
        Message(id="m4_ai", text="How much does it cost?", sender=Sender.AI, audio="UklGRg=="),
    ]


def create_mock_session_setup(chat_responses: Optional[List[Union[ChatReply, Exception]]] = None,
                              analysis_response: Any = None,
                              hold_chat: bool = False,
                              hold_playback: bool = False,
                              fail_playback: bool = False,
                              turn_window: int = 2) -> Dict[str, Any]:
    """Create a complete mock session setup for testing."""
    engine = MockSpeechEngine()
    capture = SpeechCaptureManager(engine)
    sink = MockAudioSink(fail=fail_playback, hold=hold_playback)
    chat_service = MockChatService(chat_responses, hold=hold_chat)
    analysis_service = MockAnalysisService(analysis_response)
    orchestrator = ConversationOrchestrator(
        capture=capture,
        chat_service=chat_service,
        analysis_trigger=AnalysisTrigger(analysis_service),
        audio_sink=sink,
        timer=SessionTimer(interval=0.01),
        windower=HistoryWindower(turn_window),
    )
    return {
        "engine": engine,
        "capture": capture,
        "sink": sink,
        "chat_service": chat_service,
        "analysis_service": analysis_service,
        "orchestrator": orchestrator,
        "scenario": create_test_scenario(),
    }


def network_error(message: str = "Connection refused") -> ChatServiceError:
    return ChatServiceError(f"Could not reach coaching service: {message}")
