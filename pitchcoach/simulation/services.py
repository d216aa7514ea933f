"""
Service classes for the rehearsal system.

The orchestrator only sees the async ChatService / AnalysisService
interfaces; the Api* implementations run the blocking REST client in the
loop's default executor so the event loop keeps handling capture events.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .schemas import ChatRequest, ChatReply
from ..infrastructure.api import CoachApiClient, CoachApiError

logger = logging.getLogger("services")


class ChatServiceError(RuntimeError):
    """The AI-response service could not produce a reply."""

    def __init__(self, message: str, status_code: int = 0, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ChatService(ABC):
    """Produces the simulated client's reply to one utterance."""

    @abstractmethod
    async def reply(self, request: ChatRequest) -> ChatReply:
        """Raises ChatServiceError on any failure."""


class AnalysisService(ABC):
    """Scores a complete transcript."""

    @abstractmethod
    async def analyze(self, conversation: List[Dict[str, str]]) -> Union[Dict[str, Any], str]:
        """Return the raw report (object or text). Raises on service failure."""


class ApiChatService(ChatService):
    """ChatService backed by POST /chat."""

    def __init__(self, client: CoachApiClient):
        self.client = client

    async def reply(self, request: ChatRequest) -> ChatReply:
        loop = asyncio.get_running_loop()
        payload = request.to_payload()
        try:
            data = await loop.run_in_executor(None, self.client.chat, payload)
        except CoachApiError as e:
            raise ChatServiceError(e.message, e.status_code, e.details) from e

        try:
            return ChatReply.model_validate(data)
        except ValidationError as e:
            logger.error("Malformed chat reply: %s", data)
            raise ChatServiceError(f"Malformed reply from AI service: {e}", 200, data) from e


class ApiAnalysisService(AnalysisService):
    """AnalysisService backed by POST /analyze."""

    def __init__(self, client: CoachApiClient):
        self.client = client

    async def analyze(self, conversation: List[Dict[str, str]]) -> Union[Dict[str, Any], str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.client.analyze, conversation)


def build_api_services(base_url: str, timeout: Optional[int] = None):
    """Create the chat and analysis services sharing one REST client."""
    client = CoachApiClient(base_url) if timeout is None else CoachApiClient(base_url, timeout)
    return ApiChatService(client), ApiAnalysisService(client)
