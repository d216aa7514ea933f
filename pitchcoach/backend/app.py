"""FastAPI reference backend serving /api/chat and /api/analyze."""

import logging
from typing import Any, Optional

from fastapi import FastAPI, APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..config import Config, get_config
from ..simulation.schemas import ChatRequest, AnalysisRequest
from ..infrastructure.llm import VertexRestClient, LLMError, ContentBlockedError
from .engine import ClientSimulator, PitchAnalyzer, AnalysisRejected, default_synthesizer

logger = logging.getLogger("backend")


def _error(status_code: int, error: str, details: Any = None) -> JSONResponse:
    body = {"error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(simulator: Optional[ClientSimulator] = None,
               analyzer: Optional[PitchAnalyzer] = None,
               config: Optional[Config] = None) -> FastAPI:
    """
    Build the backend application.

    Without an explicit simulator/analyzer both are backed by Vertex AI, which
    requires GOOGLE_CLOUD_PROJECT to be configured.
    """
    if simulator is None or analyzer is None:
        config = config or get_config()
        llm_client = VertexRestClient(
            project=config.require_project(),
            credentials_json=config.google_application_credentials,
        )
        if simulator is None:
            simulator = ClientSimulator(llm_client, default_synthesizer(config.tts_voice, config.language_code))
        if analyzer is None:
            analyzer = PitchAnalyzer(llm_client)

    app = FastAPI(title="PitchCoach backend")

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    router = APIRouter(prefix="/api")

    @router.get("/test")
    async def test():
        return {"message": "PitchCoach backend is running"}

    @router.post("/chat")
    async def chat(request: Request):
        body = await _read_json(request)
        if not isinstance(body, dict) or not body.get("userTranscript") or not body.get("scenario"):
            return _error(400, "userTranscript and scenario are required.")

        try:
            chat_request = ChatRequest.model_validate(body)
        except ValidationError as e:
            return _error(400, "Invalid chat request.", e.errors(include_url=False, include_context=False))

        try:
            reply = await run_in_threadpool(simulator.reply, chat_request)
        except ContentBlockedError as e:
            logger.warning(f"Chat reply blocked: {e}")
            return _error(422, "The model declined to answer this message.", e.details)
        except LLMError as e:
            logger.error(f"Chat model error: {e}")
            return _error(500, "Model service error.", e.details)
        except Exception as e:
            logger.exception("Error in /chat")
            return _error(500, "Internal server error.", str(e))

        return reply.model_dump(by_alias=True)

    @router.post("/analyze")
    async def analyze(request: Request):
        body = await _read_json(request)
        try:
            analysis_request = AnalysisRequest.model_validate(body if isinstance(body, dict) else {})
        except ValidationError as e:
            return _error(400, "Invalid analysis request.", e.errors(include_url=False, include_context=False))
        if not analysis_request.conversation:
            return _error(400, "conversation must not be empty.")

        conversation = [entry.model_dump() for entry in analysis_request.conversation]
        try:
            result = await run_in_threadpool(analyzer.analyze, conversation)
        except AnalysisRejected as e:
            logger.warning(f"Rejected analysis: {e}")
            return _error(502, "The model returned an invalid analysis.", e.raw)
        except LLMError as e:
            logger.error(f"Analysis model error: {e}")
            return _error(500, "Model service error.", e.details)
        except Exception as e:
            logger.exception("Error in /analyze")
            return _error(500, "Internal server error.", str(e))

        return {
            "score": result.score,
            "advice": result.advice,
            "improvements": result.improvements,
        }

    app.include_router(router)
    return app
