"""
Vertex AI REST client for LLM interactions.
"""
import json
import logging
from typing import Optional, Dict, Any, List

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS

logger = logging.getLogger("llm_client")

BLOCKED_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}


class LLMError(RuntimeError):
    """The model endpoint returned an error."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class ContentBlockedError(LLMError):
    """The provider refused the prompt or the answer on policy grounds."""


class VertexRestClient:
    """REST-based client for Vertex AI Gemini models."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT):
        self.project = project
        self.location = location
        self.model = model
        self.credentials_json = credentials_json
        self.base_url = f"https://{self.location}-aiplatform.googleapis.com/v1"
        self.model_resource = f"projects/{self.project}/locations/{self.location}/publishers/google/models/{self.model}"
        self._token = None
        self.timeout = timeout

    def _refresh_token(self):
        """Refresh the OAuth token for API calls."""
        if self.credentials_json:
            creds = service_account.Credentials.from_service_account_file(
                self.credentials_json,
                scopes=["https://www.googleapis.com/auth/cloud-platform"],
            )
        else:
            creds, _ = google.auth.default(scopes=["https://www.googleapis.com/auth/cloud-platform"])

        auth_req = google.auth.transport.requests.Request()
        creds.refresh(auth_req)
        self._token = creds.token

    def _ensure_token(self):
        """Ensure we have a valid token, refreshing if needed."""
        if not self._token:
            self._refresh_token()

    def generate_content(self,
                         prompt_text: str,
                         temperature: float = 0.0,
                         max_output_tokens: int = MAX_OUTPUT_TOKENS) -> str:
        """Single-prompt generation."""
        contents = [{"role": "user", "parts": [{"text": prompt_text}]}]
        return self._generate(contents, temperature, max_output_tokens)

    def generate_chat(self,
                      system_instruction: str,
                      history: List[Dict[str, str]],
                      message: str,
                      temperature: float = 0.0,
                      max_output_tokens: int = MAX_OUTPUT_TOKENS) -> str:
        """
        Multi-turn generation.

        Args:
            system_instruction: Role and rules for the model
            history: Prior turns as {"role": "user"|"model", "text": ...}
            message: The new user turn
        """
        contents = [{"role": h["role"], "parts": [{"text": h["text"]}]} for h in history]
        contents.append({"role": "user", "parts": [{"text": message}]})
        return self._generate(contents, temperature, max_output_tokens, system_instruction)

    def _generate(self,
                  contents: List[Dict[str, Any]],
                  temperature: float,
                  max_output_tokens: int,
                  system_instruction: Optional[str] = None) -> str:
        self._ensure_token()
        url = f"{self.base_url}/{self.model_resource}:generateContent"

        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": float(temperature),
                "maxOutputTokens": int(max_output_tokens),
            },
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

        resp = requests.post(url, headers=headers, json=body, timeout=self.timeout)
        if resp.status_code >= 400:
            raise LLMError(f"Vertex REST error {resp.status_code}", resp.text)

        resp_json = resp.json()
        self._raise_if_blocked(resp_json)
        return self._parse_response_text(resp_json)

    @staticmethod
    def _raise_if_blocked(resp_json: Dict[str, Any]) -> None:
        feedback = resp_json.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            raise ContentBlockedError(f"Prompt blocked: {feedback['blockReason']}", feedback)
        for cand in resp_json.get("candidates", []):
            if cand.get("finishReason") in BLOCKED_FINISH_REASONS and not cand.get("content"):
                raise ContentBlockedError(f"Response blocked: {cand['finishReason']}",
                                          cand.get("safetyRatings"))

    def _parse_response_text(self, resp_json: Dict[str, Any]) -> str:
        """
        Parse response JSON to extract text content.
        Tries Vertex schema first, then falls back to alternatives.
        """
        # Vertex schema: candidates[0].content.parts[*].text
        cands = resp_json.get("candidates", [])
        if cands:
            content = cands[0].get("content", {})
            parts = content.get("parts", [])
            texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)
            if isinstance(content.get("text"), str):
                return content["text"]

        # Direct text fallback
        if isinstance(resp_json.get("text"), str):
            return resp_json["text"]

        # Last resort: return JSON for inspection
        logger.warning("Unexpected Vertex response shape")
        return json.dumps(resp_json, separators=(",", ":"))
