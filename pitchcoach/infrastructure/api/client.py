"""
REST client for the coaching service (/chat and /analyze).
"""
import logging
from typing import Optional, Dict, Any, List, Union

import requests

from ...config import API_BASE_URL, API_TIMEOUT, CHAT_PATH, ANALYZE_PATH

logger = logging.getLogger("api_client")


class CoachApiError(RuntimeError):
    """Non-2xx response or transport failure. ``status_code`` is 0 when no response arrived."""

    def __init__(self, message: str, status_code: int = 0, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class CoachApiClient:
    """Blocking client for the coaching endpoints. No automatic retries."""

    def __init__(self, base_url: str = API_BASE_URL, timeout: int = API_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def chat(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST /chat and return the decoded reply object."""
        data = self._post(CHAT_PATH, payload)
        if not isinstance(data, dict):
            raise CoachApiError("Chat response is not a JSON object", 200, data)
        return data

    def analyze(self, conversation: List[Dict[str, str]]) -> Union[Dict[str, Any], str]:
        """
        POST /analyze.

        Returns the decoded JSON object, or the raw body text when the service
        answered with something else (e.g. a fenced block); parsing is left to
        the caller.
        """
        return self._post(ANALYZE_PATH, {"conversation": conversation}, allow_text=True)

    def _post(self, path: str, body: Dict[str, Any], allow_text: bool = False) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("POST %s", url)

        try:
            resp = requests.post(url, json=body, timeout=self.timeout,
                                 headers={"Content-Type": "application/json"})
        except requests.RequestException as e:
            logger.error("Request to %s failed: %s", url, e)
            raise CoachApiError(f"Could not reach coaching service: {e}") from e

        if resp.status_code >= 400:
            error_body = self._safe_json(resp)
            error = None
            details = None
            if isinstance(error_body, dict):
                error = error_body.get("error")
                details = error_body.get("details")
            message = error or f"HTTP error: {resp.status_code}"
            logger.error("Coaching service error %s on %s: %s", resp.status_code, path, message)
            raise CoachApiError(message, resp.status_code, details)

        data = self._safe_json(resp)
        if data is None:
            if allow_text:
                return resp.text
            raise CoachApiError(f"Invalid JSON from {path}", resp.status_code, resp.text)
        return data

    @staticmethod
    def _safe_json(resp: requests.Response) -> Optional[Any]:
        try:
            return resp.json()
        except ValueError:
            return None
