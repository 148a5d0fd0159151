"""
Client for the Gemini ``generateContent`` REST endpoint.
"""

import base64
import logging
from typing import Any, Dict, Optional

import httpx

from core.config import settings
from utils.error_handlers import InferenceError

logger = logging.getLogger(__name__)


class GeminiClient:
    """Sends one instruction and one inline image, returns the reply text"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._api_key = api_key
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ANALYSIS_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def api_key(self) -> Optional[str]:
        # Read lazily so a key configured after import is still picked up
        return self._api_key or settings.GEMINI_API_KEY

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, prompt: str, image: bytes, mime_type: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image).decode("ascii"),
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {
                "temperature": settings.GEMINI_TEMPERATURE,
                "topK": 1,
                "topP": 1,
                "maxOutputTokens": settings.GEMINI_MAX_OUTPUT_TOKENS,
            },
        }

    async def generate(self, prompt: str, image: bytes, mime_type: str) -> str:
        """
        Ask the model about one image.

        Raises:
            InferenceError: missing credential, transport failure, non-2xx
                status, or a reply without any text
        """
        api_key = self.api_key
        if not api_key:
            raise InferenceError("Missing Gemini API key")

        headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        payload = self.build_payload(prompt, image, mime_type)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.endpoint, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(f"Gemini request failed: {status} {exc.response.text[:200]}")
                raise InferenceError(f"Gemini request failed with status {status}") from exc
            except httpx.HTTPError as exc:
                logger.error(f"HTTP error during Gemini request: {exc!r}")
                raise InferenceError(str(exc) or type(exc).__name__) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise InferenceError("Gemini returned a non-JSON response") from exc

        return self.extract_text(data)

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        """Concatenate the text parts of the first candidate"""
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise InferenceError(
                f"Gemini returned no candidates (blocked: {reason})" if reason
                else "Gemini returned no candidates"
            )

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text:
            finish = candidates[0].get("finishReason", "unknown")
            raise InferenceError(f"Gemini returned an empty response (finish reason: {finish})")
        return text


# Singleton instance
gemini_client = GeminiClient()
