"""Gemini vision client for photo analysis."""

import base64
import json
from typing import Any, Dict, Optional

import httpx

from ..core.config import VisionConfig
from ..core.credentials import CredentialSelector
from ..core.logger import get_logger
from ..models.analysis import AnalysisResult
from ..models.media import MediaPayload

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class VisionAnalyzerClient:
    """Asks a multimodal model for category, title, date estimate and tags of an image."""

    def __init__(
        self,
        credentials: CredentialSelector,
        config: Optional[VisionConfig] = None,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the vision client."""
        self.credentials = credentials
        self.config = config or VisionConfig()
        self.base_url = base_url.rstrip('/')
        self.timeout = httpx.Timeout(self.config.timeout)
        self._transport = transport

        logger.info(f"Initialized vision client for model {self.config.model}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.credentials.require_api_key()}

    def build_request(self, content: bytes, mime_type: str) -> Dict[str, Any]:
        """Build the structured-output generateContent request body."""
        return {
            "contents": [{
                "parts": [
                    {"inline_data": {
                        "mime_type": mime_type,
                        "data": base64.b64encode(content).decode("ascii"),
                    }},
                    {"text": self.config.prompt},
                ]
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": AnalysisResult.response_schema(),
                "temperature": self.config.temperature,
            },
        }

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> AnalysisResult:
        """Extract the JSON answer from a generateContent response."""
        candidates = data.get("candidates") or []
        if not candidates:
            raise ValueError("Response has no candidates")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise ValueError("Empty response from model")

        return AnalysisResult.model_validate(json.loads(text))

    async def analyze(self, content: bytes, mime_type: str) -> AnalysisResult:
        """Analyze one image.

        Never raises: any transport, credential or parse failure is logged
        and answered with ``AnalysisResult.fallback()``.
        """
        try:
            request_data = self.build_request(content, mime_type)

            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/models/{self.config.model}:generateContent",
                    json=request_data,
                    headers=self._headers(),
                )
                response.raise_for_status()
                result = self.parse_response(response.json())

            logger.debug(f"Analysis result: category={result.category} title={result.title!r}")
            return result

        except Exception as e:
            logger.warning(f"Image analysis failed, using fallback values: {e}")
            return AnalysisResult.fallback()

    async def analyze_payload(self, payload: MediaPayload) -> AnalysisResult:
        """Analyze an ingested payload."""
        return await self.analyze(payload.content, payload.mime_type)
