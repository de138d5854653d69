"""Veo client turning a still photo into a short video clip."""

import asyncio
import base64
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from ..core.config import VideoConfig
from ..core.credentials import CredentialSelector
from ..core.exceptions import (
    AnimationTimeoutError,
    AuthorizationError,
    MalformedResultError,
    VideoGenerationError,
)
from ..core.logger import get_logger
from ..utils.object_urls import ObjectURLRegistry

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Error texts the provider returns for a key it does not accept.
AUTHORIZATION_MARKERS = (
    "Requested entity was not found",
    "API key not valid",
    "API_KEY_INVALID",
    "PERMISSION_DENIED",
)


def is_authorization_failure(status_code: Optional[int], message: str) -> bool:
    """Decide whether a failure means the selected credential is unusable."""
    if status_code in (401, 403):
        return True
    return any(marker in message for marker in AUTHORIZATION_MARKERS)


def _error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        error = payload.get("error", payload)
        if isinstance(error, dict):
            return str(error.get("message") or error.get("status") or error)
        return str(error)
    return str(payload)


class VideoGeneratorClient:
    """Submits image-to-video jobs and polls them until a video is available.

    The finished video is downloaded into an ``ObjectURLRegistry`` and
    returned as a ``blob:`` reference.
    """

    def __init__(
        self,
        credentials: CredentialSelector,
        object_urls: ObjectURLRegistry,
        config: Optional[VideoConfig] = None,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.credentials = credentials
        self.object_urls = object_urls
        self.config = config or VideoConfig()
        self.base_url = base_url.rstrip('/')
        self.timeout = httpx.Timeout(self.config.timeout)
        self._transport = transport
        self._sleep = sleep

        logger.info(f"Initialized video client for model {self.config.model}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    def build_prompt(self, description: str) -> str:
        return self.config.prompt_template.format(prompt=description)

    def build_request(self, content: bytes, mime_type: str, description: str) -> Dict[str, Any]:
        """Build the predictLongRunning request body."""
        return {
            "instances": [{
                "prompt": self.build_prompt(description),
                "image": {
                    "bytesBase64Encoded": base64.b64encode(content).decode("ascii"),
                    "mimeType": mime_type,
                },
            }],
            "parameters": {
                "sampleCount": self.config.number_of_videos,
                "resolution": self.config.resolution,
                "aspectRatio": self.config.aspect_ratio,
            },
        }

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: Union[str, httpx.URL],
        stage: str,
        **kwargs,
    ) -> httpx.Response:
        """Send a request, mapping failures onto the generation error types."""
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise VideoGenerationError(f"{stage} failed: {e}") from e

        if response.is_error:
            try:
                message = _error_message(response.json())
            except ValueError:
                message = response.text
            if is_authorization_failure(response.status_code, message):
                raise AuthorizationError(f"{stage} rejected: {message}")
            raise VideoGenerationError(f"{stage} failed with HTTP {response.status_code}: {message}")

        return response

    @staticmethod
    def extract_video_uri(operation: Dict[str, Any]) -> str:
        """Pull the download locator out of a finished operation."""
        response = operation.get("response") or {}

        samples = (response.get("generateVideoResponse") or {}).get("generatedSamples")
        if not samples:
            samples = response.get("generatedVideos")

        try:
            uri = samples[0]["video"]["uri"]
        except (TypeError, IndexError, KeyError):
            raise MalformedResultError("Finished job has no generated video") from None

        if not uri:
            raise MalformedResultError("Finished job returned an empty video locator")
        return uri

    async def submit(self, client: httpx.AsyncClient, content: bytes, mime_type: str, description: str) -> Dict[str, Any]:
        response = await self._send(
            client, "POST",
            f"{self.base_url}/models/{self.config.model}:predictLongRunning",
            "Job submission",
            json=self.build_request(content, mime_type, description),
            headers={"x-goog-api-key": self.credentials.require_api_key()},
        )
        operation = response.json()
        if not operation.get("name"):
            raise MalformedResultError("Job submission returned no operation name")
        logger.info(f"Submitted video job {operation['name']}")
        return operation

    async def wait_for_completion(self, client: httpx.AsyncClient, operation: Dict[str, Any]) -> Dict[str, Any]:
        """Poll the operation every ``poll_interval`` seconds until it is done."""
        name = operation["name"]
        waited = 0.0

        while not operation.get("done"):
            if self.config.max_wait is not None and waited >= self.config.max_wait:
                raise AnimationTimeoutError(f"Video job {name} still running after {waited:.0f}s")

            await self._sleep(self.config.poll_interval)
            waited += self.config.poll_interval

            response = await self._send(
                client, "GET", f"{self.base_url}/{name}", "Job status poll",
                headers={"x-goog-api-key": self.credentials.require_api_key()},
            )
            operation = response.json()
            logger.debug(f"Video job {name} done={bool(operation.get('done'))} after {waited:.0f}s")

        if operation.get("error"):
            message = _error_message(operation)
            if is_authorization_failure(None, message):
                raise AuthorizationError(f"Video job {name} failed: {message}")
            raise VideoGenerationError(f"Video job {name} failed: {message}")

        return operation

    async def download(self, client: httpx.AsyncClient, uri: str) -> str:
        """Fetch the generated video and register it as an object URL."""
        # Keep the locator's own query (alt=media).
        url = httpx.URL(uri).copy_merge_params({"key": self.credentials.require_api_key()})
        response = await self._send(client, "GET", url, "Video download")
        mime_type = response.headers.get("content-type", "video/mp4").split(";")[0].strip()
        return self.object_urls.create(response.content, mime_type or "video/mp4")

    async def animate(self, content: bytes, mime_type: str, description: str) -> str:
        """Generate a video from an image and return its reference.

        Raises ``AuthorizationError`` when the key is rejected and
        ``VideoGenerationError`` for every other failure.
        """
        async with self._client() as client:
            operation = await self.submit(client, content, mime_type, description)
            operation = await self.wait_for_completion(client, operation)
            uri = self.extract_video_uri(operation)
            video_ref = await self.download(client, uri)

        logger.info(f"Video ready: {video_ref}")
        return video_ref
