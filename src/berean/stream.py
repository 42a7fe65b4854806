"""HTTP client for the remote generation service (Genkit flow server)."""

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence
from urllib.parse import urlparse, urlunparse

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .models import Message, Role

logger = logging.getLogger(__name__)


__all__ = [
    "GenerationStream",
    "GenkitClient",
    "GenkitConfig",
    "GenkitError",
    "InvalidPayloadError",
    "RetryableGenkitError",
]


class GenerationStream(Protocol):
    """Anything that can turn request context into a stream of text chunks.

    ``open`` returns an async iterator that supports ``aclose()`` so the
    coordinator can tear it down on cancellation or timeout. Failures to
    connect may surface on the first ``__anext__`` rather than at ``open``.
    """

    def open(self, messages: Sequence[Message]) -> AsyncIterator[str]:
        ...


def _normalize_url(url: str) -> str:
    """Normalize the flow server base URL.

    Flow names are appended to the base, so a trailing slash or a pasted
    ``/api`` suffix would produce broken endpoints.
    """

    raw = (url or "").strip()
    if not raw:
        return raw

    parsed = urlparse(raw)
    path = (parsed.path or "").rstrip("/")
    if path == "/api":
        path = ""
    parsed = parsed._replace(path=path)
    return urlunparse(parsed).rstrip("/")


@dataclass
class GenkitConfig:
    """Configuration for the flow server connection."""
    url: str
    api_key: Optional[str] = None
    flow_name: str = "bibleChat"
    timeout: float = 30.0

    def __post_init__(self) -> None:
        self.url = _normalize_url(self.url)

    @classmethod
    def from_settings(cls, settings) -> "GenkitConfig":
        """Create config from the ``genkit`` section of Settings."""
        return cls(
            url=settings.genkit.url,
            api_key=settings.genkit.api_key,
            flow_name=settings.genkit.flow_name,
            timeout=settings.genkit.request_timeout_seconds,
        )


class GenkitError(Exception):
    """Error from the flow server."""
    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        """Check if this error should be retried."""
        return self.status_code >= 500


class RetryableGenkitError(GenkitError):
    """Flow server error that should be retried."""
    pass


class InvalidPayloadError(GenkitError):
    """The server answered but the body could not be understood."""
    pass


# Genkit status names carried by stream error events, as HTTP codes.
FLOW_STATUS_CODES = {
    "RESOURCE_EXHAUSTED": 429,
    "INTERNAL": 500,
    "UNAVAILABLE": 503,
}


_retry_config = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((RetryableGenkitError, httpx.TransportError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def _build_flow_input(messages: Sequence[Message]) -> Dict[str, Any]:
    """Split context into the flow's ``message`` + ``history`` shape.

    The newest user message is the query; everything before it is history.
    System messages are not forwarded.
    """
    turns = [m for m in messages if m.role != Role.SYSTEM]
    query_index = next(
        (i for i in range(len(turns) - 1, -1, -1) if turns[i].role == Role.USER),
        None,
    )
    if query_index is None:
        raise ValueError("Request context must contain a user message")
    history = [m.to_chat_dict() for m in turns[:query_index]]
    return {"message": turns[query_index].content, "history": history}


def _chunk_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        text = payload.get("text")
        if isinstance(text, str):
            return text
    raise InvalidPayloadError(f"Unexpected stream chunk: {payload!r}")


class GenkitClient:
    """Client for a Genkit flow server.

    Implements :class:`GenerationStream` via server-sent events and also
    offers a non-streaming ``complete`` call.
    """

    def __init__(self, config: GenkitConfig):
        self.config = config
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.config.url,
                headers=headers,
                timeout=self.config.timeout,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def health(self) -> bool:
        """Check if the flow server is reachable."""
        try:
            response = await self.client.get("/")
            return response.status_code < 500
        except httpx.RequestError as e:
            logger.warning(f"Flow server health check request error: {e}")
            return False

    # =========================================================================
    # Generation
    # =========================================================================

    async def open(self, messages: Sequence[Message]) -> AsyncIterator[str]:
        """Stream response chunks for the given request context.

        Args:
            messages: Windowed conversation context ending with the query

        Yields:
            Text fragments in the order the server produced them
        """
        body = {"data": _build_flow_input(messages)}
        path = f"/{self.config.flow_name}"
        logger.debug(f"Opening stream to {path} with {len(body['data']['history'])} history message(s)")

        async with self.client.stream(
            "POST",
            path,
            params={"stream": "true"},
            json=body,
            headers={"Accept": "text/event-stream"},
        ) as response:
            if response.status_code >= 400:
                await response.aread()
            self._check_response(response)

            streamed = False
            async for line in response.aiter_lines():
                event = self._parse_event_line(line)
                if event is None:
                    continue

                if "message" in event:
                    chunk = _chunk_text(event["message"])
                    if chunk:
                        streamed = True
                        yield chunk
                elif "result" in event:
                    if not streamed:
                        text = self._response_text(event["result"])
                        if text:
                            yield text
                    break
                elif "error" in event:
                    error = event["error"]
                    if isinstance(error, dict):
                        status = error.get("status")
                        message = error.get("message") or json.dumps(error)
                        code = FLOW_STATUS_CODES.get(status, 0)
                        raise GenkitError(f"Flow error: {message}", code)
                    raise GenkitError(f"Flow error: {error}")

    @_retry_config
    async def complete(self, messages: Sequence[Message]) -> str:
        """Run the flow without streaming and return the full response text."""
        body = {"data": _build_flow_input(messages)}
        response = await self.client.post(f"/{self.config.flow_name}", json=body)
        self._check_response(response)

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise InvalidPayloadError(f"Flow returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise InvalidPayloadError("Flow returned a non-object payload")
        return self._response_text(data.get("result"))

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _parse_event_line(line: str) -> Optional[Dict[str, Any]]:
        """Decode one SSE line. Returns None for blank, comment and non-data lines."""
        line = line.strip()
        if not line.startswith("data:"):
            return None
        data = line[len("data:"):].strip()
        if not data:
            return None
        try:
            event = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidPayloadError(f"Undecodable stream event: {data[:80]!r}") from e
        if not isinstance(event, dict):
            raise InvalidPayloadError(f"Unexpected stream event: {event!r}")
        return event

    @staticmethod
    def _response_text(result: Any) -> str:
        if isinstance(result, str):
            return result
        if isinstance(result, dict) and isinstance(result.get("response"), str):
            return result["response"]
        raise InvalidPayloadError("Flow result has no response text")

    def _check_response(self, response: httpx.Response):
        """Check response for errors and raise GenkitError if needed.

        Raises RetryableGenkitError for 5xx errors (server errors).
        Raises GenkitError for 4xx errors (client errors).
        """
        if response.status_code >= 500:
            raise RetryableGenkitError(
                f"Flow server error: {self._error_detail(response)}",
                response.status_code,
            )
        elif response.status_code >= 400:
            raise GenkitError(
                f"Flow API error: {self._error_detail(response)}",
                response.status_code,
            )

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            # JSONDecodeError or UnicodeDecodeError from a binary body.
            return response.text
        if isinstance(data, dict):
            error = data.get("error") or data.get("detail")
            if isinstance(error, dict):
                return str(error.get("message") or error)
            if error:
                return str(error)
        return response.text
