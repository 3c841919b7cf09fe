"""OpenAI-compatible chat and transcription backends."""

from __future__ import annotations

import base64
from dataclasses import dataclass
import logging
import time

import httpx

from classroom.clients.http import error_from_response, error_from_transport
from classroom.domain.contracts import CapabilityProvider
from classroom.domain.dto import ProviderRequest, ProviderResult
from classroom.domain.errors import ProviderError

logger = logging.getLogger("classroom.providers")

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


@dataclass
class OpenAIChatProvider(CapabilityProvider):
    """Text and vision completions through ``/chat/completions``.

    Image payloads travel as base64 data URLs next to the optional text part.
    """

    name: str
    model: str
    api_key: str
    base_url: str = DEFAULT_OPENAI_BASE_URL
    timeout_seconds: float = 60.0
    transport: httpx.AsyncBaseTransport | None = None

    async def probe(self) -> None:
        await self._complete(
            messages=[{"role": "user", "content": "ping"}],
            extra={"max_tokens": 1},
        )

    async def invoke(self, request: ProviderRequest) -> ProviderResult:
        started = time.perf_counter()
        content: list[dict[str, object]] = []
        if request.text:
            content.append({"type": "text", "text": request.text})
        if request.payload is not None:
            media_type = request.media_type or "image/png"
            encoded = base64.b64encode(request.payload).decode("ascii")
            content.append({"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{encoded}"}})
        if not content:
            raise ProviderError("request has neither text nor payload", kind="permanent", backend=self.name)

        extra: dict[str, object] = {}
        if "temperature" in request.options:
            extra["temperature"] = request.options["temperature"]
        if "max_tokens" in request.options:
            extra["max_tokens"] = request.options["max_tokens"]
        if request.options.get("json"):
            extra["response_format"] = {"type": "json_object"}

        text = await self._complete(
            messages=[
                {"role": "system", "content": request.instructions},
                {"role": "user", "content": content},
            ],
            extra=extra,
        )
        return ProviderResult(
            text=text,
            raw_json=None,
            latency_ms=int((time.perf_counter() - started) * 1000),
            backend=self.name,
        )

    async def _complete(self, *, messages: list[dict[str, object]], extra: dict[str, object]) -> str:
        body: dict[str, object] = {"model": self.model, "messages": messages, **extra}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=body,
                )
        except httpx.HTTPError as exc:
            raise error_from_transport(exc, backend=self.name) from exc

        if response.status_code >= 400:
            raise error_from_response(response, backend=self.name)
        try:
            data = response.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderError("unexpected completion payload", kind="permanent", backend=self.name) from exc
        return (text or "").strip()


@dataclass
class OpenAITranscriptionProvider(CapabilityProvider):
    """Speech-to-text through ``/audio/transcriptions``."""

    name: str
    model: str
    api_key: str
    base_url: str = DEFAULT_OPENAI_BASE_URL
    timeout_seconds: float = 60.0
    transport: httpx.AsyncBaseTransport | None = None

    async def probe(self) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.get(
                    f"{self.base_url.rstrip('/')}/models/{self.model}",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            raise error_from_transport(exc, backend=self.name) from exc
        if response.status_code >= 400:
            raise error_from_response(response, backend=self.name)

    async def invoke(self, request: ProviderRequest) -> ProviderResult:
        if request.payload is None:
            raise ProviderError("transcription needs an audio payload", kind="permanent", backend=self.name)
        started = time.perf_counter()
        data: dict[str, str] = {"model": self.model, "response_format": "json"}
        language = request.options.get("language")
        if isinstance(language, str) and language:
            data["language"] = language
        if request.instructions:
            data["prompt"] = request.instructions
        files = {"file": ("chunk.flac", request.payload, request.media_type or "audio/flac")}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data=data,
                    files=files,
                )
        except httpx.HTTPError as exc:
            raise error_from_transport(exc, backend=self.name) from exc

        if response.status_code >= 400:
            raise error_from_response(response, backend=self.name)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("transcription response is not JSON", kind="permanent", backend=self.name) from exc
        if not isinstance(payload, dict):
            raise ProviderError("transcription response root must be an object", kind="permanent", backend=self.name)
        return ProviderResult(
            text=str(payload.get("text") or "").strip(),
            raw_json=payload,
            latency_ms=int((time.perf_counter() - started) * 1000),
            backend=self.name,
        )
