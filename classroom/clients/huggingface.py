"""Hugging Face inference API speech-to-text backend."""

from __future__ import annotations

from dataclasses import dataclass
import io
import time
import wave

import httpx

from classroom.clients.http import error_from_response, error_from_transport
from classroom.domain.contracts import CapabilityProvider
from classroom.domain.dto import ProviderRequest, ProviderResult
from classroom.domain.errors import ProviderError

DEFAULT_HF_BASE_URL = "https://api-inference.huggingface.co"


@dataclass
class HuggingFaceTranscriptionProvider(CapabilityProvider):
    name: str
    model: str
    token: str
    base_url: str = DEFAULT_HF_BASE_URL
    timeout_seconds: float = 60.0
    transport: httpx.AsyncBaseTransport | None = None

    async def probe(self) -> None:
        # A fraction of a second of silence is the cheapest request the model accepts.
        await self._post_audio(payload=_silent_wav(), media_type="audio/wav")

    async def invoke(self, request: ProviderRequest) -> ProviderResult:
        if request.payload is None:
            raise ProviderError("transcription needs an audio payload", kind="permanent", backend=self.name)
        started = time.perf_counter()
        payload = await self._post_audio(payload=request.payload, media_type=request.media_type or "audio/flac")
        return ProviderResult(
            text=str(payload.get("text") or "").strip(),
            raw_json=payload,
            latency_ms=int((time.perf_counter() - started) * 1000),
            backend=self.name,
        )

    async def _post_audio(self, *, payload: bytes, media_type: str) -> dict[str, object]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/models/{self.model}",
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Content-Type": media_type,
                    },
                    content=payload,
                )
        except httpx.HTTPError as exc:
            raise error_from_transport(exc, backend=self.name) from exc

        if response.status_code >= 400:
            raise error_from_response(response, backend=self.name)
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            raise ProviderError(
                f"unexpected content type: {content_type or '<none>'}",
                kind="permanent",
                backend=self.name,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("response body is not valid JSON", kind="permanent", backend=self.name) from exc
        if not isinstance(data, dict):
            raise ProviderError("response root must be an object", kind="permanent", backend=self.name)
        return data


def _silent_wav(duration_ms: int = 200, sample_rate_hz: int = 16000) -> bytes:
    frames = b"\x00\x00" * (sample_rate_hz * duration_ms // 1000)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as writer:
        writer.setnchannels(1)
        writer.setsampwidth(2)
        writer.setframerate(sample_rate_hz)
        writer.writeframes(frames)
    return buffer.getvalue()
