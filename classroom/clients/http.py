from __future__ import annotations

import httpx

from classroom.domain.errors import ProviderError, ProviderErrorKind

TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 409, 425, 429})


def classify_status(status_code: int) -> ProviderErrorKind:
    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        return "transient"
    return "permanent"


def error_from_response(response: httpx.Response, *, backend: str) -> ProviderError:
    body = response.text[:200] if response.content else ""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("error")
        if isinstance(message, dict):
            message = message.get("message")
        if isinstance(message, str) and message:
            body = message
    return ProviderError(
        f"HTTP {response.status_code}: {body}".strip(),
        kind=classify_status(response.status_code),
        backend=backend,
    )


def error_from_transport(exc: httpx.HTTPError, *, backend: str) -> ProviderError:
    # Timeouts and connection resets are worth another backend or a later unit.
    return ProviderError(f"{type(exc).__name__}: {exc}", kind="transient", backend=backend)
