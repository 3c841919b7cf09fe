from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
import logging

from classroom.domain.contracts import CapabilityProvider
from classroom.domain.errors import NoProviderAvailableError, ProviderError

logger = logging.getLogger("classroom.providers")

Sleep = Callable[[float], Awaitable[None]]


async def select_provider(
    candidates: Sequence[CapabilityProvider],
    *,
    capability: str,
) -> CapabilityProvider:
    """Return the first candidate whose canary probe succeeds.

    Probing stops at the first success. When every candidate fails, a single
    NoProviderAvailableError carries all failure reasons.
    """
    failures: list[tuple[str, str]] = []
    for provider in candidates:
        try:
            await provider.probe()
        except ProviderError as exc:
            failures.append((provider.name, exc.detail))
            logger.warning(
                "backend probe failed",
                extra={"backend": provider.name, "stage": capability, "error_code": exc.kind},
            )
            continue
        logger.info("backend selected", extra={"backend": provider.name, "stage": capability})
        return provider
    raise NoProviderAvailableError(capability=capability, failures=failures)


@dataclass
class FixedPacer:
    """Fixed delay between consecutive invocations against one backend."""

    interval_seconds: float = 1.5
    sleep: Sleep = field(default=asyncio.sleep)
    _calls: int = 0

    async def wait_turn(self) -> None:
        if self._calls > 0 and self.interval_seconds > 0:
            await self.sleep(self.interval_seconds)
        self._calls += 1
