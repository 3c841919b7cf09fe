from __future__ import annotations

from typing import Literal

ProviderErrorKind = Literal["transient", "permanent"]


class DomainError(Exception):
    pass


class DomainValidationError(DomainError):
    pass


class DomainInvariantError(DomainError):
    pass


class ConfigError(DomainError):
    pass


class SplitError(DomainError):
    pass


class ResponseDecodeError(DomainError):
    pass


class ArtifactMissingError(DomainError):
    pass


class ProviderError(DomainError):
    def __init__(self, detail: str, *, kind: ProviderErrorKind = "transient", backend: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.kind = kind
        self.backend = backend

    def __str__(self) -> str:
        if self.backend:
            return f"{self.backend}: {self.detail}"
        return self.detail


class NoProviderAvailableError(DomainError):
    """Every candidate backend failed its canary probe."""

    def __init__(self, *, capability: str, failures: list[tuple[str, str]]) -> None:
        self.capability = capability
        self.failures = list(failures)
        if failures:
            reasons = "; ".join(f"{name} ({reason})" for name, reason in failures)
        else:
            reasons = "no candidates configured"
        super().__init__(f"no backend available for {capability}: {reasons}")
