from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from classroom.clients.huggingface import HuggingFaceTranscriptionProvider
from classroom.clients.openai_compatible import OpenAIChatProvider, OpenAITranscriptionProvider
from classroom.clients.stub import StubProvider, default_stub_reply
from classroom.domain.contracts import CapabilityProvider
from classroom.domain.errors import ConfigError
from classroom.domain.models import Capability
from classroom.settings import BackendSpec, Settings


@dataclass
class ProviderCatalog:
    """Ordered candidate backends per capability."""

    candidates: dict[str, list[CapabilityProvider]] = field(default_factory=dict)

    def for_capability(self, capability: str) -> Sequence[CapabilityProvider]:
        return tuple(self.candidates.get(capability, ()))


def build_provider_catalog(settings: Settings) -> ProviderCatalog:
    catalog = ProviderCatalog()
    for capability in Capability:
        catalog.candidates[capability] = [
            build_provider(spec, capability=capability, settings=settings)
            for spec in settings.backends_for(capability)
        ]
    return catalog


def build_provider(spec: BackendSpec, *, capability: str, settings: Settings) -> CapabilityProvider:
    if settings.provider_mode == "stub" or spec.family == "stub":
        return StubProvider(name=spec.identifier, reply=default_stub_reply(capability))

    timeout = settings.provider_http_timeout_seconds
    if spec.family == "huggingface" and capability == Capability.TRANSCRIPTION:
        return HuggingFaceTranscriptionProvider(
            name=spec.identifier,
            model=spec.model,
            token=_required(settings.hf_token, "HF_TOKEN"),
            base_url=settings.hf_base_url,
            timeout_seconds=timeout,
        )
    if spec.family == "openai-whisper" and capability == Capability.TRANSCRIPTION:
        return OpenAITranscriptionProvider(
            name=spec.identifier,
            model=spec.model,
            api_key=_required(settings.openai_api_key, "OPENAI_API_KEY"),
            base_url=settings.openai_base_url,
            timeout_seconds=timeout,
        )
    if spec.family == "openai" and capability in (Capability.GENERATION, Capability.VISION):
        return OpenAIChatProvider(
            name=spec.identifier,
            model=spec.model,
            api_key=_required(settings.openai_api_key, "OPENAI_API_KEY"),
            base_url=settings.openai_base_url,
            timeout_seconds=timeout,
        )
    raise ConfigError(f"backend {spec.identifier} cannot serve capability '{capability}'")


def _required(value: str | None, env_name: str) -> str:
    if not value:
        raise ConfigError(f"{env_name} is required")
    return value
