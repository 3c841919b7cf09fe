from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from classroom.domain.errors import ConfigError

DEFAULT_TRANSCRIPTION_BACKENDS = "huggingface:openai/whisper-large-v3,huggingface:openai/whisper-small"
DEFAULT_GENERATION_BACKENDS = "openai:gpt-4o-mini,openai:gpt-4.1-mini"
DEFAULT_VISION_BACKENDS = "openai:gpt-4o,openai:gpt-4o-mini"
DEFAULT_INSTRUCTION_SET_PATH = str(Path(__file__).parent / "instructions" / "instructions.v1.yaml")

PROVIDER_MODES = ("live", "stub")

# Backend family -> credential env var it needs in live mode.
BACKEND_CREDENTIALS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "openai-whisper": "OPENAI_API_KEY",
    "huggingface": "HF_TOKEN",
}


@dataclass(frozen=True)
class BackendSpec:
    family: str
    model: str

    @property
    def identifier(self) -> str:
        return f"{self.family}:{self.model}"


@dataclass(frozen=True)
class Settings:
    provider_mode: str = "live"
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    hf_token: str | None = None
    hf_base_url: str = "https://api-inference.huggingface.co"
    transcription_backends: tuple[BackendSpec, ...] = ()
    generation_backends: tuple[BackendSpec, ...] = ()
    vision_backends: tuple[BackendSpec, ...] = ()
    artifact_root: str = "var/artifacts"
    instruction_set_path: str = DEFAULT_INSTRUCTION_SET_PATH
    segment_seconds: int = 60
    pacing_interval_seconds: float = 1.5
    unit_timeout_seconds: float = 120.0
    provider_http_timeout_seconds: float = 60.0
    shutdown_grace_seconds: float = 10.0

    def backends_for(self, capability: str) -> tuple[BackendSpec, ...]:
        backends = {
            "transcription": self.transcription_backends,
            "generation": self.generation_backends,
            "vision": self.vision_backends,
        }
        if capability not in backends:
            raise ConfigError(f"unknown capability: {capability}")
        return backends[capability]


def settings_from_env() -> Settings:
    mode = os.getenv("PROVIDER_MODE", "live").strip().lower()
    if mode not in PROVIDER_MODES:
        raise ConfigError(f"PROVIDER_MODE must be one of {', '.join(PROVIDER_MODES)}, got '{mode}'")

    settings = Settings(
        provider_mode=mode,
        openai_api_key=_env_secret("OPENAI_API_KEY"),
        openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        hf_token=_env_secret("HF_TOKEN"),
        hf_base_url=os.getenv("HF_BASE_URL", "https://api-inference.huggingface.co"),
        transcription_backends=parse_backends(os.getenv("TRANSCRIPTION_BACKENDS", DEFAULT_TRANSCRIPTION_BACKENDS)),
        generation_backends=parse_backends(os.getenv("GENERATION_BACKENDS", DEFAULT_GENERATION_BACKENDS)),
        vision_backends=parse_backends(os.getenv("VISION_BACKENDS", DEFAULT_VISION_BACKENDS)),
        artifact_root=os.getenv("ARTIFACT_ROOT", "var/artifacts"),
        instruction_set_path=os.getenv("INSTRUCTION_SET_PATH", DEFAULT_INSTRUCTION_SET_PATH),
        segment_seconds=_env_int("SEGMENT_SECONDS", 60),
        pacing_interval_seconds=_env_float("PACING_INTERVAL_SECONDS", 1.5),
        unit_timeout_seconds=_env_float("UNIT_TIMEOUT_SECONDS", 120.0),
        provider_http_timeout_seconds=_env_float("PROVIDER_HTTP_TIMEOUT_SECONDS", 60.0),
        shutdown_grace_seconds=_env_float("SHUTDOWN_GRACE_SECONDS", 10.0),
    )
    validate_credentials(settings)
    return settings


def parse_backends(raw: str) -> tuple[BackendSpec, ...]:
    specs: list[BackendSpec] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        family, sep, model = item.partition(":")
        if not sep or not family.strip() or not model.strip():
            raise ConfigError(f"backend '{item}' must look like 'family:model'")
        specs.append(BackendSpec(family=family.strip().lower(), model=model.strip()))
    return tuple(specs)


def validate_credentials(settings: Settings) -> None:
    """Fail fast: a live backend without its credential never serves traffic."""
    if settings.provider_mode == "stub":
        return

    credentials = {
        "OPENAI_API_KEY": settings.openai_api_key,
        "HF_TOKEN": settings.hf_token,
    }
    missing: set[str] = set()
    for capability in ("transcription", "generation", "vision"):
        for backend in settings.backends_for(capability):
            credential_name = BACKEND_CREDENTIALS.get(backend.family)
            if credential_name is None:
                raise ConfigError(f"unsupported backend family '{backend.family}' in {backend.identifier}")
            if not credentials.get(credential_name):
                missing.add(credential_name)
    if missing:
        raise ConfigError(f"missing provider credentials: {', '.join(sorted(missing))}")


def _env_secret(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = int(value)
    except ValueError:
        return default

    return parsed if parsed > 0 else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = float(value)
    except ValueError:
        return default

    return parsed if parsed >= 0 else default
