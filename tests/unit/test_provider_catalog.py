import pytest

from classroom.clients.factory import build_provider, build_provider_catalog
from classroom.clients.huggingface import HuggingFaceTranscriptionProvider
from classroom.clients.openai_compatible import OpenAIChatProvider, OpenAITranscriptionProvider
from classroom.clients.stub import StubProvider
from classroom.domain.errors import ConfigError
from classroom.settings import BackendSpec, Settings, parse_backends


@pytest.mark.unit
def test_live_catalog_builds_backends_in_configured_order() -> None:
    settings = Settings(
        openai_api_key="sk-test",
        hf_token="hf-test",
        transcription_backends=parse_backends("huggingface:openai/whisper-large-v3,openai-whisper:whisper-1"),
        generation_backends=parse_backends("openai:gpt-4o-mini"),
        vision_backends=parse_backends("openai:gpt-4o,stub:local"),
    )

    catalog = build_provider_catalog(settings)

    transcription = catalog.for_capability("transcription")
    assert isinstance(transcription[0], HuggingFaceTranscriptionProvider)
    assert isinstance(transcription[1], OpenAITranscriptionProvider)
    assert [provider.name for provider in transcription] == [
        "huggingface:openai/whisper-large-v3",
        "openai-whisper:whisper-1",
    ]
    assert isinstance(catalog.for_capability("generation")[0], OpenAIChatProvider)
    assert isinstance(catalog.for_capability("vision")[1], StubProvider)


@pytest.mark.unit
def test_stub_mode_replaces_every_backend() -> None:
    settings = Settings(provider_mode="stub", vision_backends=parse_backends("openai:gpt-4o"))

    provider = build_provider(settings.vision_backends[0], capability="vision", settings=settings)

    assert isinstance(provider, StubProvider)
    assert provider.name == "openai:gpt-4o"


@pytest.mark.unit
def test_family_that_cannot_serve_a_capability_is_a_config_error() -> None:
    settings = Settings(hf_token="hf-test")
    with pytest.raises(ConfigError):
        build_provider(BackendSpec(family="huggingface", model="m"), capability="vision", settings=settings)
