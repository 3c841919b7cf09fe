from pathlib import Path

import pytest

from classroom.main import run


@pytest.mark.unit
def test_cli_returns_non_zero_when_credentials_are_missing(
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("PROVIDER_MODE", "live")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("HF_TOKEN", raising=False)

    exit_code = run(["--dry-run-startup"])
    captured = capsys.readouterr()

    assert exit_code == 2
    assert "ERROR:" in captured.err
    assert "missing provider credentials" in captured.err


@pytest.mark.unit
def test_cli_dry_run_succeeds_in_stub_mode(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PROVIDER_MODE", "stub")
    monkeypatch.setenv("ARTIFACT_ROOT", str(tmp_path))

    exit_code = run(["--dry-run-startup"])

    assert exit_code == 0
