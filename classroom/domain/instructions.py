from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import json
from pathlib import Path
import re

import yaml


@dataclass(frozen=True)
class PromptTemplate:
    system: str
    user_template: str


@dataclass(frozen=True)
class MarkerRule:
    pattern: str
    replacement: str


@dataclass(frozen=True)
class InstructionSet:
    spec_version: str
    transcription_hint: str
    transcription_language: str | None
    summary: PromptTemplate
    sheet_grading: PromptTemplate
    essay_grading: PromptTemplate
    activity: PromptTemplate
    question_markers: tuple[MarkerRule, ...]


PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_.-]+)\s*\}\}")


@lru_cache(maxsize=8)
def load_instruction_set(*, file_path: str | Path) -> InstructionSet:
    data = yaml.safe_load(Path(file_path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("instruction set must be a YAML object")
    return parse_instruction_set(data)


def parse_instruction_set(data: dict[str, object]) -> InstructionSet:
    spec_version = _required_str(data, "spec_version")

    transcription_raw = _required_obj(data, "transcription")
    language = transcription_raw.get("language")
    if language is not None and (not isinstance(language, str) or not language):
        raise ValueError("transcription.language must be a non-empty string or null")

    markers_raw = data.get("question_markers", [])
    if not isinstance(markers_raw, list):
        raise ValueError("question_markers must be a list")
    markers: list[MarkerRule] = []
    for item in _objects(markers_raw, "question_markers"):
        rule = MarkerRule(
            pattern=_required_str(item, "pattern"),
            replacement=_required_raw_str(item, "replacement"),
        )
        try:
            re.compile(rule.pattern)
        except re.error as exc:
            raise ValueError(f"question_markers pattern is invalid: {rule.pattern}") from exc
        markers.append(rule)

    return InstructionSet(
        spec_version=spec_version,
        transcription_hint=_required_raw_str(transcription_raw, "hint"),
        transcription_language=language,
        summary=_prompt(data, "summary"),
        sheet_grading=_prompt(data, "sheet_grading"),
        essay_grading=_prompt(data, "essay_grading"),
        activity=_prompt(data, "activity"),
        question_markers=tuple(markers),
    )


def render_prompt(*, template: str, inputs: dict[str, object]) -> str:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        value = _lookup_dot_path(inputs, key)
        if value is None:
            raise ValueError(f"missing placeholder value: {key}")
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value, ensure_ascii=False, sort_keys=True)
        return str(value)

    return PLACEHOLDER_RE.sub(_replace, template)


def _prompt(data: dict[str, object], key: str) -> PromptTemplate:
    raw = _required_obj(data, key)
    return PromptTemplate(
        system=_required_str(raw, "system"),
        user_template=_required_str(raw, "user_template"),
    )


def _lookup_dot_path(data: dict[str, object], path: str) -> object | None:
    current: object = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _required_str(data: dict[str, object], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} is required and must be non-empty string")
    return value


def _required_raw_str(data: dict[str, object], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{key} is required and must be string")
    return value


def _required_obj(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ValueError(f"{key} is required and must be object")
    return value


def _objects(items: list[object], field_name: str) -> list[dict[str, object]]:
    result: list[dict[str, object]] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"{field_name} must contain objects")
        result.append(item)
    return result
