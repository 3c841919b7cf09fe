from __future__ import annotations

from collections.abc import Iterable, Sequence
import re

from classroom.domain.instructions import MarkerRule


def to_unified_text(*, text: str) -> str:
    normalized = text.replace("\x00", " ")
    normalized = re.sub(r"\r\n?", "\n", normalized)
    normalized = re.sub(r"[ \t]+", " ", normalized)
    normalized = re.sub(r" *\n *", "\n", normalized)
    normalized = re.sub(r"\n{3,}", "\n\n", normalized)
    return normalized.strip()


def rewrite_question_markers(*, text: str, rules: Sequence[MarkerRule]) -> str:
    """Apply pattern/replacement rules in order, then re-normalize whitespace."""
    rewritten = text
    for rule in rules:
        rewritten = re.sub(rule.pattern, rule.replacement, rewritten)
    return to_unified_text(text=rewritten)


def join_segments(segments: Iterable[str]) -> str:
    parts = [to_unified_text(text=segment) for segment in segments]
    return "\n\n".join(part for part in parts if part)
