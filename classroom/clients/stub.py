from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import json

from classroom.domain.dto import ProviderRequest, ProviderResult
from classroom.domain.errors import ProviderError

StubReply = Callable[[ProviderRequest], str]


@dataclass
class StubProvider:
    """Scripted backend. ``script`` entries are consumed in order, then ``reply`` takes over."""

    name: str
    reply: StubReply | None = None
    script: list[str | Exception] = field(default_factory=list)
    probe_error: ProviderError | None = None
    probes: int = 0
    calls: list[ProviderRequest] = field(default_factory=list)

    async def probe(self) -> None:
        self.probes += 1
        if self.probe_error is not None:
            raise self.probe_error

    async def invoke(self, request: ProviderRequest) -> ProviderResult:
        self.calls.append(request)
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, Exception):
                raise item
            text = item
        elif self.reply is not None:
            text = self.reply(request)
        else:
            text = ""
        return ProviderResult(text=text, raw_json=None, latency_ms=1, backend=self.name)


def default_stub_reply(capability: str) -> StubReply:
    def _transcription(request: ProviderRequest) -> str:
        size = len(request.payload or b"")
        return f"stub transcription of {size} bytes"

    def _generation(request: ProviderRequest) -> str:
        if request.options.get("task") == "activity":
            count = _int_option(request, "question_count", 3)
            questions = "\n".join(
                f"{number}. Stub question {number}?\nA) one B) two C) three D) four" for number in range(1, count + 1)
            )
            answers = ", ".join("A" for _ in range(count))
            return f"{questions}\n\n[ANSWER_KEY: {answers}]"
        return "Stub summary."

    def _vision(request: ProviderRequest) -> str:
        if request.options.get("task") == "essay":
            max_score = _int_option(request, "max_score", 10)
            return json.dumps({"score": max_score / 2, "feedback": "Stub feedback."})
        count = _int_option(request, "question_count", 1)
        return json.dumps(
            {
                "invalidated": False,
                "answers": [{"question": number, "marked": ["A"]} for number in range(1, count + 1)],
            }
        )

    replies: dict[str, StubReply] = {
        "transcription": _transcription,
        "generation": _generation,
        "vision": _vision,
    }
    reply = replies.get(capability)
    if reply is None:
        raise ValueError(f"no stub reply for capability '{capability}'")
    return reply


def _int_option(request: ProviderRequest, key: str, default: int) -> int:
    value = request.options.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default
