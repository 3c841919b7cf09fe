from __future__ import annotations

from collections.abc import Sequence

from classroom.domain.contracts import CapabilityProvider
from classroom.domain.decoding import split_answer_key_marker
from classroom.domain.dto import GenerateActivityCommand, GenerateActivityResult, ProviderRequest
from classroom.domain.errors import ResponseDecodeError
from classroom.domain.instructions import InstructionSet, render_prompt
from classroom.domain.models import Capability
from classroom.domain.provider_selection import select_provider

COMPONENT_ID = "domain.activity.generate"


async def generate_activity(
    cmd: GenerateActivityCommand,
    *,
    candidates: Sequence[CapabilityProvider],
    instructions: InstructionSet,
) -> GenerateActivityResult:
    """Generate questions from a text and split the trailing answer-key marker off the body."""
    provider = await select_provider(candidates, capability=Capability.GENERATION)
    prompt = render_prompt(
        template=instructions.activity.user_template,
        inputs={
            "question_count": cmd.question_count,
            "question_type": cmd.question_type.replace("_", " "),
            "language": cmd.language,
            "difficulty": cmd.difficulty,
            "text": cmd.text,
        },
    )
    result = await provider.invoke(
        ProviderRequest(
            instructions=instructions.activity.system,
            text=prompt,
            options={"task": "activity", "question_count": cmd.question_count, "temperature": 0.7},
        )
    )
    activity, answers = split_answer_key_marker(result.text)
    if not activity:
        raise ResponseDecodeError("generated activity is empty")
    return GenerateActivityResult(activity=activity, answers=answers, backend=provider.name)
