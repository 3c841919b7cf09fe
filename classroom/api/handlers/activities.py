from __future__ import annotations

from classroom.api.handlers.deps import ApiDeps
from classroom.api.schemas import GenerateActivityRequest, GenerateActivityResponse
from classroom.domain.dto import GenerateActivityCommand
from classroom.domain.models import Capability
from classroom.domain.use_cases.activities import generate_activity

COMPONENT_ID = "api.generate_activity"


async def generate_activity_handler(
    *,
    request: GenerateActivityRequest,
    api_deps: ApiDeps,
) -> GenerateActivityResponse:
    result = await generate_activity(
        GenerateActivityCommand(
            text=request.text,
            question_count=request.question_count,
            question_type=request.question_type,
            language=request.language,
            difficulty=request.difficulty,
        ),
        candidates=api_deps.catalog.for_capability(Capability.GENERATION),
        instructions=api_deps.instructions,
    )
    return GenerateActivityResponse(activity=result.activity, answers=list(result.answers), backend=result.backend)
