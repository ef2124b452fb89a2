from __future__ import annotations

import json

from typing import Any

from pydantic import ValidationError

from api.middleware.exception_handlers import UpstreamError
from integrations.secondme_client import SecondMeClient
from models.error_models import ErrorCode
from models.schemas.act import ActionControl, CompatibilityScore

#: Action control for compatibility scoring; the upstream answers in this schema
COMPATIBILITY_ACTION_CONTROL = ActionControl(
    description=(
        "分析两个用户的兴趣标签和个人简介，判断他们的匹配度。"
        "返回 0-100 的分数，并说明原因、优势和潜在挑战。"
    ),
    schema={
        "type": "object",
        "properties": {
            "score": {
                "type": "number",
                "description": "匹配度分数 (0-100)",
                "minimum": 0,
                "maximum": 100,
            },
            "reasoning": {
                "type": "string",
                "description": "分数的详细说明",
            },
            "strengths": {
                "type": "array",
                "items": {"type": "string"},
                "description": "匹配的优势和共同点",
            },
            "challenges": {
                "type": "array",
                "items": {"type": "string"},
                "description": "可能的挑战或差异",
            },
        },
        "required": ["score", "reasoning", "strengths", "challenges"],
    },
)


def build_compatibility_prompt(
    user1_shades: list[Any],
    user2_shades: list[Any],
    user1_bio: str | None = None,
    user2_bio: str | None = None,
) -> str:
    """Prompt listing both users' shades and optional bios."""
    user1_bio_line = f"用户 A 的简介：{user1_bio}" if user1_bio else ""
    user2_bio_line = f"用户 B 的简介：{user2_bio}" if user2_bio else ""
    return (
        "请分析以下两位用户的匹配度：\n"
        "\n"
        f"用户 A 的兴趣标签：{', '.join(str(s) for s in user1_shades)}\n"
        f"{user1_bio_line}\n"
        "\n"
        f"用户 B 的兴趣标签：{', '.join(str(s) for s in user2_shades)}\n"
        f"{user2_bio_line}\n"
        "\n"
        "请评估他们的匹配度，并提供详细的分析。"
    )


class ActService:
    """Structured (non-streaming) judgments from SecondMe."""

    def __init__(self, client: SecondMeClient):
        self.client = client

    async def get_compatibility_score(
        self,
        access_token: str,
        user1_shades: list[Any],
        user2_shades: list[Any],
        user1_bio: str | None = None,
        user2_bio: str | None = None,
    ) -> CompatibilityScore:
        """Score how well two users match.

        Raises:
            UpstreamError: Call failed, or the result is not valid JSON matching the schema
        """
        prompt = build_compatibility_prompt(user1_shades, user2_shades, user1_bio, user2_bio)
        result = await self.client.act(
            access_token,
            prompt,
            COMPATIBILITY_ACTION_CONTROL.model_dump(by_alias=True),
        )

        if isinstance(result, str):
            try:
                result = json.loads(result)
            except json.JSONDecodeError as e:
                raise UpstreamError(
                    "Act: compatibility result is not valid JSON",
                    code=ErrorCode.EXTERNAL_INVALID_RESPONSE,
                    cause=e,
                ) from e

        try:
            return CompatibilityScore.model_validate(result)
        except ValidationError as e:
            raise UpstreamError(
                "Act: compatibility result does not match the schema",
                code=ErrorCode.EXTERNAL_INVALID_RESPONSE,
                cause=e,
            ) from e

    async def call_act(self, access_token: str, prompt: str, action_control: ActionControl) -> Any:
        """Run a caller-defined judgment.

        A string result is parsed as JSON when possible, otherwise returned as is.
        """
        result = await self.client.act(access_token, prompt, action_control.model_dump(by_alias=True))
        if isinstance(result, str):
            try:
                return json.loads(result)
            except json.JSONDecodeError:
                return result
        return result
