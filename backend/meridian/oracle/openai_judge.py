"""OpenAI chat-completion judge for ambiguous duplicate pairs."""

from __future__ import annotations

import json
import re

import structlog
from openai import AsyncOpenAI

from ..duplicates.models import AIJudgment
from ..errors import AIJudgmentFailure

logger = structlog.get_logger("meridian.oracle.judge")

JUDGE_SYSTEM_PROMPT = (
    "You are a duplicate detection expert. Analyze payee names and return accurate JSON responses."
)

JUDGE_PROMPT = """Compare these two payee names and determine if they represent the same real-world entity.

PAYEE NAME 1: "{name_a}"
PAYEE NAME 2: "{name_b}"

Treat these as the SAME entity:
- Same core name with different business suffixes (INC, LLC, CORP)
- Case-only or punctuation differences ("AT&T" vs "AT T")
- Abbreviated vs full forms of the same name

Different people who merely share a surname are NOT duplicates.

Return JSON only:
{{"is_duplicate": boolean, "confidence": number (0-100), "reasoning": "why"}}"""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_judgment(content: str) -> AIJudgment:
    """Extract the JSON verdict from a model reply."""
    match = _JSON_OBJECT.search(content or "")
    if not match:
        raise AIJudgmentFailure("No JSON found in response")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AIJudgmentFailure(f"Invalid JSON in response: {e}") from e

    if not isinstance(payload.get("is_duplicate"), bool):
        raise AIJudgmentFailure("Invalid response format: is_duplicate missing")
    return AIJudgment.from_dict(payload)


class OpenAIDuplicateJudge:
    """DuplicateJudge backed by OpenAI chat completions."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = 30.0,
    ):
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def judge(self, name_a: str, name_b: str) -> AIJudgment:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": JUDGE_SYSTEM_PROMPT},
                {"role": "user", "content": JUDGE_PROMPT.format(name_a=name_a, name_b=name_b)},
            ],
            temperature=0.1,
            max_tokens=300,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIJudgmentFailure("Empty response from OpenAI")

        judgment = parse_judgment(content)
        logger.debug(
            "ai_judgment_received",
            name_a_length=len(name_a),
            name_b_length=len(name_b),
            is_duplicate=judgment.is_duplicate,
            confidence=judgment.confidence,
        )
        return judgment
