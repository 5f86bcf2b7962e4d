"""OpenAI Batch API client for payee classification."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import structlog
from openai import AsyncOpenAI

from ..models import ClassificationResult
from .ports import JobStatus

logger = structlog.get_logger("meridian.oracle.openai_batch")

CLASSIFICATION_SYSTEM_PROMPT = """You are an expert at classifying payee names as either "Business" or "Individual".

For BUSINESS entities, also assign a 4-digit SIC (Standard Industrial Classification) code and description.

Return ONLY a JSON object with these exact fields:
- classification: "Business" or "Individual"
- confidence: number (0-100)
- reasoning: string explaining the classification
- sicCode: 4-digit string for businesses, null for individuals
- sicDescription: string for businesses, null for individuals"""

# OpenAI batch statuses -> JobStatus
STATUS_MAP = {
    "validating": JobStatus.QUEUED,
    "in_progress": JobStatus.RUNNING,
    "finalizing": JobStatus.FINALIZING,
    "completed": JobStatus.DONE,
    "failed": JobStatus.FAILED,
    "expired": JobStatus.EXPIRED,
    "cancelling": JobStatus.RUNNING,
    "cancelled": JobStatus.CANCELLED,
}


def custom_id_for(index: int) -> str:
    return f"payee-{index}"


def build_batch_requests(names: Sequence[str], model: str) -> list[dict]:
    """One chat-completion request per name, in JSONL-ready dict form."""
    return [
        {
            "custom_id": custom_id_for(index),
            "method": "POST",
            "url": "/v1/chat/completions",
            "body": {
                "model": model,
                "messages": [
                    {"role": "system", "content": CLASSIFICATION_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f'Classify this payee name and assign SIC code if it\'s a business: "{name}"',
                    },
                ],
                "temperature": 0.1,
                "max_tokens": 300,
                "response_format": {"type": "json_object"},
            },
        }
        for index, name in enumerate(names)
    ]


def parse_classification_content(name: str, content: str) -> ClassificationResult:
    """Turn one model reply into a ClassificationResult; unparseable replies fail."""
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        return ClassificationResult.failure(name, "Parse error")
    if not isinstance(parsed, dict):
        return ClassificationResult.failure(name, "Parse error")

    classification = parsed.get("classification")
    if classification not in ("Business", "Individual"):
        return ClassificationResult.failure(name, f"Unexpected classification: {classification!r}")

    try:
        confidence = float(parsed.get("confidence", 50))
    except (TypeError, ValueError):
        confidence = 50.0

    return ClassificationResult(
        payee_name=name,
        classification=classification,
        confidence=max(0.0, min(100.0, confidence)),
        reasoning=parsed.get("reasoning") or "Classified via OpenAI Batch API",
        industry_code=parsed.get("sicCode") or None,
        industry_description=parsed.get("sicDescription") or None,
        status="success",
        processing_tier="AI-Powered",
    )


def parse_batch_output(output_text: str, names: Sequence[str]) -> list[ClassificationResult]:
    """Map JSONL batch output lines back onto names by custom_id."""
    by_id: dict[str, dict[str, Any]] = {}
    for line in output_text.splitlines():
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("batch_output_line_unparseable", line_length=len(line))
            continue
        if isinstance(item, dict) and "custom_id" in item:
            by_id[item["custom_id"]] = item

    results = []
    for index, name in enumerate(names):
        item = by_id.get(custom_id_for(index))
        if item is None:
            results.append(ClassificationResult.failure(name, "Missing result"))
            continue
        if item.get("error"):
            message = (item["error"] or {}).get("message", "Batch processing error")
            results.append(ClassificationResult.failure(name, message))
            continue

        body = (item.get("response") or {}).get("body") or {}
        choices = body.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            results.append(ClassificationResult.failure(name, "Missing response"))
            continue
        results.append(parse_classification_content(name, content))
    return results


class OpenAIBatchClient:
    """
    BatchJobClient backed by the OpenAI Batch API (24h completion window).
    Wrap in BatchJobOracle to use as a ClassificationOracle.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = 60.0,
    ):
        """
        Args:
            api_key: OpenAI API key
            model: Model name (e.g., 'gpt-4o-mini')
            base_url: Optional custom API base URL
            timeout: Per-request timeout in seconds
        """
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self._output_files: dict[str, str] = {}

    async def submit(self, names: Sequence[str]) -> str:
        requests = build_batch_requests(names, self.model)
        jsonl = "\n".join(json.dumps(req) for req in requests).encode("utf-8")

        input_file = await self.client.files.create(
            file=("payee_classification.jsonl", jsonl),
            purpose="batch",
        )
        batch = await self.client.batches.create(
            input_file_id=input_file.id,
            endpoint="/v1/chat/completions",
            completion_window="24h",
            metadata={"payee_count": str(len(names))},
        )
        logger.info("openai_batch_created", job_id=batch.id, payees=len(names))
        return batch.id

    async def poll(self, job_id: str) -> JobStatus:
        batch = await self.client.batches.retrieve(job_id)
        if batch.output_file_id:
            self._output_files[job_id] = batch.output_file_id
        return STATUS_MAP.get(batch.status, JobStatus.RUNNING)

    async def fetch_results(self, job_id: str, names: Sequence[str]) -> list[ClassificationResult]:
        output_file_id = self._output_files.get(job_id)
        if output_file_id is None:
            batch = await self.client.batches.retrieve(job_id)
            output_file_id = batch.output_file_id
        if not output_file_id:
            return [ClassificationResult.failure(name, "Batch has no output file") for name in names]

        content = await self.client.files.content(output_file_id)
        return parse_batch_output(content.text, names)

    async def cancel(self, job_id: str) -> None:
        await self.client.batches.cancel(job_id)
