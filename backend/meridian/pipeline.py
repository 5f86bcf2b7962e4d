"""
End-to-end payee pipeline.

rows -> row mapping -> chunked classification -> (duplicate detection)
     -> reconciliation onto every original row
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from .cache import ClassificationCache
from .config import MeridianSettings, get_settings
from .duplicates import DuplicateDetectionConfig, DuplicateDetectionEngine, DuplicateDetectionResult
from .duplicates.models import DuplicateJudge
from .models import ClassificationResult, PayeeRowData
from .oracle.batch import BatchJobOracle
from .oracle.ports import ClassificationOracle
from .oracle.runner import ClassificationRunner
from .resilience import RateLimit, ResiliencePolicy
from .rowmap import MappedRow, collect_duplicate_candidates, create_row_mapping_async, reconcile_async
from .scheduling import CancellationToken

logger = structlog.get_logger("meridian.pipeline")

StageCallback = Callable[[str, dict], None]


@dataclass(frozen=True)
class PipelineResult:
    payee_row_data: PayeeRowData
    classification_results: tuple[ClassificationResult, ...]
    mapped_rows: tuple[MappedRow, ...]
    duplicate_result: DuplicateDetectionResult | None


class PayeePipeline:
    """
    Wires the row mapper, classification runner, duplicate engine and
    reconciler together. Collaborators are injected.
    """

    def __init__(
        self,
        oracle: ClassificationOracle,
        judge: DuplicateJudge | None = None,
        cache: ClassificationCache | None = None,
        settings: MeridianSettings | None = None,
        duplicate_config: DuplicateDetectionConfig | None = None,
        oracle_policy: ResiliencePolicy | None = None,
    ):
        self.settings = settings or get_settings()
        self.runner = ClassificationRunner(
            oracle,
            cache=cache,
            policy=oracle_policy or ResiliencePolicy(
                name="classification_oracle",
                timeout_seconds=self.settings.oracle_timeout_seconds,
                max_retries=self.settings.oracle_max_retries,
                backoff_seconds=self.settings.oracle_backoff_seconds,
            ),
            concurrency=self.settings.classification_concurrency,
            max_unique_per_chunk=self.settings.classification_chunk_size,
        )
        self.duplicate_engine = DuplicateDetectionEngine(
            config=duplicate_config or DuplicateDetectionConfig.from_settings(self.settings),
            judge=judge,
            limiter=RateLimit(max_calls=5, per_seconds=1.0).build() if judge is not None else None,
        )

    async def run(
        self,
        rows: Sequence[Mapping[str, Any]],
        payee_column: str,
        detect_duplicates: bool = True,
        cancel_token: CancellationToken | None = None,
        on_stage: StageCallback | None = None,
    ) -> PipelineResult:
        def stage(name: str, **info) -> None:
            logger.info("pipeline_stage", stage=name, **info)
            if on_stage:
                on_stage(name, info)

        payee_row_data = await create_row_mapping_async(
            rows,
            payee_column,
            on_progress=lambda done, total, pct: stage("standardizing", processed=done, total=total, percent=pct),
            cancel_token=cancel_token,
        )

        results = await self.runner.classify(
            payee_row_data,
            cancel_token=cancel_token,
            on_progress=lambda progress: stage("classifying", **progress),
        )

        duplicate_result = None
        if detect_duplicates:
            stage("detecting_duplicates", unique_payees=payee_row_data.unique_count)
            duplicate_result = await self.duplicate_engine.detect_duplicates(
                collect_duplicate_candidates(payee_row_data),
                cancel_token=cancel_token,
            )

        mapped_rows = await reconcile_async(
            results,
            payee_row_data,
            duplicate_result=duplicate_result,
            on_progress=lambda done, total, pct: stage("reconciling", processed=done, total=total, percent=pct),
            cancel_token=cancel_token,
        )
        stage("complete", rows=len(mapped_rows))

        return PipelineResult(
            payee_row_data=payee_row_data,
            classification_results=tuple(results),
            mapped_rows=tuple(mapped_rows),
            duplicate_result=duplicate_result,
        )


def build_openai_pipeline(
    settings: MeridianSettings | None = None,
    cache: ClassificationCache | None = None,
) -> PayeePipeline:
    """Pipeline backed by the OpenAI Batch API and chat-completion judge."""
    from .oracle.openai_batch import OpenAIBatchClient
    from .oracle.openai_judge import OpenAIDuplicateJudge

    settings = settings or get_settings()
    if cache is None:
        cache = ClassificationCache(maxsize=settings.cache_maxsize, ttl=settings.cache_ttl_seconds)
    oracle = BatchJobOracle(
        OpenAIBatchClient(api_key=settings.openai_api_key, model=settings.openai_model),
        poll_interval=settings.batch_poll_interval_seconds,
        max_wait=settings.batch_max_wait_seconds,
    )
    judge = OpenAIDuplicateJudge(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.ai_timeout_seconds,
    )
    # The batch oracle polls for up to max_wait; the call timeout has to cover it.
    # An expired job is never resubmitted.
    policy = ResiliencePolicy(
        name="openai_batch",
        timeout_seconds=settings.batch_max_wait_seconds + 60,
        max_retries=settings.oracle_max_retries,
        backoff_seconds=settings.oracle_backoff_seconds,
        retry_timeouts=False,
    )
    return PayeePipeline(
        oracle,
        judge=judge,
        cache=cache,
        settings=settings,
        oracle_policy=policy,
    )
