"""
Classification runner: chunk -> oracle -> merge.

Chunks are submitted with small bounded concurrency. A chunk whose oracle
call fails turns every uncached name in it into a Failed-tier result; the
rest of the batch still completes.
"""

import asyncio
import dataclasses
from collections.abc import Callable, Sequence

import structlog

from ..cache import ClassificationCache
from ..config import MAX_PAYEES_PER_CHUNK
from ..errors import OracleCallFailure
from ..models import Chunk, ClassificationResult, PayeeRowData
from ..resilience import ResiliencePolicy, with_resilience
from ..rowmap.chunking import calculate_chunked_progress, merge_chunk_results, split_for_submission
from ..scheduling import CancellationToken
from .ports import ClassificationOracle

logger = structlog.get_logger("meridian.oracle.runner")

ChunkProgressCallback = Callable[[dict], None]


class ClassificationRunner:
    """
    Drives a ClassificationOracle over a PayeeRowData's unique names.

    Args:
        oracle: The external classifier
        cache: Optional injected ClassificationCache keyed by normalized name
        policy: Timeout and retry settings per chunk call
        concurrency: Maximum chunk calls in flight
        max_unique_per_chunk: Chunk bound, below the oracle's hard cap
    """

    def __init__(
        self,
        oracle: ClassificationOracle,
        cache: ClassificationCache | None = None,
        policy: ResiliencePolicy | None = None,
        concurrency: int = 2,
        max_unique_per_chunk: int = MAX_PAYEES_PER_CHUNK,
    ):
        self.oracle = oracle
        self.cache = cache
        self.policy = policy or ResiliencePolicy(name="classification_oracle")
        self.concurrency = max(1, concurrency)
        self.max_unique_per_chunk = max_unique_per_chunk

    async def classify(
        self,
        payee_row_data: PayeeRowData,
        cancel_token: CancellationToken | None = None,
        on_progress: ChunkProgressCallback | None = None,
    ) -> list[ClassificationResult]:
        """
        Classify every unique payee; returns one result per unique name, in order.

        Raises:
            OperationCancelled: the token fired; no partial results are returned
        """
        chunks = split_for_submission(payee_row_data, self.max_unique_per_chunk)
        semaphore = asyncio.Semaphore(self.concurrency)
        progress = [
            {"chunk_id": c.chunk_id, "status": "pending", "percent": 0.0} for c in chunks
        ]

        def report(index: int, status: str) -> None:
            progress[index]["status"] = status
            progress[index]["percent"] = 100.0 if status in ("completed", "failed") else 0.0
            if on_progress:
                on_progress(calculate_chunked_progress(progress))

        async def run_chunk(chunk: Chunk) -> list[ClassificationResult]:
            async with semaphore:
                report(chunk.chunk_index, "running")
                normalized = payee_row_data.unique_normalized_names[
                    chunk.unique_offset:chunk.unique_offset + chunk.size
                ]
                results, failed = await self._classify_chunk(chunk, normalized, cancel_token)
                report(chunk.chunk_index, "failed" if failed else "completed")
                return results

        tasks = [asyncio.ensure_future(run_chunk(chunk)) for chunk in chunks]
        try:
            per_chunk = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        merged = merge_chunk_results(chunks, per_chunk)
        logger.info(
            "classification_complete",
            unique_payees=len(merged),
            chunks=len(chunks),
            failed=sum(1 for r in merged if r.failed),
        )
        return merged

    async def _classify_chunk(
        self,
        chunk: Chunk,
        normalized: Sequence[str],
        cancel_token: CancellationToken | None,
    ) -> tuple[list[ClassificationResult], bool]:
        names = chunk.unique_payee_names
        results: list[ClassificationResult | None] = [None] * len(names)

        pending: list[int] = []
        for i, key in enumerate(normalized):
            cached = self.cache.get(key) if self.cache is not None else None
            if cached is not None:
                results[i] = dataclasses.replace(cached, payee_name=names[i])
            else:
                pending.append(i)

        chunk_failed = False
        if pending:
            pending_names = [names[i] for i in pending]
            try:
                fresh = await with_resilience(
                    lambda: self.oracle.classify(pending_names),
                    self.policy,
                    cancel_token=cancel_token,
                )
                if len(fresh) != len(pending_names):
                    raise OracleCallFailure(
                        f"Oracle returned {len(fresh)} results for {len(pending_names)} names",
                        details={"chunk_id": chunk.chunk_id},
                    )
            except OracleCallFailure as exc:
                chunk_failed = True
                logger.error(
                    "chunk_classification_failed",
                    chunk_id=chunk.chunk_id,
                    names=len(pending_names),
                    error=exc.message,
                )
                fresh = [ClassificationResult.failure(name, exc.message) for name in pending_names]

            for i, result in zip(pending, fresh):
                if result is None:
                    result = ClassificationResult.failure(names[i], "Missing result from oracle")
                results[i] = result
                if self.cache is not None:
                    self.cache.set(normalized[i], result)

        logger.info(
            "chunk_classified",
            chunk_id=chunk.chunk_id,
            chunk_index=chunk.chunk_index,
            total_chunks=chunk.total_chunks,
            names=len(names),
            cache_hits=len(names) - len(pending),
        )
        return list(results), chunk_failed
