"""
Adapts a submit/poll/fetch batch job service to ClassificationOracle.
"""

import time
from collections.abc import Sequence

import structlog

from ..errors import OracleCallFailure, OracleTimeout
from ..models import ClassificationResult
from ..scheduling import yield_point
from .ports import BatchJobClient, JobStatus

logger = structlog.get_logger("meridian.oracle.batch")


class BatchJobOracle:
    """
    Submits one job per classify() call and polls until it is terminal.

    Args:
        client: Batch job service
        poll_interval: Seconds between status checks
        max_wait: Seconds before the job is cancelled and the call fails
    """

    def __init__(self, client: BatchJobClient, poll_interval: float = 30.0, max_wait: float = 24 * 3600.0):
        self.client = client
        self.poll_interval = poll_interval
        self.max_wait = max_wait

    async def classify(self, names: Sequence[str]) -> list[ClassificationResult]:
        job_id = await self.client.submit(names)
        logger.info("batch_job_submitted", job_id=job_id, names=len(names))
        started = time.monotonic()

        while True:
            status = await self.client.poll(job_id)
            if status == JobStatus.DONE:
                results = await self.client.fetch_results(job_id, names)
                logger.info(
                    "batch_job_done",
                    job_id=job_id,
                    names=len(names),
                    failed=sum(1 for r in results if r.failed),
                )
                return results
            if status.terminal:
                raise OracleCallFailure(
                    f"Batch job {job_id} ended with status {status.value}",
                    details={"job_id": job_id, "status": status.value},
                )
            if time.monotonic() - started > self.max_wait:
                await self.client.cancel(job_id)
                raise OracleTimeout(
                    f"Batch job {job_id} still {status.value} after {self.max_wait}s",
                    details={"job_id": job_id, "status": status.value},
                )
            await yield_point(self.poll_interval)
