"""
Interfaces of the external collaborators: the classification oracle,
the batch job service behind it, and the AI duplicate judge.
"""

from enum import Enum
from typing import Protocol, Sequence, runtime_checkable

from ..duplicates.models import DuplicateJudge
from ..models import ClassificationResult


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED, JobStatus.EXPIRED, JobStatus.CANCELLED)


@runtime_checkable
class ClassificationOracle(Protocol):
    """Classifies a batch of unique names; one result per name, in order."""

    async def classify(self, names: Sequence[str]) -> list[ClassificationResult]:
        ...


@runtime_checkable
class BatchJobClient(Protocol):
    """Submit/poll/fetch job service wrapped by BatchJobOracle."""

    async def submit(self, names: Sequence[str]) -> str:
        ...

    async def poll(self, job_id: str) -> JobStatus:
        ...

    async def fetch_results(self, job_id: str, names: Sequence[str]) -> list[ClassificationResult]:
        ...

    async def cancel(self, job_id: str) -> None:
        ...


__all__ = ["BatchJobClient", "ClassificationOracle", "DuplicateJudge", "JobStatus"]
