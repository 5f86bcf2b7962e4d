"""
External collaborators: classification oracle and AI duplicate judge.

ports holds the interfaces; runner drives an oracle over chunked unique
payees; batch adapts a submit/poll/fetch job service. The OpenAI-backed
adapters live in openai_batch and openai_judge.
"""

from .ports import BatchJobClient, ClassificationOracle, DuplicateJudge, JobStatus
from .batch import BatchJobOracle
from .runner import ClassificationRunner

__all__ = [
    "BatchJobClient",
    "BatchJobOracle",
    "ClassificationOracle",
    "ClassificationRunner",
    "DuplicateJudge",
    "JobStatus",
]
