"""
Pytest fixtures: fake oracle and judge, fast resilience policy, API client.
"""
import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_duplicate_judge, get_pipeline
from api.main import app
from meridian.config import MeridianSettings
from meridian.duplicates import AIJudgment, DuplicateDetectionConfig
from meridian.models import ClassificationResult
from meridian.pipeline import PayeePipeline
from meridian.resilience import ResiliencePolicy

BUSINESS_WORDS = {"INC", "LLC", "CORP", "CORPORATION", "CO", "COMPANY", "LTD"}


class FakeOracle:
    """Business if the name carries an entity word (or is listed), else Individual."""

    def __init__(self, business=None, fail_first=0, short_by=0):
        self.business = set(business) if business is not None else None
        self.fail_first = fail_first
        self.short_by = short_by
        self.calls: list[list[str]] = []

    def is_business(self, name: str) -> bool:
        if self.business is not None:
            return name in self.business
        tokens = name.upper().replace(",", " ").replace(".", " ").split()
        return any(token in BUSINESS_WORDS for token in tokens)

    async def classify(self, names):
        self.calls.append(list(names))
        if len(self.calls) <= self.fail_first:
            raise RuntimeError("oracle unavailable")
        results = [
            ClassificationResult(
                payee_name=name,
                classification="Business" if self.is_business(name) else "Individual",
                confidence=95 if self.is_business(name) else 80,
                reasoning="fake oracle",
            )
            for name in names
        ]
        return results[:len(results) - self.short_by]


class FakeJudge:
    """Returns a fixed verdict, or raises for every call when failing."""

    def __init__(self, is_duplicate=True, confidence=92, fail=False):
        self.verdict = AIJudgment(is_duplicate=is_duplicate, confidence=confidence, reasoning="fake judge")
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def judge(self, name_a, name_b):
        self.calls.append((name_a, name_b))
        if self.fail:
            raise RuntimeError("judge unavailable")
        return self.verdict


@pytest.fixture
def fake_oracle():
    """Factory for FakeOracle instances."""
    return FakeOracle


@pytest.fixture
def fake_judge():
    """Factory for FakeJudge instances."""
    return FakeJudge


@pytest.fixture
def fast_policy():
    """Resilience policy with no backoff so retry tests run instantly."""
    return ResiliencePolicy(name="test_oracle", timeout_seconds=1.0, max_retries=1, backoff_seconds=0.0)


@pytest.fixture
def no_ai_config():
    return DuplicateDetectionConfig(enable_ai_judgment=False)


@pytest.fixture
def ai_config():
    """Wide ambiguous band and an instant, non-retrying judge policy."""
    return DuplicateDetectionConfig(
        high_threshold=99,
        low_threshold=1,
        ai_call_delay_seconds=0.0,
        ai_policy=ResiliencePolicy(name="ai_judge", timeout_seconds=1.0, max_retries=0, backoff_seconds=0.0),
    )


@pytest.fixture
def sample_rows():
    return [
        {"id": 1, "payee": "Acme Widget Co., Inc.", "amount": 120.0},
        {"id": 2, "payee": "Jane Smith", "amount": 45.5},
        {"id": 3, "payee": "ACME WIDGET CO INC", "amount": 300.0},
        {"id": 4, "payee": "", "amount": 12.0},
        {"id": 5, "payee": "jane smith", "amount": 9.99},
    ]


@pytest.fixture(scope="module")
def client():
    """Test client with the oracle and judge replaced by fakes."""
    pipeline = PayeePipeline(
        FakeOracle(),
        settings=MeridianSettings(),
        duplicate_config=DuplicateDetectionConfig(enable_ai_judgment=False),
        oracle_policy=ResiliencePolicy(name="test_oracle", timeout_seconds=1.0, max_retries=0),
    )
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_duplicate_judge] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="module")
def base_url():
    """Base URL for API v1 endpoints."""
    return "/api/v1"
