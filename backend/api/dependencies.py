"""Shared dependencies for the API: settings, cache, oracle pipeline, AI judge."""
from functools import lru_cache

from meridian.cache import ClassificationCache
from meridian.config import MeridianSettings, get_settings
from meridian.duplicates.models import DuplicateJudge
from meridian.errors import OracleUnavailable
from meridian.pipeline import PayeePipeline, build_openai_pipeline


def get_app_settings() -> MeridianSettings:
    """Settings read once from the environment."""
    return get_settings()


@lru_cache(maxsize=1)
def get_classification_cache() -> ClassificationCache:
    """Process-wide classification cache shared by every pipeline run."""
    settings = get_settings()
    return ClassificationCache(maxsize=settings.cache_maxsize, ttl=settings.cache_ttl_seconds)


@lru_cache(maxsize=1)
def _openai_pipeline() -> PayeePipeline:
    return build_openai_pipeline(get_settings(), cache=get_classification_cache())


def get_pipeline() -> PayeePipeline:
    """
    The configured classification pipeline.

    Raises OracleUnavailable when no OpenAI key is set; tests override
    this dependency with a pipeline built around a fake oracle.
    """
    if not get_settings().openai_api_key:
        raise OracleUnavailable(
            "No classification oracle configured. Set OPENAI_API_KEY to enable classification.",
        )
    return _openai_pipeline()


def get_duplicate_judge() -> DuplicateJudge | None:
    """AI judge for ambiguous duplicate pairs, or None when AI is not configured."""
    settings = get_settings()
    if not settings.openai_api_key or not settings.ai_judgment_enabled:
        return None
    return _openai_pipeline().duplicate_engine.judge
