"""
Duplicate detection API endpoints.
"""
import dataclasses

from fastapi import APIRouter, Depends

from meridian.config import MeridianSettings
from meridian.duplicates import DuplicateDetectionConfig, DuplicateDetectionEngine
from meridian.duplicates.models import DuplicateJudge

from ..dependencies import get_app_settings, get_duplicate_judge
from ..models.duplicate import DuplicateDetectRequest, DuplicateDetectResponse

router = APIRouter(prefix="/duplicates", tags=["duplicates"])


@router.post("/detect", response_model=DuplicateDetectResponse)
async def detect(
    request: DuplicateDetectRequest,
    settings: MeridianSettings = Depends(get_app_settings),
    judge: DuplicateJudge | None = Depends(get_duplicate_judge),
):
    """
    Find near-duplicate payee names.

    Pairs scoring at or above high_threshold are duplicates, pairs at or
    below low_threshold are dropped, and the ambiguous middle goes to the
    AI judge when one is configured and enable_ai_judgment is set.
    """
    config = DuplicateDetectionConfig.from_settings(settings)
    overrides = {"enable_ai_judgment": request.enable_ai_judgment and config.enable_ai_judgment}
    if request.high_threshold is not None:
        overrides["high_threshold"] = request.high_threshold
    if request.low_threshold is not None:
        overrides["low_threshold"] = request.low_threshold
    config = dataclasses.replace(config, **overrides)

    engine = DuplicateDetectionEngine(config=config, judge=judge)
    result = await engine.detect_duplicates(
        [{"id": r.id, "name": r.name} for r in request.records]
    )
    return DuplicateDetectResponse(**result.to_dict())
