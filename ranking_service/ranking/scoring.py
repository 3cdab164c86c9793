from __future__ import annotations

from typing import Dict, Optional
import math

from ranking_service.app.errors import MSG_INVALID_TYPE, MSG_INVALID_WATCH, ValidationError
from ranking_service.ranking.models import InteractionType

# base increment per interaction
SCORE_INCREMENTS: Dict[InteractionType, float] = {
    InteractionType.VIEW: 1.0,
    InteractionType.LIKE: 5.0,
    InteractionType.COMMENT: 10.0,
    InteractionType.SHARE: 20.0,
    InteractionType.WATCH: 2.0,
}


def score_delta(interaction_type: str, watch_seconds: Optional[float] = None) -> float:
    """
    Score increment for one interaction.

    watch is scaled per minute watched (fractional, uncapped) when
    watch_seconds > 0; every other type ignores watch_seconds. Non-finite
    watch_seconds (inf, NaN) is rejected for every type.
    """
    try:
        kind = InteractionType(interaction_type)
    except ValueError:
        raise ValidationError(MSG_INVALID_TYPE) from None

    if watch_seconds is not None and not math.isfinite(watch_seconds):
        raise ValidationError(MSG_INVALID_WATCH)

    delta = SCORE_INCREMENTS[kind]
    if kind is InteractionType.WATCH and watch_seconds is not None and watch_seconds > 0:
        delta *= float(watch_seconds) / 60.0
    return delta
