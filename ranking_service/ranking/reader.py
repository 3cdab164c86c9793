from __future__ import annotations

from typing import List
import logging

from ranking_service.app import keys
from ranking_service.app.errors import (
    MSG_LIMIT_RANGE,
    MSG_OFFSET_RANGE,
    DataFetchError,
    StoreUnavailableError,
    ValidationError,
)
from ranking_service.app.store import RankingStore
from ranking_service.ranking.models import Item

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 100


def check_limit(limit: int) -> None:
    if limit is None or limit < MIN_LIMIT or limit > MAX_LIMIT:
        raise ValidationError(MSG_LIMIT_RANGE)


async def resolve_items(store: RankingStore, item_ids: List[str]) -> List[Item]:
    """Metadata for each id in order, one pipelined round trip."""
    try:
        rows = await store.multi_get_fields([keys.item_key(i) for i in item_ids])
    except StoreUnavailableError as e:
        logger.info("failed to get item data count=%d: %s", len(item_ids), e)
        raise DataFetchError() from e
    return [Item.from_hash(item_id, row) for item_id, row in zip(item_ids, rows)]


async def list_global(store: RankingStore, limit: int = 10, offset: int = 0) -> List[Item]:
    """
    One page of the global ranking, highest score first.

    Ties follow Redis' own ordering for equal scores (reverse lexicographic
    on item id for ZREVRANGE). An offset past the end gives an empty page.
    """
    check_limit(limit)
    if offset is None or offset < 0:
        raise ValidationError(MSG_OFFSET_RANGE)

    try:
        item_ids = await store.range_descending(keys.GLOBAL_SCOPE, offset, offset + limit - 1)
    except StoreUnavailableError as e:
        logger.error("failed to get rankings: %s", e)
        raise DataFetchError() from e

    if not item_ids:
        return []
    return await resolve_items(store, item_ids)
