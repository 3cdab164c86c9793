from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Set
import logging

from ranking_service.app import keys
from ranking_service.app.config import Settings
from ranking_service.app.errors import (
    MSG_USER_ID_MISSING,
    DataFetchError,
    StoreUnavailableError,
    ValidationError,
)
from ranking_service.app.store import RankingStore
from ranking_service.ranking.models import Item
from ranking_service.ranking.reader import check_limit, resolve_items

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersonalizationPolicy:
    follow_boost: float = 100.0
    interaction_boost: float = 50.0
    top_k_per_creator: int = 10
    top_m_global: int = 50

    @classmethod
    def from_settings(cls, cfg: Settings) -> "PersonalizationPolicy":
        return cls(
            follow_boost=cfg.follow_boost,
            interaction_boost=cfg.interaction_boost,
            top_k_per_creator=cfg.top_k_per_creator,
            top_m_global=cfg.top_m_global,
        )


@dataclass
class Candidate:
    item_id: str
    score: float
    owner_id: Optional[str]
    adjusted: float


def adjusted_score(
    score: float,
    owner_id: Optional[str],
    item_id: str,
    follows: Set[str],
    history: Set[str],
    policy: PersonalizationPolicy,
) -> float:
    # flat additions, so the order the boosts apply in does not matter
    adjusted = score
    if owner_id is not None and owner_id in follows:
        adjusted += policy.follow_boost
    if item_id in history:
        adjusted += policy.interaction_boost
    return adjusted


async def _fetch_user_sets(store: RankingStore, actor_id: str) -> tuple[Set[str], Set[str]]:
    try:
        follows = await store.set_members(keys.follows_key(actor_id))
    except StoreUnavailableError as e:
        logger.info("failed to get followed creators actor_id=%s: %s", actor_id, e)
        raise DataFetchError() from e
    try:
        history = await store.set_members(keys.history_key(actor_id))
    except StoreUnavailableError as e:
        logger.info("failed to get user interactions actor_id=%s: %s", actor_id, e)
        raise DataFetchError() from e
    return follows, history


async def build_candidate_pool(
    store: RankingStore,
    follows: Set[str],
    policy: PersonalizationPolicy,
) -> List[str]:
    """
    Deduplicated union of each followed creator's top K and the global top M.
    First occurrence wins; creators are visited in sorted order so the pool
    order is reproducible.
    """
    pool: Dict[str, None] = {}

    # a stop index of -1 would mean "whole set" to Redis
    if policy.top_k_per_creator <= 0:
        follows = set()

    for owner_id in sorted(follows):
        try:
            top = await store.range_descending(
                keys.creator_scope(owner_id), 0, policy.top_k_per_creator - 1
            )
        except StoreUnavailableError as e:
            logger.info("failed to get items for creator owner_id=%s: %s", owner_id, e)
            raise DataFetchError() from e
        for item_id in top:
            pool.setdefault(item_id, None)

    if policy.top_m_global > 0:
        try:
            top = await store.range_descending(keys.GLOBAL_SCOPE, 0, policy.top_m_global - 1)
        except StoreUnavailableError as e:
            logger.info("failed to get global rankings: %s", e)
            raise DataFetchError() from e
        for item_id in top:
            pool.setdefault(item_id, None)

    return list(pool)


async def score_candidates(
    store: RankingStore,
    item_ids: List[str],
    follows: Set[str],
    history: Set[str],
    policy: PersonalizationPolicy,
) -> List[Candidate]:
    # batched: one ZMSCORE and one pipelined HGET, never a call per candidate
    try:
        scores = await store.multi_get_scores(keys.GLOBAL_SCOPE, item_ids)
    except StoreUnavailableError as e:
        logger.info("failed to get scores: %s", e)
        raise DataFetchError() from e
    try:
        owners = await store.multi_get_field([keys.item_key(i) for i in item_ids], keys.FIELD_OWNER)
    except StoreUnavailableError as e:
        logger.info("failed to get creator ids: %s", e)
        raise DataFetchError() from e

    out: List[Candidate] = []
    for item_id, score, owner_id in zip(item_ids, scores, owners):
        # creator scope can briefly run ahead of the global one; rank as 0 until it catches up
        canonical = score if score is not None else 0.0
        out.append(
            Candidate(
                item_id=item_id,
                score=canonical,
                owner_id=owner_id,
                adjusted=adjusted_score(canonical, owner_id, item_id, follows, history, policy),
            )
        )
    return out


async def personalize(
    store: RankingStore,
    actor_id: str,
    limit: int = 20,
    policy: Optional[PersonalizationPolicy] = None,
) -> List[Item]:
    """
    Personalized top-N for a user.

      - candidates = followed creators' top K + global top M, deduplicated
      - adjusted = global score + follow boost (owner followed)
                   + interaction boost (item in the user's history)
      - sort by adjusted desc, ties by item_id asc, keep `limit`

    Returned items carry their global-scope score, never the boosted one.
    All-or-nothing: any store failure raises DataFetchError.
    """
    if not actor_id:
        raise ValidationError(MSG_USER_ID_MISSING)
    check_limit(limit)
    policy = policy or PersonalizationPolicy()

    follows, history = await _fetch_user_sets(store, actor_id)

    item_ids = await build_candidate_pool(store, follows, policy)
    if not item_ids:
        return []

    candidates = await score_candidates(store, item_ids, follows, history, policy)
    candidates.sort(key=lambda c: (-c.adjusted, c.item_id))
    top = candidates[:limit]

    items = await resolve_items(store, [c.item_id for c in top])
    # report the global-scope score fetched above; the cached hash score can lag behind it
    for item, cand in zip(items, top):
        item.score = cand.score
    return items
