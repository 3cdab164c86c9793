from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging

from ranking_service.app import keys
from ranking_service.app.errors import (
    MSG_INVALID_TIMESTAMP,
    MSG_ITEM_ID_MISSING,
    MSG_USER_ID_MISSING,
    DataFetchError,
    DataWriteError,
    StoreUnavailableError,
    ValidationError,
)
from ranking_service.app.store import RankingStore
from ranking_service.ranking.models import Item
from ranking_service.ranking.scoring import score_delta

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "Untitled Item {item_id}"


@dataclass
class Interaction:
    item_id: str
    type: str
    actor_id: str
    occurred_at: int
    watch_seconds: Optional[float] = None


def validate_interaction(ev: Interaction) -> float:
    """Check preconditions in order (first failure wins) and return the delta."""
    if not ev.item_id:
        raise ValidationError(MSG_ITEM_ID_MISSING)
    if not ev.actor_id:
        raise ValidationError(MSG_USER_ID_MISSING)
    if ev.occurred_at is None or ev.occurred_at <= 0:
        raise ValidationError(MSG_INVALID_TIMESTAMP)
    return score_delta(ev.type, ev.watch_seconds)


# The update is an owner lookup plus four separate writes, not a transaction. A failure
# part way leaves earlier writes in place (global ahead of creator scope,
# metadata score stale) and is reported as a write failure without rollback.

async def resolve_owner(store: RankingStore, item_id: str, actor_id: str) -> str:
    """Step 1: owner of the item, provisioning unseen items with the actor as owner."""
    item_key = keys.item_key(item_id)
    try:
        row = await store.get_fields(item_key, keys.FIELD_OWNER, keys.FIELD_TITLE)
    except StoreUnavailableError as e:
        logger.info("failed to get item data item_id=%s: %s", item_id, e)
        raise DataFetchError() from e

    if row:
        return row.get(keys.FIELD_OWNER, "")

    # TODO: owner should come from the catalog once items are registered
    # upstream; the first actor standing in as owner mixes user and creator ids.
    try:
        await store.set_fields_if_absent(
            item_key,
            {
                keys.FIELD_TITLE: PLACEHOLDER_TITLE.format(item_id=item_id),
                keys.FIELD_OWNER: actor_id,
                keys.FIELD_SCORE: 0.0,
            },
        )
    except StoreUnavailableError as e:
        logger.info("failed to provision item item_id=%s: %s", item_id, e)
        raise DataWriteError() from e

    logger.info("provisioned unseen item item_id=%s owner_id=%s", item_id, actor_id)
    # re-read so a concurrent provisioner's owner wins consistently
    try:
        row = await store.get_fields(item_key, keys.FIELD_OWNER)
    except StoreUnavailableError as e:
        logger.info("failed to get item data item_id=%s: %s", item_id, e)
        raise DataFetchError() from e
    return row.get(keys.FIELD_OWNER, actor_id)


async def bump_global(store: RankingStore, item_id: str, delta: float) -> float:
    """Step 2: atomic increment in the global scope; returns the new score."""
    try:
        return await store.increment_score(keys.GLOBAL_SCOPE, item_id, delta)
    except StoreUnavailableError as e:
        logger.info("failed to update global ranking item_id=%s: %s", item_id, e)
        raise DataWriteError() from e


async def bump_creator(store: RankingStore, owner_id: str, item_id: str, delta: float) -> None:
    """Step 3: same delta into the owner's scope."""
    try:
        await store.increment_score(keys.creator_scope(owner_id), item_id, delta)
    except StoreUnavailableError as e:
        logger.info("failed to update creator ranking owner_id=%s item_id=%s: %s", owner_id, item_id, e)
        raise DataWriteError() from e


async def cache_score(store: RankingStore, item_id: str, new_score: float) -> None:
    """Step 4: denormalized score on the item hash."""
    try:
        await store.set_field(keys.item_key(item_id), keys.FIELD_SCORE, new_score)
    except StoreUnavailableError as e:
        logger.info("failed to update score in item hash item_id=%s: %s", item_id, e)
        raise DataWriteError() from e


async def record_history(store: RankingStore, actor_id: str, item_id: str) -> None:
    """Step 5: remember that the actor touched this item."""
    try:
        await store.set_add(keys.history_key(actor_id), item_id)
    except StoreUnavailableError as e:
        logger.info("failed to store user interaction actor_id=%s: %s", actor_id, e)
        raise DataWriteError() from e


async def apply_interaction(store: RankingStore, ev: Interaction) -> float:
    """
    Turn one interaction into score updates.

    Validation happens before any store access. Returns the post-increment
    global score as reported by the store's atomic increment.
    """
    delta = validate_interaction(ev)

    owner_id = await resolve_owner(store, ev.item_id, ev.actor_id)
    new_score = await bump_global(store, ev.item_id, delta)
    await bump_creator(store, owner_id, ev.item_id, delta)
    await cache_score(store, ev.item_id, new_score)
    await record_history(store, ev.actor_id, ev.item_id)

    logger.debug(
        "applied %s item_id=%s actor_id=%s delta=%s new_score=%s",
        ev.type, ev.item_id, ev.actor_id, delta, new_score,
    )
    return new_score


async def register_item(store: RankingStore, item: Item) -> None:
    """
    Write an item's metadata and seed its score into the global scope and its
    owner's scope, so both scopes agree from the start.
    """
    if not item.item_id:
        raise ValidationError(MSG_ITEM_ID_MISSING)

    try:
        await store.set_fields(
            keys.item_key(item.item_id),
            {
                keys.FIELD_TITLE: item.title,
                keys.FIELD_OWNER: item.owner_id,
                keys.FIELD_SCORE: item.score,
            },
        )
        await store.add_score(keys.GLOBAL_SCOPE, item.item_id, item.score)
        await store.add_score(keys.creator_scope(item.owner_id), item.item_id, item.score)
    except StoreUnavailableError as e:
        logger.info("failed to register item item_id=%s: %s", item.item_id, e)
        raise DataWriteError() from e
