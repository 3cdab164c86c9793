"""Personalized ranking: candidate pool, boosts, ordering."""

import asyncio

import pytest

from ranking_service.app import keys
from ranking_service.app.errors import DataFetchError, ValidationError
from ranking_service.ranking.models import Item
from ranking_service.ranking.personalize import (
    PersonalizationPolicy,
    adjusted_score,
    build_candidate_pool,
    personalize,
)

POLICY = PersonalizationPolicy(follow_boost=100.0, interaction_boost=50.0)


async def follow(redis_client, actor_id, *owners):
    await redis_client.sadd(keys.follows_key(actor_id), *owners)


async def touch(redis_client, actor_id, *item_ids):
    await redis_client.sadd(keys.history_key(actor_id), *item_ids)


def ids(items):
    return [i.item_id for i in items]


class TestAdjustedScore:
    def test_both_boosts_add_up(self):
        assert adjusted_score(10.0, "c1", "v1", {"c1"}, {"v1"}, POLICY) == 160.0

    def test_follow_only(self):
        assert adjusted_score(10.0, "c1", "v1", {"c1"}, set(), POLICY) == 110.0

    def test_history_only(self):
        assert adjusted_score(10.0, "c2", "v1", {"c1"}, {"v1"}, POLICY) == 60.0

    def test_neither_leaves_score_alone(self):
        assert adjusted_score(10.0, "c2", "v1", {"c1"}, {"v9"}, POLICY) == 10.0

    def test_unknown_owner_gets_no_follow_boost(self):
        assert adjusted_score(10.0, None, "v1", {"c1"}, set(), POLICY) == 10.0


class TestPersonalize:
    async def test_followed_creator_outranks_more_popular_item(self, store, redis_client, seed):
        await seed(Item("v1", "Video 1", "c1", 50.0), Item("v2", "Video 2", "c2", 100.0))
        await follow(redis_client, "u1", "c1")

        items = await personalize(store, "u1", limit=10, policy=POLICY)

        assert ids(items) == ["v1", "v2"]
        # canonical scores, not the boosted 150
        assert [i.score for i in items] == [50.0, 100.0]

    async def test_history_and_follow_boosts_stack(self, store, redis_client, seed):
        await seed(
            Item("v1", "Video 1", "c1", 10.0),   # followed + watched -> 160
            Item("v2", "Video 2", "c2", 155.0),  # neither -> 155
            Item("v3", "Video 3", "c2", 60.0),   # watched -> 110
        )
        await follow(redis_client, "u1", "c1")
        await touch(redis_client, "u1", "v1", "v3")

        items = await personalize(store, "u1", limit=10, policy=POLICY)

        assert ids(items) == ["v1", "v2", "v3"]
        assert [i.score for i in items] == [10.0, 155.0, 60.0]

    async def test_no_follows_is_global_order(self, store, seed):
        await seed(
            Item("vid1", "Video 1", "creator1", 50.0),
            Item("vid2", "Video 2", "creator2", 100.0),
            Item("vid3", "Video 3", "creator3", 25.0),
        )
        items = await personalize(store, "user2", limit=5, policy=POLICY)
        assert ids(items) == ["vid2", "vid1", "vid3"]

    async def test_truncates_to_limit(self, store, redis_client, seed):
        await seed(
            Item("vid1", "Video 1", "creator1", 50.0),
            Item("vid2", "Video 2", "creator2", 100.0),
            Item("vid3", "Video 3", "creator3", 25.0),
        )
        await follow(redis_client, "user1", "creator1", "creator2")

        items = await personalize(store, "user1", limit=2, policy=POLICY)

        assert ids(items) == ["vid2", "vid1"]

    async def test_item_in_creator_and_global_top_appears_once(self, store, redis_client, seed):
        await seed(Item("v1", "Video 1", "c1", 80.0), Item("v2", "Video 2", "c1", 70.0))
        await follow(redis_client, "u1", "c1")

        pool = await build_candidate_pool(store, {"c1"}, POLICY)
        items = await personalize(store, "u1", limit=10, policy=POLICY)

        assert pool == ["v1", "v2"]
        assert ids(items) == ["v1", "v2"]

    async def test_ties_break_on_item_id(self, store, redis_client, seed):
        # a: 0 + follow 100, b: 100 -> tie at 100
        await seed(Item("b", "B", "c2", 100.0), Item("a", "A", "c1", 0.0))
        await follow(redis_client, "u1", "c1")
        assert ids(await personalize(store, "u1", limit=10, policy=POLICY)) == ["a", "b"]

    async def test_ties_break_on_item_id_regardless_of_which_is_boosted(self, store, redis_client, seed):
        await seed(Item("a", "A", "c2", 100.0), Item("b", "B", "c1", 0.0))
        await follow(redis_client, "u1", "c1")
        assert ids(await personalize(store, "u1", limit=10, policy=POLICY)) == ["a", "b"]

    async def test_boosts_come_from_policy(self, store, redis_client, seed):
        await seed(Item("v1", "Video 1", "c1", 50.0), Item("v2", "Video 2", "c2", 100.0))
        await follow(redis_client, "u1", "c1")

        no_boost = PersonalizationPolicy(follow_boost=0.0, interaction_boost=0.0)
        assert ids(await personalize(store, "u1", limit=10, policy=no_boost)) == ["v2", "v1"]

    async def test_pool_sizes_come_from_policy(self, store, redis_client, seed):
        await seed(
            Item("a", "A", "c1", 30.0),
            Item("b", "B", "c1", 20.0),
            Item("c", "C", "c1", 10.0),
            Item("z", "Z", "c9", 99.0),
        )
        policy = PersonalizationPolicy(top_k_per_creator=2, top_m_global=0)

        assert await build_candidate_pool(store, {"c1"}, policy) == ["a", "b"]

        policy = PersonalizationPolicy(top_k_per_creator=0, top_m_global=1)
        assert await build_candidate_pool(store, {"c1"}, policy) == ["z"]

    async def test_creator_scope_ahead_of_global(self, store, redis_client, seed):
        # ranked for the creator but never made it into the global scope
        await seed(Item("v2", "Video 2", "c2", 120.0))
        await redis_client.zadd(keys.creator_scope("c1"), {"ghost": 5.0})
        await redis_client.hset(keys.item_key("ghost"), mapping={"title": "Ghost", "owner_id": "c1"})
        await follow(redis_client, "u1", "c1")

        items = await personalize(store, "u1", limit=10, policy=POLICY)

        # ghost ranks on 0 + follow boost = 100, below v2
        assert ids(items) == ["v2", "ghost"]
        assert items[1].score == 0.0

    async def test_reports_global_score_when_cached_score_is_stale(self, store, redis_client, seed):
        await seed(Item("v1", "Video 1", "c1", 50.0))
        # global scope moved on but the item hash was never updated
        await redis_client.zincrby(keys.GLOBAL_SCOPE, 10.0, "v1")

        (item,) = await personalize(store, "u1", limit=10, policy=POLICY)

        assert item.score == 60.0
        assert item.title == "Video 1"

    async def test_empty_everything(self, store):
        assert await personalize(store, "nobody", limit=20) == []

    async def test_default_policy(self, store, redis_client, seed):
        await seed(Item("v1", "Video 1", "c1", 50.0), Item("v2", "Video 2", "c2", 100.0))
        await follow(redis_client, "u1", "c1")
        assert ids(await personalize(store, "u1")) == ["v1", "v2"]


class TestPersonalizeErrors:
    @pytest.mark.parametrize(
        "actor_id,limit,message",
        [
            ("", 10, "user_id is required"),
            ("", 0, "user_id is required"),
            ("u1", 0, "limit must be between 1 and 100"),
            ("u1", 101, "limit must be between 1 and 100"),
        ],
    )
    async def test_rejected_before_store(self, forbidden_store, actor_id, limit, message):
        with pytest.raises(ValidationError) as ei:
            await personalize(forbidden_store, actor_id, limit=limit)
        assert ei.value.message == message

    @pytest.mark.parametrize(
        "method",
        ["set_members", "range_descending", "multi_get_scores", "multi_get_field", "multi_get_fields"],
    )
    async def test_any_store_failure_is_fetch_error(self, flaky_store, redis_client, seed, method):
        await seed(Item("v1", "Video 1", "c1", 50.0))
        await follow(redis_client, "u1", "c1")

        with pytest.raises(DataFetchError):
            await personalize(flaky_store(**{method: None}), "u1", limit=10, policy=POLICY)


class TestPersonalizeCancellation:
    async def test_cancel_during_score_fetch_propagates(self, gated_store, redis_client, seed):
        await seed(Item("v1", "Video 1", "c1", 50.0))
        await follow(redis_client, "u1", "c1")
        gated = gated_store("multi_get_scores")

        task = asyncio.create_task(personalize(gated, "u1", limit=10, policy=POLICY))
        await gated.entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert "multi_get_fields" not in gated.calls
