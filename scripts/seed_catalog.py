#!/usr/bin/env python3
"""
Seed catalog items and follow sets into Redis.

catalog.json:
  {
    "items":   [{"item_id": "v1", "title": "...", "owner_id": "c1", "score": 0}],
    "follows": {"u1": ["c1", "c2"]}
  }
"""
import argparse
import asyncio
import json
import os

from ranking_service.app import keys
from ranking_service.app.store import RankingStore, connect
from ranking_service.ranking.aggregator import register_item
from ranking_service.ranking.models import Item


def load_catalog(path: str) -> tuple[list[Item], dict[str, list[str]]]:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    items = []
    for row in raw.get("items", []):
        item_id = str(row.get("item_id") or "").strip()
        if not item_id:
            continue
        items.append(
            Item(
                item_id=item_id,
                title=str(row.get("title") or ""),
                owner_id=str(row.get("owner_id") or ""),
                score=float(row.get("score") or 0.0),
            )
        )

    follows = {}
    for actor_id, owners in (raw.get("follows") or {}).items():
        follows[str(actor_id)] = [str(o) for o in owners if str(o).strip()]

    return items, follows


async def seed(store: RankingStore, items: list[Item], follows: dict[str, list[str]], reset: bool) -> None:
    if reset:
        n = await store.delete_matching(keys.KEY_PATTERNS)
        print(f"Deleted {n} keys.")

    for item in items:
        await register_item(store, item)

    for actor_id, owners in follows.items():
        await store.set_add(keys.follows_key(actor_id), *owners)

    print(f"Seeded {len(items)} items, {len(follows)} follow sets.")


async def amain(args: argparse.Namespace) -> None:
    items, follows = load_catalog(args.catalog)
    store = RankingStore(connect())
    try:
        await store.ping()
        await seed(store, items, follows, args.reset)
    finally:
        await store.close()


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--catalog", default="data/catalog.json")
    ap.add_argument("--reset", action="store_true", help="Delete ranking keys before seeding")
    args = ap.parse_args()

    if not os.path.exists(args.catalog):
        raise SystemExit(f"Missing catalog file: {args.catalog}")

    asyncio.run(amain(args))
    print("Seeding complete.")

if __name__ == "__main__":
    main()
