#!/usr/bin/env python3
import argparse
import asyncio
import json

from ranking_service.app.config import settings
from ranking_service.app.store import RankingStore, connect
from ranking_service.ranking.personalize import PersonalizationPolicy, personalize
from ranking_service.ranking.reader import list_global


async def amain(args: argparse.Namespace) -> dict:
    store = RankingStore(connect())
    try:
        top = await list_global(store, limit=args.topk, offset=0)
        personal = await personalize(
            store,
            actor_id=args.actor_id,
            limit=args.topk,
            policy=PersonalizationPolicy.from_settings(settings),
        )
    finally:
        await store.close()

    return {
        "actor_id": args.actor_id,
        "global": [i.to_dict() for i in top],
        "personal": [i.to_dict() for i in personal],
    }


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--actor-id", default="u1")
    ap.add_argument("--topk", type=int, default=5)
    args = ap.parse_args()

    print(json.dumps(asyncio.run(amain(args)), indent=2))


if __name__ == "__main__":
    main()
