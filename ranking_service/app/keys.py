"""
Redis key layout.

  rankings:global              ZSET  item_id -> score
  creator:<owner_id>:items     ZSET  item_id -> score (items owned by that creator)
  item:<item_id>               HASH  title, owner_id, score
  user:<actor_id>:interactions SET   item ids the user interacted with
  user:<actor_id>:follows      SET   creator ids the user follows
"""

GLOBAL_SCOPE = "rankings:global"

FIELD_TITLE = "title"
FIELD_OWNER = "owner_id"
FIELD_SCORE = "score"

KEY_PATTERNS = (
    GLOBAL_SCOPE,
    "creator:*:items",
    "item:*",
    "user:*:interactions",
    "user:*:follows",
)


def creator_scope(owner_id: str) -> str:
    return f"creator:{owner_id}:items"


def item_key(item_id: str) -> str:
    return f"item:{item_id}"


def history_key(actor_id: str) -> str:
    return f"user:{actor_id}:interactions"


def follows_key(actor_id: str) -> str:
    return f"user:{actor_id}:follows"
