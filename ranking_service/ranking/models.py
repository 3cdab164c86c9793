from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from ranking_service.app.keys import FIELD_OWNER, FIELD_SCORE, FIELD_TITLE


class InteractionType(str, Enum):
    VIEW = "view"
    LIKE = "like"
    COMMENT = "comment"
    SHARE = "share"
    WATCH = "watch"


@dataclass
class Item:
    item_id: str
    title: str = ""
    owner_id: str = ""
    score: float = 0.0

    @classmethod
    def from_hash(cls, item_id: str, row: Optional[Dict[str, str]]) -> "Item":
        """
        Build from an item:<id> hash. A missing hash (item ranked but never
        written) gives a blank entry instead of an error.
        """
        row = row or {}
        try:
            score = float(row.get(FIELD_SCORE) or 0.0)
        except ValueError:
            score = 0.0
        return cls(
            item_id=item_id,
            title=row.get(FIELD_TITLE, ""),
            owner_id=row.get(FIELD_OWNER, ""),
            score=score,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.item_id,
            "title": self.title,
            "owner_id": self.owner_id,
            "score": self.score,
        }
