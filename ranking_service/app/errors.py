from __future__ import annotations

from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DATA_FETCH = "data_fetch"
    DATA_WRITE = "data_write"
    INTERNAL = "internal"


# kind -> HTTP status. Must cover every ErrorKind.
HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.DATA_FETCH: 500,
    ErrorKind.DATA_WRITE: 500,
    ErrorKind.INTERNAL: 500,
}

# stable messages (clients match on these)
MSG_INVALID_BODY = "invalid request body"
MSG_ITEM_ID_MISSING = "item_id is required"
MSG_USER_ID_MISSING = "user_id is required"
MSG_INVALID_TIMESTAMP = "invalid timestamp"
MSG_INVALID_TYPE = "invalid interaction type"
MSG_INVALID_WATCH = "invalid watch_seconds"
MSG_LIMIT_RANGE = "limit must be between 1 and 100"
MSG_OFFSET_RANGE = "offset must be greater than 0"
MSG_GET_FAILED = "failed to get data"
MSG_UPDATE_FAILED = "failed to update data"
MSG_INTERNAL = "internal server"


class RankingError(Exception):
    """Base for every error the core hands to the transport layer."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_response(self) -> Dict[str, object]:
        return {"code": self.code, "message": self.message}


class ValidationError(RankingError):
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)


class DataFetchError(RankingError):
    kind = ErrorKind.DATA_FETCH

    def __init__(self, message: str = MSG_GET_FAILED):
        super().__init__(message)


class DataWriteError(RankingError):
    kind = ErrorKind.DATA_WRITE

    def __init__(self, message: str = MSG_UPDATE_FAILED):
        super().__init__(message)


class InternalError(RankingError):
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = MSG_INTERNAL):
        super().__init__(message)


class StoreUnavailableError(Exception):
    """Raised by the store adapter when Redis cannot be reached or times out."""
