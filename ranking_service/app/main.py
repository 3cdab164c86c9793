from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ranking_service.app import keys
from ranking_service.app.config import settings
from ranking_service.app.errors import (
    MSG_INVALID_BODY,
    DataFetchError,
    RankingError,
    StoreUnavailableError,
    ValidationError,
)
from ranking_service.app.logging_setup import setup_logging
from ranking_service.app.middleware import access_log, recover
from ranking_service.app.store import RankingStore, connect
from ranking_service.ranking.aggregator import Interaction, apply_interaction
from ranking_service.ranking.personalize import PersonalizationPolicy, personalize
from ranking_service.ranking.reader import list_global

setup_logging(settings.log_level, settings.access_log)
logger = logging.getLogger(__name__)

DEFAULT_GLOBAL_LIMIT = 10
DEFAULT_PERSONAL_LIMIT = 20


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = RankingStore(connect(settings))
    try:
        await store.ping()
    except StoreUnavailableError:
        logger.error("failed to connect to Redis at %s", settings.redis_address)
        await store.close()
        raise
    logger.info("connected to Redis at %s", settings.redis_address)
    app.state.store = store

    yield

    logger.info("shutting down, closing Redis connection")
    await store.close()


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    lifespan=lifespan,
)
app.middleware("http")(recover)
app.middleware("http")(access_log)


def get_store(request: Request) -> RankingStore:
    return request.app.state.store


def get_policy() -> PersonalizationPolicy:
    return PersonalizationPolicy.from_settings(settings)


def _int_or_default(raw: Optional[str], default: int) -> int:
    # unparsable values fall back to the default; range checks happen in the core
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@app.exception_handler(RankingError)
async def ranking_error_handler(request: Request, err: RankingError):
    logger.error("http error %s %s: %s (%s)", request.method, request.url.path, err.message, err.kind.value)
    return JSONResponse(status_code=err.code, content=err.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    err = ValidationError(MSG_INVALID_BODY)
    logger.info("rejected request %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=err.code, content=err.to_response())


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name, "env": settings.app_env}


@app.get("/")
def root():
    return {"message": "Realtime ranking API is running", "docs": "/docs", "health": "/health"}


# Rankings
@app.get("/api/v1/ranking")
async def get_ranking(
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    store: RankingStore = Depends(get_store),
):
    items = await list_global(
        store,
        limit=_int_or_default(limit, DEFAULT_GLOBAL_LIMIT),
        offset=_int_or_default(offset, 0),
    )
    return {"code": 200, "data": [i.to_dict() for i in items]}


@app.get("/api/v1/ranking/personal")
async def get_personal_ranking(
    actor_id: str = Query(""),
    user_id: str = Query(""),  # older clients send user_id
    limit: Optional[str] = Query(None),
    store: RankingStore = Depends(get_store),
    policy: PersonalizationPolicy = Depends(get_policy),
):
    items = await personalize(
        store,
        actor_id=actor_id or user_id,
        limit=_int_or_default(limit, DEFAULT_PERSONAL_LIMIT),
        policy=policy,
    )
    return {"code": 200, "data": [i.to_dict() for i in items]}


# Interactions
class InteractionIn(BaseModel):
    # required-ness is checked by the core so the error messages stay stable
    item_id: str = ""
    type: str = ""
    actor_id: str = ""
    occurred_at: int = 0
    watch_seconds: float | None = None


@app.post("/api/v1/interaction")
async def post_interaction(ev: InteractionIn, store: RankingStore = Depends(get_store)):
    new_score = await apply_interaction(
        store,
        Interaction(
            item_id=ev.item_id,
            type=ev.type,
            actor_id=ev.actor_id,
            occurred_at=ev.occurred_at,
            watch_seconds=ev.watch_seconds,
        ),
    )
    return {"code": 200, "data": {"new_score": new_score}}


# Debug endpoints (read only)
@app.get("/debug/items/{item_id}")
async def debug_item(item_id: str, store: RankingStore = Depends(get_store)):
    try:
        meta = await store.get_fields(keys.item_key(item_id))
        (global_score,) = await store.multi_get_scores(keys.GLOBAL_SCOPE, [item_id])
    except StoreUnavailableError as e:
        logger.info("failed to get item data item_id=%s: %s", item_id, e)
        raise DataFetchError() from e
    return {"item_id": item_id, "metadata": meta, "global_score": global_score}


@app.get("/debug/users/{actor_id}")
async def debug_user(actor_id: str, store: RankingStore = Depends(get_store)):
    try:
        follows = await store.set_members(keys.follows_key(actor_id))
        history = await store.set_members(keys.history_key(actor_id))
    except StoreUnavailableError as e:
        logger.info("failed to get user sets actor_id=%s: %s", actor_id, e)
        raise DataFetchError() from e
    return {"actor_id": actor_id, "follows": sorted(follows), "interactions": sorted(history)}
