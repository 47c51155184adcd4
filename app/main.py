"""Entry point for the FastAPI-powered media tracking service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import Settings, settings
from .database import Database
from .errors import (
    AuthenticationError,
    DuplicateItemError,
    InvalidMediaTypeError,
    InvalidRequestError,
    ItemNotFoundError,
    MediaNotFoundError,
    ProviderError,
    UserNotFoundError,
)
from .identity import HeaderIdentityProvider, IdentityProvider
from .services.anilist import AniListClient
from .services.cache import DiscoveryCache
from .services.discovery import DiscoveryService
from .services.enrichment import MetadataEnricher
from .services.providers import ProviderRegistry
from .services.query import ListQuery
from .services.recommendations import RecommendationService
from .services.retry import RetryPolicy
from .services.store import SqlDocumentStore
from .services.tmdb import TMDBClient
from .services.tracked_list import ListService, parse_payload
from .utils import coerce_int

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@dataclass
class ServiceContainer:
    """Everything the routes need, built once per process."""

    database: Database
    list_service: ListService
    discovery_service: DiscoveryService
    recommendation_service: RecommendationService
    identity_provider: IdentityProvider


async def build_services(config: Settings, exit_stack: AsyncExitStack) -> ServiceContainer:
    """Open upstream clients and the database, then wire the services."""

    tmdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(config.tmdb_api_url),
            timeout=httpx.Timeout(config.tmdb_timeout_seconds, connect=5.0),
            headers={"User-Agent": f"{config.app_name} (mediatrack)"},
        )
    )
    anilist_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(config.anilist_api_url),
            timeout=httpx.Timeout(config.anilist_timeout_seconds, connect=5.0),
        )
    )
    database = Database(config.database_url)
    await database.create_all()
    exit_stack.push_async_callback(database.dispose)

    retry_policy = RetryPolicy(
        max_attempts=config.provider_retry_attempts,
        base_delay=config.provider_retry_base_delay,
    )
    registry = ProviderRegistry(
        [
            TMDBClient(config, tmdb_http, retry_policy),
            AniListClient(anilist_http, retry_policy),
        ]
    )
    if not config.tmdb_enabled:
        logger.warning("TMDB_API_KEY missing - movie and TV lookups will return no results")

    store = SqlDocumentStore(database.session_factory)
    enricher = MetadataEnricher(registry, concurrency=config.enrichment_concurrency)
    return ServiceContainer(
        database=database,
        list_service=ListService(
            store, enricher, self_note_max_length=config.self_note_max_length
        ),
        discovery_service=DiscoveryService(
            registry, DiscoveryCache(config.discovery_cache_seconds)
        ),
        recommendation_service=RecommendationService(store, registry),
        identity_provider=HeaderIdentityProvider(),
    )


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    try:
        fastapi_app.state.services = await build_services(settings, exit_stack)
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Track movies, TV shows and anime across TMDB and AniList",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_services(fastapi_app: FastAPI) -> ServiceContainer:
    services = getattr(fastapi_app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialised")
    return services


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(entry) for entry in value]
    return value


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def register_error_handlers(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(InvalidRequestError)
    async def _invalid_request(_: Request, exc: InvalidRequestError) -> JSONResponse:
        return _error(400, str(exc), details=exc.details)

    @fastapi_app.exception_handler(DuplicateItemError)
    async def _duplicate(_: Request, exc: DuplicateItemError) -> JSONResponse:
        return _error(400, str(exc), item=_dump(exc.item))

    @fastapi_app.exception_handler(InvalidMediaTypeError)
    async def _invalid_media_type(_: Request, exc: InvalidMediaTypeError) -> JSONResponse:
        return _error(400, str(exc))

    @fastapi_app.exception_handler(ItemNotFoundError)
    async def _item_not_found(_: Request, exc: ItemNotFoundError) -> JSONResponse:
        return _error(404, "Tracked item not found")

    @fastapi_app.exception_handler(UserNotFoundError)
    async def _user_not_found(_: Request, exc: UserNotFoundError) -> JSONResponse:
        return _error(404, "User not found")

    @fastapi_app.exception_handler(MediaNotFoundError)
    async def _media_not_found(_: Request, exc: MediaNotFoundError) -> JSONResponse:
        return _error(404, "Media not found")

    @fastapi_app.exception_handler(ProviderError)
    async def _provider_error(_: Request, exc: ProviderError) -> JSONResponse:
        logger.warning("Provider failure surfaced to client: %s", exc)
        return _error(502, "Media provider unavailable")

    @fastapi_app.exception_handler(AuthenticationError)
    async def _unauthenticated(_: Request, exc: AuthenticationError) -> JSONResponse:
        return _error(401, str(exc))

    @fastapi_app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Server error")


def register_routes(fastapi_app: FastAPI) -> None:
    register_error_handlers(fastapi_app)

    def _user_id(request: Request) -> str:
        return get_services(fastapi_app).identity_provider.authenticate(request)

    async def _json_body(request: Request) -> dict[str, Any]:
        try:
            payload = await request.json()
        except ValueError:
            # Malformed JSON or a body that is not valid UTF-8.
            payload = {}
        if not isinstance(payload, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        return payload

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/api/users")
    async def register_user(request: Request) -> dict[str, Any]:
        payload = await _json_body(request)
        store = get_services(fastapi_app).list_service.store
        user = await store.create_user(
            str(payload.get("email") or ""), str(payload.get("username") or "")
        )
        return {"user": _dump(user)}

    @fastapi_app.delete("/api/users/me")
    async def delete_account(request: Request) -> dict[str, Any]:
        store = get_services(fastapi_app).list_service.store
        user_id = _user_id(request)
        if not await store.delete_user(user_id):
            raise UserNotFoundError(user_id)
        return {"ok": True}

    @fastapi_app.post("/api/list/add")
    async def add_item(request: Request) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        item = await service.add(_user_id(request), await _json_body(request))
        return {"message": "Item added to list", "item": _dump(item)}

    @fastapi_app.put("/api/list/update/{item_id}")
    async def update_item(request: Request, item_id: str) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        item = await service.update(_user_id(request), item_id, await _json_body(request))
        return {"item": _dump(item)}

    @fastapi_app.put("/api/list/toggle-season/{item_id}")
    async def toggle_season(request: Request, item_id: str) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        payload = await _json_body(request)
        item = await service.toggle_season(
            _user_id(request),
            item_id,
            payload.get("seasonNumber"),
            payload.get("totalSeasons"),
        )
        return {"item": _dump(item)}

    @fastapi_app.get("/api/list")
    async def get_list(request: Request) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        items = await service.get_items(_user_id(request))
        return {"trackedItems": _dump(items)}

    @fastapi_app.get("/api/list/filtered")
    async def get_filtered_list(request: Request) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        criteria = parse_payload(ListQuery, dict(request.query_params))
        items = await service.query(_user_id(request), criteria)
        return {"trackedItems": _dump(items)}

    @fastapi_app.get("/api/list/stats")
    async def get_list_stats(request: Request) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        stats = await service.statistics(_user_id(request))
        return stats.summary()

    @fastapi_app.delete("/api/list/{item_id}")
    async def delete_item(request: Request, item_id: str) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        try:
            await service.remove(_user_id(request), item_id)
        except ItemNotFoundError:
            # Deleting an item that is already gone counts as success.
            return {"ok": True, "removed": False}
        return {"ok": True, "removed": True}

    @fastapi_app.get("/api/dashboard/stats")
    async def dashboard_stats(request: Request) -> dict[str, Any]:
        service = get_services(fastapi_app).list_service
        return _dump(await service.statistics(_user_id(request)))

    @fastapi_app.get("/api/recommendations")
    async def recommendations(request: Request) -> dict[str, Any]:
        service = get_services(fastapi_app).recommendation_service
        return _dump(await service.recommend(_user_id(request)))

    @fastapi_app.get("/api/discover/search")
    async def search(request: Request) -> dict[str, Any]:
        service = get_services(fastapi_app).discovery_service
        params = request.query_params
        return _dump(await service.search(params.get("q"), params.get("type")))

    @fastapi_app.get("/api/discover/trending")
    async def trending(request: Request) -> list[Any]:
        service = get_services(fastapi_app).discovery_service
        return _dump(await service.trending(request.query_params.get("type")))

    @fastapi_app.get("/api/discover/latest")
    async def latest(request: Request) -> list[Any]:
        service = get_services(fastapi_app).discovery_service
        return _dump(await service.latest(request.query_params.get("type")))

    @fastapi_app.get("/api/discover/details/{media_type}/{api_id}")
    async def details(media_type: str, api_id: str) -> dict[str, Any]:
        service = get_services(fastapi_app).discovery_service
        parsed_id = coerce_int(api_id)
        if parsed_id is None or parsed_id < 1:
            raise InvalidRequestError("id must be a positive integer")
        return _dump(await service.details(media_type, parsed_id))


app = create_app()
