from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Optional, TypeVar

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradejournal.api.ratelimit import RATE_LIMIT_EXCEEDED, RateLimiter, build_rate_limiter, client_ip
from tradejournal.api.schemas import (
    CreateEntryRequest, CreateJournalRequest, RefreshRequest, SignInRequest,
    SignUpRequest, UpdateEntryRequest, UpdateJournalRequest,
    entry_list_response, entry_response, journal_list_response, journal_response,
    journal_with_entries_response, statistics_response, token_response,
)
from tradejournal.auth.tokens import TokenManager
from tradejournal.services.access import AccessControl
from tradejournal.services.entries import EntryService
from tradejournal.services.journals import JournalService
from tradejournal.services.pagination import normalize_pagination
from tradejournal.services.users import UserService
from tradejournal.storage.cache import Cache, build_cache
from tradejournal.storage.database import Database
from tradejournal.storage.entries import EntryFilters, EntryStore
from tradejournal.storage.journals import JournalStore
from tradejournal.storage.users import UserStore
from tradejournal.utils.aio import with_deadline
from tradejournal.utils.config import Settings, get_settings
from tradejournal.utils.exceptions import (
    InfrastructureError, InvalidTokenError, JournalError,
)
from tradejournal.utils.logger import bind_request, bind_user, get_logger

logger = get_logger(__name__)

T = TypeVar("T")

API_PREFIX = "/api/v1"

PUBLIC_PATHS = {
    f"{API_PREFIX}/auth/sign-up",
    f"{API_PREFIX}/auth/sign-in",
    f"{API_PREFIX}/auth/refresh",
    f"{API_PREFIX}/health",
}


@dataclass
class Container:
    settings: Settings
    db: Database
    cache: Cache
    tokens: TokenManager
    access: AccessControl
    users: UserService
    journals: JournalService
    entries: EntryService
    rate_limiter: Optional[RateLimiter]


def build_container(settings: Settings, cache: Optional[Cache] = None) -> Container:
    db = Database(settings.database_path)
    if cache is None:
        cache = build_cache(settings.redis_url)
    tokens = TokenManager(
        settings.jwt_secret,
        settings.jwt_access_token_expiry_minutes,
        settings.jwt_refresh_token_expiry_minutes,
    )
    user_store, journal_store, entry_store = UserStore(db), JournalStore(db), EntryStore(db)
    access = AccessControl(db, journal_store, entry_store)
    return Container(
        settings=settings,
        db=db,
        cache=cache,
        tokens=tokens,
        access=access,
        users=UserService(db, user_store, tokens),
        journals=JournalService(db, journal_store, access, cache, settings.cache_ttl_seconds),
        entries=EntryService(db, entry_store, journal_store, access),
        rate_limiter=build_rate_limiter(
            settings.rate_limit_rps, settings.rate_limit_burst, settings.rate_limit_idle_seconds),
    )


# ── Request helpers ──────────────────────────────────────────

def get_container(request: Request) -> Container:
    return request.app.state.container


def current_user_id(request: Request) -> str:
    return request.state.user_id


async def run_with_deadline(request: Request, aw: Awaitable[T], operation: str) -> T:
    timeout = get_container(request).settings.request_timeout_seconds
    return await with_deadline(aw, timeout, operation)


async def owned_journal_id(journal_id: uuid.UUID, request: Request) -> str:
    """Path dependency: the caller must own the journal (404 otherwise)."""
    jid = str(journal_id)
    c = get_container(request)
    await run_with_deadline(
        request, c.access.require_journal_owner(jid, current_user_id(request)), "verify_journal_access")
    return jid


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# ── Routes ───────────────────────────────────────────────────

router = APIRouter(prefix=API_PREFIX)


@router.get("/health")
async def health(request: Request) -> Any:
    c = get_container(request)
    try:
        db_ok = await c.db.run(c.db.ping)
    except JournalError as e:
        logger.error("health_database_down", error=str(e))
        db_ok = False
    cache_ok = await c.cache.ping()
    body = {
        "status": "ok" if db_ok else "degraded",
        "database": "up" if db_ok else "down",
        "cache": "up" if cache_ok else "down",
    }
    return JSONResponse(body, status_code=200 if db_ok else 503)


@router.post("/auth/sign-up", status_code=201)
async def sign_up(body: SignUpRequest, request: Request) -> dict[str, Any]:
    c = get_container(request)
    tokens = await run_with_deadline(
        request, c.users.sign_up(body.email, body.username, body.password), "sign_up")
    return token_response(tokens)


@router.post("/auth/sign-in")
async def sign_in(body: SignInRequest, request: Request) -> dict[str, Any]:
    c = get_container(request)
    tokens = await run_with_deadline(request, c.users.sign_in(body.email, body.password), "sign_in")
    return token_response(tokens)


@router.post("/auth/refresh")
async def refresh(body: RefreshRequest, request: Request) -> dict[str, Any]:
    c = get_container(request)
    tokens = await run_with_deadline(request, c.users.refresh(body.refresh_token), "refresh")
    return token_response(tokens)


@router.post("/journals", status_code=201)
async def create_journal(body: CreateJournalRequest, request: Request) -> dict[str, Any]:
    c = get_container(request)
    journal = await run_with_deadline(
        request, c.journals.create(current_user_id(request), body.name, body.description), "create_journal")
    return journal_response(journal)


@router.get("/journals")
async def list_journals(request: Request, limit: Optional[str] = None,
                        offset: Optional[str] = None) -> dict[str, Any]:
    c = get_container(request)
    user_id = current_user_id(request)
    limit, offset = normalize_pagination(limit, offset)
    journals = await run_with_deadline(
        request, c.journals.list_for_user(user_id, limit, offset), "list_journals")
    total = await run_with_deadline(request, c.journals.count_for_user(user_id), "count_journals")
    return journal_list_response(journals, total, limit, offset)


@router.get("/journals/{journal_id}")
async def get_journal(request: Request, journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    journal = await run_with_deadline(request, c.journals.get_by_id(journal_id), "get_journal")
    return journal_response(journal)


@router.get("/journals/{journal_id}/with-entries")
async def get_journal_with_entries(request: Request,
                                   journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    journal = await run_with_deadline(
        request, c.journals.get_by_id_with_entries(journal_id), "get_journal_with_entries")
    return journal_with_entries_response(journal)


@router.put("/journals/{journal_id}")
async def update_journal(body: UpdateJournalRequest, request: Request,
                         journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    journal = await run_with_deadline(request, c.journals.get_by_id(journal_id), "get_journal")
    journal.name = body.name
    journal.description = body.description
    journal = await run_with_deadline(request, c.journals.update(journal), "update_journal")
    return journal_response(journal)


@router.delete("/journals/{journal_id}")
async def delete_journal(journal_id: uuid.UUID, request: Request) -> dict[str, Any]:
    c = get_container(request)
    await run_with_deadline(
        request, c.journals.delete(str(journal_id), current_user_id(request)), "delete_journal")
    return {"message": "journal deleted successfully"}


@router.post("/journals/{journal_id}/entries", status_code=201)
async def create_entry(body: CreateEntryRequest, request: Request,
                       journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    entry = await run_with_deadline(
        request, c.entries.create(journal_id, body.model_dump()), "create_entry")
    return entry_response(entry)


@router.get("/journals/{journal_id}/entries")
async def list_entries(request: Request,
                       journal_id: str = Depends(owned_journal_id),
                       asset: Optional[str] = None,
                       session: Optional[str] = None,
                       result: Optional[str] = None,
                       start_date: Optional[datetime] = None,
                       end_date: Optional[datetime] = None,
                       limit: Optional[str] = None,
                       offset: Optional[str] = None) -> dict[str, Any]:
    c = get_container(request)
    filters = EntryFilters(asset=asset, session=session, result=result,
                           start_date=start_date, end_date=end_date)
    limit, offset = normalize_pagination(limit, offset)
    entries = await run_with_deadline(
        request, c.entries.list(journal_id, limit, offset, filters), "list_entries")
    total = await run_with_deadline(request, c.entries.count(journal_id, filters), "count_entries")
    return entry_list_response(entries, total, limit, offset)


@router.get("/journals/{journal_id}/entries/statistics")
async def journal_statistics(request: Request,
                             journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    stats = await run_with_deadline(request, c.entries.statistics(journal_id), "journal_statistics")
    return statistics_response(stats)


@router.get("/journals/{journal_id}/entries/{entry_id}")
async def get_entry(entry_id: uuid.UUID, request: Request,
                    journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    entry = await run_with_deadline(
        request, c.entries.get_detail(str(entry_id), journal_id), "get_entry")
    return entry_response(entry)


@router.put("/journals/{journal_id}/entries/{entry_id}")
async def update_entry(entry_id: uuid.UUID, body: UpdateEntryRequest, request: Request,
                       journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    entry = await run_with_deadline(
        request, c.entries.update(str(entry_id), journal_id, body.model_dump()), "update_entry")
    return entry_response(entry)


@router.delete("/journals/{journal_id}/entries/{entry_id}")
async def delete_entry(entry_id: uuid.UUID, request: Request,
                       journal_id: str = Depends(owned_journal_id)) -> dict[str, Any]:
    c = get_container(request)
    await run_with_deadline(request, c.entries.delete(str(entry_id), journal_id), "delete_entry")
    return {"message": "entry deleted successfully"}


# ── Error handlers ───────────────────────────────────────────

async def journal_error_handler(request: Request, exc: JournalError) -> JSONResponse:
    log = logger.error if isinstance(exc, InfrastructureError) else logger.warning
    log("request_error", method=request.method, path=request.url.path,
        status=exc.status_code, category=exc.category.value, error=str(exc))
    return _error(exc.status_code or 500, exc.public_message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"invalid {field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", message)
    logger.warning("request_invalid", method=request.method, path=request.url.path, error=message)
    return _error(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_unhandled_error", method=request.method, path=request.url.path)
    return _error(500, "internal server error")


# ── App factory ──────────────────────────────────────────────

def create_app(settings: Optional[Settings] = None, cache: Optional[Cache] = None) -> FastAPI:
    settings = settings or get_settings()
    container = build_container(settings, cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app_started", database=settings.database_path)
        yield
        await container.cache.close()
        container.db.close()
        logger.info("app_stopped")

    app = FastAPI(title="Trading Journal API", version="1.0", lifespan=lifespan)
    app.state.container = container

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next):
        path = request.url.path
        if request.method == "OPTIONS" or path in PUBLIC_PATHS or not path.startswith(API_PREFIX):
            return await call_next(request)

        header = request.headers.get("authorization", "")
        if not header:
            return _error(401, "missing authorization header")
        parts = header.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer":
            return _error(401, "invalid authorization header format")
        try:
            claims = container.tokens.validate_token(parts[1])
        except InvalidTokenError as e:
            logger.warning("auth_rejected", path=path, error=str(e))
            return _error(401, "invalid token")

        request.state.user_id = claims.user_id
        bind_user(claims.user_id)
        return await call_next(request)

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        limiter = container.rate_limiter
        if limiter is not None and request.method != "OPTIONS":
            ip = client_ip(request)
            if not await limiter.allow(ip):
                logger.warning("rate_limit_exceeded", ip=ip, path=request.url.path)
                return _error(429, RATE_LIMIT_EXCEEDED)
        return await call_next(request)

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next):
        bind_request(uuid.uuid4().hex[:12])
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        log = logger.warning if response.status_code >= 400 else logger.info
        log("request_completed", method=request.method, path=request.url.path,
            status=response.status_code, duration_ms=duration_ms)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        allow_credentials=settings.cors_allow_credentials,
        max_age=settings.cors_max_age,
    )

    app.add_exception_handler(JournalError, journal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app
