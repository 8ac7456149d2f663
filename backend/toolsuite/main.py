"""FastAPI application for the tool suite backend.

Run with ``uvicorn backend.toolsuite.main:create_app --factory``.
"""
from __future__ import annotations

import asyncio
import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse

from . import schemas
from .auth import PasswordHasher, get_bcrypt_rounds, require_admin, require_user_id
from .seed import seed_defaults
from .sitemap import generate_robots, generate_sitemap
from .sql_storage import SqlStorage
from .storage import DuplicateKeyError, MemoryStorage, Storage, ToolUsageFilters

logger = logging.getLogger(__name__)


class RateLimitError(Exception):
    """Raised when a caller exceeds the configured rate limit."""


class FixedWindowRateLimiter:
    """In-memory fixed window rate limiter keyed by client identifier.

    Windows that have ended are dropped on every check, so only clients seen
    within the last window are tracked.
    """

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def _purge(self, now: float) -> None:
        expired = [
            key for key, (_, window_start) in self._counters.items() if now - window_start >= self._window_seconds
        ]
        for key in expired:
            self._counters.pop(key, None)

    def check(self, key: str) -> None:
        now = time.monotonic()
        with self._lock:
            self._purge(now)
            count, window_start = self._counters.get(key, (0, now))
            if count >= self._max_requests:
                raise RateLimitError(f"Rate limit exceeded for key {key}")
            self._counters[key] = (count + 1, window_start)


def _get_rate_limiter() -> FixedWindowRateLimiter:
    requests_per_window = int(os.environ.get("TOOLSUITE_ANALYTICS_RATE_LIMIT", "60"))
    window_seconds = int(os.environ.get("TOOLSUITE_ANALYTICS_RATE_WINDOW", "60"))
    return FixedWindowRateLimiter(requests_per_window, window_seconds)


def build_storage() -> Storage:
    backend = os.environ.get("TOOLSUITE_STORAGE_BACKEND", "memory").lower()
    hasher = PasswordHasher(get_bcrypt_rounds())
    if backend == "memory":
        return MemoryStorage(hasher)
    if backend == "sql":
        return SqlStorage.from_url(hasher=hasher)
    raise RuntimeError(f"Unknown TOOLSUITE_STORAGE_BACKEND {backend!r}; expected 'memory' or 'sql'")


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.analytics_rate_limiter


def _client_identifier(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


router = APIRouter(prefix="/api")


# --- Authentication -------------------------------------------------------


@router.post("/auth/register", response_model=schemas.UserEnvelope, status_code=status.HTTP_201_CREATED)
async def register(
    payload: schemas.RegisterIn,
    storage: Storage = Depends(get_storage),
) -> schemas.UserEnvelope:
    data = schemas.UserCreate(**payload.model_dump())
    try:
        # bcrypt is CPU bound; keep it off the event loop.
        user = await asyncio.to_thread(storage.create_user, data)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists") from exc
    return schemas.UserEnvelope(user=schemas.UserOut.from_user(user))


@router.post("/auth/login", response_model=schemas.UserEnvelope)
async def login(
    payload: schemas.LoginIn,
    storage: Storage = Depends(get_storage),
) -> schemas.UserEnvelope:
    user = await asyncio.to_thread(storage.authenticate_user, payload.email, payload.password)
    if user is None:
        logger.info("Rejected login attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return schemas.UserEnvelope(user=schemas.UserOut.from_user(user))


@router.post("/auth/logout", response_model=schemas.MessageOut)
def logout() -> schemas.MessageOut:
    return schemas.MessageOut(message="Logged out successfully")


@router.patch("/auth/profile", response_model=schemas.UserEnvelope)
def update_profile(
    payload: schemas.ProfileUpdateIn,
    user_id: str = Depends(require_user_id),
    storage: Storage = Depends(get_storage),
) -> schemas.UserEnvelope:
    patch = schemas.UserUpdate(**payload.model_dump(exclude_unset=True, exclude_none=True))
    try:
        user = storage.update_user(user_id, patch)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return schemas.UserEnvelope(user=schemas.UserOut.from_user(user))


@router.post("/auth/password", response_model=schemas.UserEnvelope)
async def change_password(
    payload: schemas.PasswordChangeIn,
    user_id: str = Depends(require_user_id),
    storage: Storage = Depends(get_storage),
) -> schemas.UserEnvelope:
    user = await asyncio.to_thread(storage.change_password, user_id, payload.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return schemas.UserEnvelope(user=schemas.UserOut.from_user(user))


# --- Analytics ------------------------------------------------------------


@router.post("/analytics/tool-usage", response_model=schemas.ToolUsage, status_code=status.HTTP_201_CREATED)
def record_tool_usage(
    usage_in: schemas.ToolUsageCreate,
    storage: Storage = Depends(get_storage),
) -> schemas.ToolUsage:
    return storage.create_tool_usage(usage_in)


@router.get(
    "/admin/analytics",
    response_model=schemas.AnalyticsSummary,
    dependencies=[Depends(require_admin)],
)
def fetch_analytics(
    request: Request,
    storage: Storage = Depends(get_storage),
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> schemas.AnalyticsSummary:
    try:
        limiter.check(_client_identifier(request))
    except RateLimitError:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
    return storage.get_analytics()


@router.get(
    "/admin/tool-usage",
    response_model=List[schemas.ToolUsage],
    dependencies=[Depends(require_admin)],
)
def list_tool_usage(
    tool_name: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    storage: Storage = Depends(get_storage),
) -> List[schemas.ToolUsage]:
    filters = ToolUsageFilters(tool_name=tool_name, category=category, date_from=date_from, date_to=date_to)
    return storage.list_tool_usage(filters)


# --- Ad slots -------------------------------------------------------------


@router.get("/admin/ad-slots", response_model=List[schemas.AdSlot], dependencies=[Depends(require_admin)])
def list_ad_slots(storage: Storage = Depends(get_storage)) -> List[schemas.AdSlot]:
    return storage.list_ad_slots()


@router.post(
    "/admin/ad-slots",
    response_model=schemas.AdSlot,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_ad_slot(slot_in: schemas.AdSlotCreate, storage: Storage = Depends(get_storage)) -> schemas.AdSlot:
    return storage.create_ad_slot(slot_in)


@router.patch("/admin/ad-slots/{slot_id}", response_model=schemas.AdSlot, dependencies=[Depends(require_admin)])
def update_ad_slot(
    slot_id: str,
    patch: schemas.AdSlotUpdate,
    storage: Storage = Depends(get_storage),
) -> schemas.AdSlot:
    slot = storage.update_ad_slot(slot_id, patch)
    if slot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad slot not found")
    return slot


@router.delete("/admin/ad-slots/{slot_id}", response_model=schemas.MessageOut, dependencies=[Depends(require_admin)])
def delete_ad_slot(slot_id: str, storage: Storage = Depends(get_storage)) -> schemas.MessageOut:
    if not storage.delete_ad_slot(slot_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad slot not found")
    return schemas.MessageOut(message="Ad slot deleted successfully")


@router.get("/ad-slots/{page}", response_model=List[schemas.AdSlot])
def list_active_ad_slots(page: str, storage: Storage = Depends(get_storage)) -> List[schemas.AdSlot]:
    return storage.list_active_ad_slots(page)


# --- Health and SEO -------------------------------------------------------


@router.get("/health", response_model=schemas.HealthOut)
def health() -> schemas.HealthOut:
    return schemas.HealthOut(status="OK", timestamp=datetime.now(timezone.utc))


@router.get("/seo/sitemap.xml", name="sitemap")
def sitemap() -> Response:
    return Response(content=generate_sitemap(), media_type="application/xml")


@router.get("/seo/robots.txt")
def robots(request: Request) -> Response:
    return Response(content=generate_robots(str(request.url_for("sitemap"))), media_type="text/plain")


async def _log_unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})


def create_app(storage: Optional[Storage] = None, seed: bool = True) -> FastAPI:
    """Build the application around ``storage``.

    Without an explicit storage the backend is chosen from
    ``TOOLSUITE_STORAGE_BACKEND``. The default administrator and ad slots are
    seeded unless ``seed`` is false.
    """

    if storage is None:
        storage = build_storage()
    if seed:
        seed_defaults(storage)

    app = FastAPI(
        title="ToolSuite API",
        description="Accounts, tool usage analytics, ad slots and SEO feeds for the ToolSuite site.",
        version="0.1.0",
    )
    app.state.storage = storage
    app.state.analytics_rate_limiter = _get_rate_limiter()
    app.include_router(router)
    app.add_exception_handler(Exception, _log_unhandled_error)
    return app
