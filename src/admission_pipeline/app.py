"""Application assembly: wires the admission stages in front of the routes."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from fastapi import APIRouter, FastAPI
from starlette.middleware.gzip import GZipMiddleware

from admission_pipeline.hooks import StageLogHook
from admission_pipeline.middleware import AdmissionMiddleware
from admission_pipeline.pipeline import Pipeline
from admission_pipeline.settings import Settings, get_settings
from admission_pipeline.stages.authentication import (
    AuthenticationBinder,
    IdentityStrategy,
    SessionIdentity,
)
from admission_pipeline.stages.headers import CacheRule, ProtectiveHeaders
from admission_pipeline.stages.origin import OriginAllowList, OriginGate
from admission_pipeline.stages.payload import PayloadDecoder
from admission_pipeline.stages.session import SessionMaterializer
from admission_pipeline.store import InMemorySessionStore, SessionStore

health_router = APIRouter()


@health_router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


def build_pipeline(
    settings: Settings,
    *,
    store: SessionStore,
    identity: IdentityStrategy,
) -> Pipeline:
    """Build the standard admission pipeline from settings."""
    return Pipeline(
        OriginGate(OriginAllowList.of(settings.allowed_origins)),
        ProtectiveHeaders(
            settings.security_headers,
            cache_rules=[
                CacheRule(prefix, directive)
                for prefix, directive in settings.cache_control_rules.items()
            ],
            default_cache_control=settings.cache_control_default,
            hsts_max_age=settings.hsts_max_age,
        ),
        PayloadDecoder(
            max_body_bytes=settings.max_body_bytes,
            depth=settings.urlencoded_depth,
            parameter_limit=settings.urlencoded_parameter_limit,
        ),
        SessionMaterializer(
            store,
            cookie_name=settings.session_cookie_name,
            ttl_seconds=settings.session_ttl_seconds,
            secure=settings.session_cookie_secure,
            same_site=settings.session_cookie_samesite,
            retry_after=settings.session_retry_after,
        ),
        AuthenticationBinder(identity),
    ).add_hook(StageLogHook())


def create_app(
    settings: Settings | None = None,
    *,
    store: SessionStore | None = None,
    identity: IdentityStrategy | None = None,
    routers: Iterable[APIRouter] = (),
    pipeline: Pipeline | None = None,
    **fastapi_kwargs: Any,
) -> FastAPI:
    """Create a FastAPI app whose every request passes the admission pipeline."""
    settings = settings or get_settings()
    if store is None:
        store = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
    if identity is None:
        identity = SessionIdentity()
    if pipeline is None:
        pipeline = build_pipeline(settings, store=store, identity=identity)

    app = FastAPI(**fastapi_kwargs)
    app.state.settings = settings
    app.state.session_store = store
    app.state.identity = identity

    # The last middleware added runs first: admission, then compression, then routes.
    app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_minimum_size)
    app.add_middleware(AdmissionMiddleware, pipeline=pipeline)

    for router in routers:
        app.include_router(router)

    return app
