"""
Custom stage and session store example.

Demonstrates:
- Writing a custom admission stage
- Composing the standard pipeline with extra stages and a rejection hook
- Plugging in a session store that must connect before the server listens
"""

import logging
import uuid

from fastapi import APIRouter, Depends
from starlette.responses import Response

from admission_pipeline import (
    AdmissionStage,
    InMemorySessionStore,
    Pipeline,
    RejectionHook,
    RequestContext,
    SessionIdentity,
    Settings,
    StageCategory,
    build_pipeline,
    create_app,
    get_request_context,
    serve,
)
from admission_pipeline.logging_config import configure_logging

logger = logging.getLogger("example")


# ========== Custom Request ID Stage ==========


class RequestID(AdmissionStage):
    """Tags every request and response with an id."""

    category = StageCategory.CUSTOM
    always_apply = True

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state["request_id"] = ctx.request.headers.get("X-Request-ID") or uuid.uuid4().hex

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        # Rejected requests never ran resolve.
        request_id = ctx.state.get("request_id")
        if request_id:
            response.headers["X-Request-ID"] = request_id


# ========== Store With a Connectivity Check ==========


class PingedSessionStore(InMemorySessionStore):
    """Stands in for a networked store whose connect() can fail."""

    async def connect(self) -> None:
        logger.info("Pinging session backend")


# ========== Application ==========


async def log_rejection(ctx, stage, error):
    logger.info(
        "%s rejected %s with %d", type(stage).__name__, ctx.request.url.path, error.status_code
    )


settings = Settings()
store = PingedSessionStore(ttl_seconds=settings.session_ttl_seconds)
identity = SessionIdentity()

pipeline = Pipeline(
    build_pipeline(settings, store=store, identity=identity),
    RequestID(),
).add_hook(RejectionHook(log_rejection))

router = APIRouter()


@router.get("/whoami")
async def whoami(ctx: RequestContext = Depends(get_request_context)):
    return {
        "request_id": ctx.state["request_id"],
        "session_id": ctx.session_id,
        "identity": ctx.identity,
    }


app = create_app(settings, store=store, identity=identity, pipeline=pipeline, routers=[router])


if __name__ == "__main__":
    configure_logging(settings.log_level)
    raise SystemExit(serve(app, store.connect, settings))
