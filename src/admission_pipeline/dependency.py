"""FastAPI dependencies exposing the admission context to route handlers."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException
from starlette.requests import Request

from admission_pipeline.context import RequestContext
from admission_pipeline.exceptions import AdmissionInternalError, AuthenticationRequired


def get_request_context(request: Request) -> RequestContext:
    """Return the RequestContext bound by AdmissionMiddleware."""
    ctx = getattr(request.state, "admission", None)
    if not isinstance(ctx, RequestContext):
        wrapped = AdmissionInternalError("Admission pipeline is not installed")
        raise HTTPException(status_code=500, detail=wrapped.detail) from wrapped
    return ctx


def require_identity(
    ctx: RequestContext = Depends(get_request_context),  # noqa: B008
) -> Any:
    """Return the authenticated principal or fail with 401."""
    if ctx.identity is None:
        exc = AuthenticationRequired()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return ctx.identity
