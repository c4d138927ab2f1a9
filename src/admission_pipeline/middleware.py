"""AdmissionMiddleware: runs a resolved pipeline in front of route dispatch."""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from admission_pipeline.component import AdmissionStage
from admission_pipeline.context import RequestContext
from admission_pipeline.exceptions import (
    AdmissionAbort,
    AdmissionException,
    AdmissionInternalError,
    PreflightHandled,
    RequestAbandoned,
)
from admission_pipeline.pipeline import Pipeline, ResolvedPipeline

logger = logging.getLogger(__name__)

# nginx's "client closed request".
ABANDONED_STATUS = 499


class AdmissionMiddleware(BaseHTTPMiddleware):
    """Executes every stage's ``resolve`` before the route and ``apply`` after it.

    A stage that raises short-circuits the rest of the pipeline: no later
    stage and no route observes the request, and the error response is
    written here instead of propagating to a generic handler.
    """

    def __init__(self, app: ASGIApp, pipeline: Pipeline | ResolvedPipeline) -> None:
        super().__init__(app)
        if isinstance(pipeline, Pipeline):
            pipeline = pipeline.resolve()
        self._resolved = pipeline

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        resolved = self._resolved
        ctx = RequestContext(request=request)
        request.state.admission = ctx
        completed: list[AdmissionStage] = []

        for hook in resolved.hooks:
            await hook.on_admission_start(ctx)

        try:
            await self._run_stages(ctx, completed)
            response = await call_next(request)
            for stage in completed:
                await self._apply(stage, ctx, response)
        except PreflightHandled as exc:
            response = Response(status_code=exc.status_code, headers=exc.headers)
            await self._decorate_error(ctx, completed, response)
        except AdmissionAbort as exc:
            level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
            logger.log(
                level,
                "Admission aborted for %s %s: %d %s",
                request.method,
                request.url.path,
                exc.status_code,
                exc.detail,
            )
            await self._discard(ctx, completed)
            response = JSONResponse(
                {"detail": exc.detail},
                status_code=exc.status_code,
                headers=exc.headers,
            )
            await self._decorate_error(ctx, completed, response)
        except RequestAbandoned:
            logger.info(
                "Client disconnected during admission of %s %s",
                request.method,
                request.url.path,
            )
            response = Response(status_code=ABANDONED_STATUS)
        except AdmissionInternalError as exc:
            logger.error(
                "Internal admission error for %s %s",
                request.method,
                request.url.path,
                exc_info=exc.cause,
            )
            await self._discard(ctx, completed)
            response = JSONResponse({"detail": exc.detail}, status_code=500)
            await self._decorate_error(ctx, completed, response)
        finally:
            for hook in resolved.hooks:
                await hook.on_admission_end(ctx)

        return response

    async def _run_stages(
        self, ctx: RequestContext, completed: list[AdmissionStage]
    ) -> None:
        hooks = self._resolved.hooks
        for stage in self._resolved.stages:
            try:
                await stage.resolve(ctx)
            except AdmissionException as exc:
                for hook in hooks:
                    await hook.on_stage(ctx, stage, exc)
                raise
            except Exception as exc:
                wrapped = AdmissionInternalError("Internal admission error", cause=exc)
                for hook in hooks:
                    await hook.on_stage(ctx, stage, wrapped)
                raise wrapped from exc
            completed.append(stage)
            for hook in hooks:
                await hook.on_stage(ctx, stage, None)

    @staticmethod
    async def _apply(stage: AdmissionStage, ctx: RequestContext, response: Response) -> None:
        try:
            await stage.apply(ctx, response)
        except AdmissionException:
            raise
        except Exception as exc:
            raise AdmissionInternalError("Internal admission error", cause=exc) from exc

    @staticmethod
    async def _discard(ctx: RequestContext, completed: list[AdmissionStage]) -> None:
        # The error response is already decided; a failed rollback must not replace it.
        for stage in reversed(completed):
            try:
                await stage.discard(ctx)
            except Exception:
                logger.warning(
                    "%s could not discard state for %s %s",
                    type(stage).__name__,
                    ctx.request.method,
                    ctx.request.url.path,
                    exc_info=True,
                )

    async def _decorate_error(
        self,
        ctx: RequestContext,
        completed: list[AdmissionStage],
        response: Response,
    ) -> None:
        for stage in self._resolved.stages:
            if stage.always_apply or (stage.apply_on_error and stage in completed):
                await stage.apply(ctx, response)
