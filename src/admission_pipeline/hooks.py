"""AdmissionHook base, rejection callbacks and stage logging."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from admission_pipeline.component import AdmissionStage
from admission_pipeline.context import RequestContext
from admission_pipeline.exceptions import AdmissionAbort, AdmissionException

logger = logging.getLogger(__name__)

RejectionCallback = Callable[[RequestContext, AdmissionStage, AdmissionAbort], Awaitable[None]]


class AdmissionHook:
    """Base abstraction for lifecycle hooks. All methods are no-op by default."""

    async def on_admission_start(self, ctx: RequestContext) -> None:
        pass

    async def on_admission_end(self, ctx: RequestContext) -> None:
        pass

    async def on_stage(
        self,
        ctx: RequestContext,
        stage: AdmissionStage,
        error: AdmissionException | None,
    ) -> None:
        pass


class RejectionHook(AdmissionHook):
    """Calls ``callback`` when a stage rejects a request with a client-visible error.

    Preflight answers, abandoned requests and internal errors are not rejections
    and never reach the callback.
    """

    def __init__(self, callback: RejectionCallback) -> None:
        self._callback = callback

    async def on_stage(
        self,
        ctx: RequestContext,
        stage: AdmissionStage,
        error: AdmissionException | None,
    ) -> None:
        if isinstance(error, AdmissionAbort):
            await self._callback(ctx, stage, error)


class StageLogHook(AdmissionHook):
    """Logs each stage outcome."""

    async def on_stage(
        self,
        ctx: RequestContext,
        stage: AdmissionStage,
        error: AdmissionException | None,
    ) -> None:
        name = type(stage).__name__
        if error is None:
            logger.debug("%s passed %s %s", name, ctx.request.method, ctx.request.url.path)
        elif isinstance(error, AdmissionAbort):
            logger.info(
                "%s rejected %s %s with %d",
                name,
                ctx.request.method,
                ctx.request.url.path,
                error.status_code,
            )
        else:
            logger.debug("%s stopped admission: %s", name, type(error).__name__)
