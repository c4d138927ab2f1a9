"""Session materializer: binds or issues a session for every admitted request."""

from __future__ import annotations

import logging
from typing import Literal

from starlette.responses import Response

from admission_pipeline.component import AdmissionStage, StageCategory
from admission_pipeline.context import RequestContext
from admission_pipeline.exceptions import (
    AdmissionException,
    RequestAbandoned,
    SessionStoreUnavailable,
)
from admission_pipeline.store import SessionStore

logger = logging.getLogger(__name__)

SameSite = Literal["lax", "strict", "none"]


class SessionMaterializer(AdmissionStage):
    """Loads the session named by the session cookie or creates a new one.

    Identifiers come from the store; this stage never generates them. Any store
    failure fails the request with 503 since identity resolution depends on it.
    """

    category = StageCategory.SESSION

    def __init__(
        self,
        store: SessionStore,
        *,
        cookie_name: str = "sid",
        ttl_seconds: int = 86400,
        secure: bool | None = None,
        same_site: SameSite = "lax",
        path: str = "/",
        domain: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        self._store = store
        self._cookie_name = cookie_name
        self._ttl_seconds = ttl_seconds
        self._secure = secure
        self._same_site = same_site
        self._path = path
        self._domain = domain
        self._retry_after = retry_after

    @property
    def cookie_name(self) -> str:
        return self._cookie_name

    async def resolve(self, ctx: RequestContext) -> None:
        session_id = ctx.cookies.get(self._cookie_name)
        try:
            if session_id:
                session = await self._store.get(session_id)
                if session is not None:
                    await self._store.touch(session_id, self._ttl_seconds)
                    ctx.session_id = session_id
                    ctx.session = session
                    return

            if await ctx.is_abandoned():
                raise RequestAbandoned()
            session_id, session = await self._store.create()
        except AdmissionException:
            raise
        except Exception as exc:
            logger.error("Session store unavailable: %s", exc)
            raise SessionStoreUnavailable(retry_after=self._retry_after) from exc

        ctx.session_id = session_id
        ctx.session = session
        ctx.session_issued = True

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        if ctx.session is None or ctx.session_id is None:
            return
        if await ctx.is_abandoned():
            return

        if ctx.session.modified:
            try:
                await self._store.save(ctx.session_id, ctx.session)
            except Exception as exc:
                logger.error("Failed to save session: %s", exc)
                raise SessionStoreUnavailable(retry_after=self._retry_after) from exc

        if not ctx.session_issued:
            return

        secure = self._secure
        if secure is None:
            secure = ctx.request.url.scheme == "https"
        response.set_cookie(
            self._cookie_name,
            ctx.session_id,
            max_age=self._ttl_seconds,
            path=self._path,
            domain=self._domain,
            secure=secure,
            httponly=True,
            samesite=self._same_site,
        )

    async def discard(self, ctx: RequestContext) -> None:
        # A session issued for a failed request would never reach the client.
        if not ctx.session_issued or ctx.session_id is None:
            return
        await self._store.destroy(ctx.session_id)
        ctx.session_issued = False
