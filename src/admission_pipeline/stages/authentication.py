"""Authentication context binder and the session-backed identity strategy."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from admission_pipeline._types import LoadPrincipalCallback
from admission_pipeline.component import AdmissionStage, StageCategory
from admission_pipeline.context import RequestContext
from admission_pipeline.store import Session


@runtime_checkable
class IdentityStrategy(Protocol):
    """Resolves the principal carried by a session, if any."""

    async def resolve(self, session: Session) -> Any | None: ...


class SessionIdentity:
    """Keeps a principal reference in the session under ``key``.

    ``load`` turns the stored reference back into a principal, e.g. by looking
    up a user id. Without it the reference itself is the principal.
    """

    def __init__(self, load: LoadPrincipalCallback | None = None, *, key: str = "user") -> None:
        self._load = load
        self._key = key

    async def resolve(self, session: Session) -> Any | None:
        ref = session.get(self._key)
        if ref is None:
            return None
        if self._load is None:
            return ref
        return await self._load(ref)

    def login(self, ctx: RequestContext, ref: Any, principal: Any | None = None) -> None:
        if ctx.session is None:
            raise RuntimeError("login() requires a materialized session")
        ctx.session[self._key] = ref
        ctx.identity = ref if principal is None else principal

    def logout(self, ctx: RequestContext) -> None:
        if ctx.session is not None:
            ctx.session.pop(self._key, None)
        ctx.identity = None


class AuthenticationBinder(AdmissionStage):
    """Attaches the principal resolved from the bound session to the context."""

    category = StageCategory.AUTHENTICATION

    def __init__(self, strategy: IdentityStrategy) -> None:
        self._strategy = strategy

    async def resolve(self, ctx: RequestContext) -> None:
        if ctx.session is None:
            ctx.identity = None
            return
        ctx.identity = await self._strategy.resolve(ctx.session)
