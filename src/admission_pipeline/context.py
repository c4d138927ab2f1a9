"""RequestContext: per-request admission state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

if TYPE_CHECKING:
    from admission_pipeline.store import Session


@dataclass
class RequestContext:
    """Per-request record accumulated by admission stages."""

    request: Request
    origin: str | None = None
    cookies: dict[str, str] = field(default_factory=dict)
    body: Any | None = None
    session_id: str | None = None
    session: Session | None = None
    session_issued: bool = False
    identity: Any | None = None
    state: dict[str, Any] = field(default_factory=dict)
    abandoned: bool = False

    async def is_abandoned(self) -> bool:
        """Return True once the client is known to have disconnected."""
        if not self.abandoned and await self.request.is_disconnected():
            self.abandoned = True
        return self.abandoned
