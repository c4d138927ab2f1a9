"""Origin gate: exact-match allow-list check and CORS response headers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from starlette.responses import Response

from admission_pipeline.component import AdmissionStage, StageCategory
from admission_pipeline.context import RequestContext
from admission_pipeline.exceptions import OriginRejected, PreflightHandled

logger = logging.getLogger(__name__)

DEFAULT_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
DEFAULT_ALLOWED_HEADERS = (
    "Content-Type",
    "Content-Length",
    "Accept-Encoding",
    "X-Requested-With",
    "Authorization",
    "accept",
    "file-name",
    "x-csrf-token",
)


@dataclass(frozen=True)
class OriginAllowList:
    """Immutable ordered set of exact ``scheme://host[:port]`` origins.

    Matching is case-sensitive with no trailing-slash normalization and no
    wildcard expansion. Subdomains must be listed one by one.
    """

    origins: tuple[str, ...]
    _lookup: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        deduped = tuple(dict.fromkeys(self.origins))
        object.__setattr__(self, "origins", deduped)
        object.__setattr__(self, "_lookup", frozenset(deduped))

    @classmethod
    def of(cls, origins: Iterable[str]) -> OriginAllowList:
        return cls(tuple(origins))

    def __contains__(self, origin: object) -> bool:
        return origin in self._lookup

    def __iter__(self):
        return iter(self.origins)

    def __len__(self) -> int:
        return len(self.origins)


@dataclass(frozen=True)
class Accepted:
    origin: str | None


@dataclass(frozen=True)
class Rejected:
    reason: str
    status: int = 403


OriginDecision = Accepted | Rejected


def evaluate_origin(origin: str | None, allow_list: OriginAllowList) -> OriginDecision:
    """Decide whether a request's Origin header is admitted.

    Requests without an Origin (same-origin navigation, curl, server-to-server
    callers) are accepted. This trusts any client that omits the header, so it
    does not protect against cross-origin vectors that strip Origin.
    """
    if not origin:
        return Accepted(origin=None)
    if origin in allow_list:
        return Accepted(origin=origin)
    return Rejected(reason=f"Origin {origin!r} is not on the allow-list")


class OriginGate(AdmissionStage):
    """Rejects disallowed origins and answers CORS preflights."""

    category = StageCategory.ORIGIN
    apply_on_error = True

    def __init__(
        self,
        allow_list: OriginAllowList,
        *,
        methods: Sequence[str] = DEFAULT_METHODS,
        allowed_headers: Sequence[str] = DEFAULT_ALLOWED_HEADERS,
        allow_credentials: bool = True,
        preflight_status: int = 200,
    ) -> None:
        self._allow_list = allow_list
        self._methods = ", ".join(methods)
        self._allowed_headers = ", ".join(allowed_headers)
        self._allow_credentials = allow_credentials
        self._preflight_status = preflight_status

    async def resolve(self, ctx: RequestContext) -> None:
        origin = ctx.request.headers.get("origin")
        decision = evaluate_origin(origin, self._allow_list)
        if isinstance(decision, Rejected):
            logger.warning(
                "Rejected %s %s: %s",
                ctx.request.method,
                ctx.request.url.path,
                decision.reason,
            )
            raise OriginRejected(origin or "", reason=decision.reason, status_code=decision.status)

        ctx.origin = decision.origin
        if decision.origin is not None and self._is_preflight(ctx):
            headers = self._cors_headers(decision.origin)
            headers["Access-Control-Allow-Methods"] = self._methods
            headers["Access-Control-Allow-Headers"] = self._allowed_headers
            headers["Vary"] = "Origin"
            raise PreflightHandled(status_code=self._preflight_status, headers=headers)

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        if ctx.origin is None:
            return
        response.headers.update(self._cors_headers(ctx.origin))
        response.headers.add_vary_header("Origin")

    def _cors_headers(self, origin: str) -> dict[str, str]:
        headers = {"Access-Control-Allow-Origin": origin}
        if self._allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers

    @staticmethod
    def _is_preflight(ctx: RequestContext) -> bool:
        return (
            ctx.request.method == "OPTIONS"
            and "access-control-request-method" in ctx.request.headers
        )
