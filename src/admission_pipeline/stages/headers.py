"""Protective header policy: fixed security headers and per-route cache control."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from starlette.responses import Response

from admission_pipeline.component import AdmissionStage, StageCategory
from admission_pipeline.context import RequestContext

DEFAULT_CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "base-uri 'self'",
        "font-src 'self' https: data:",
        "form-action 'self'",
        "frame-ancestors 'self'",
        "img-src 'self' data:",
        "object-src 'none'",
        "script-src 'self'",
        "script-src-attr 'none'",
        "style-src 'self' https: 'unsafe-inline'",
        "upgrade-insecure-requests",
    ]
)

DEFAULT_SECURITY_HEADERS: Mapping[str, str] = {
    "Content-Security-Policy": DEFAULT_CONTENT_SECURITY_POLICY,
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

DEFAULT_HSTS_MAX_AGE = 31536000


@dataclass(frozen=True)
class CacheRule:
    """Cache-Control directive for every path under ``prefix``."""

    prefix: str
    directive: str

    def matches(self, path: str) -> bool:
        if path == self.prefix:
            return True
        prefix = self.prefix.rstrip("/")
        return path.startswith(prefix + "/")


class ProtectiveHeaders(AdmissionStage):
    """Applies security headers and a route-class Cache-Control to all responses.

    Security headers always overwrite handler values. A Cache-Control set by
    the route handler is kept; otherwise the longest matching ``CacheRule``
    wins, falling back to ``default_cache_control``.
    """

    category = StageCategory.HEADERS
    always_apply = True

    def __init__(
        self,
        overrides: Mapping[str, str] | None = None,
        *,
        cache_rules: Iterable[CacheRule] = (),
        default_cache_control: str = "no-store",
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
    ) -> None:
        headers = dict(DEFAULT_SECURITY_HEADERS)
        for name, value in (overrides or {}).items():
            # An empty override drops the header from the policy.
            if value:
                headers[name] = value
            else:
                headers.pop(name, None)
        self._headers = headers
        self._cache_rules = sorted(cache_rules, key=lambda r: len(r.prefix), reverse=True)
        self._default_cache_control = default_cache_control
        self._hsts = f"max-age={hsts_max_age}; includeSubDomains" if hsts_max_age > 0 else None

    @property
    def headers(self) -> Mapping[str, str]:
        return dict(self._headers)

    def cache_control_for(self, path: str) -> str:
        for rule in self._cache_rules:
            if rule.matches(path):
                return rule.directive
        return self._default_cache_control

    async def resolve(self, ctx: RequestContext) -> None:
        # Nothing to check on the way in; the policy acts on the response.
        pass

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        response.headers.update(self._headers)
        if self._hsts is not None and ctx.request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = self._hsts
        if "cache-control" not in response.headers:
            response.headers["Cache-Control"] = self.cache_control_for(ctx.request.url.path)
