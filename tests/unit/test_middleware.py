"""Tests for AdmissionMiddleware short-circuit and response decoration."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request
from starlette.responses import Response

from admission_pipeline.component import AdmissionStage, StageCategory
from admission_pipeline.context import RequestContext
from admission_pipeline.exceptions import (
    AdmissionAbort,
    PreflightHandled,
    RequestAbandoned,
)
from admission_pipeline.middleware import ABANDONED_STATUS, AdmissionMiddleware
from admission_pipeline.pipeline import Pipeline


class _Recorder(AdmissionStage):
    category = StageCategory.CUSTOM

    def __init__(self, name: str, order: list[str]) -> None:
        self._name = name
        self._order = order

    async def resolve(self, ctx: RequestContext) -> None:
        self._order.append(self._name)

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        response.headers[f"X-Applied-{self._name}"] = "1"


class _AlwaysHeader(AdmissionStage):
    category = StageCategory.HEADERS
    always_apply = True

    async def resolve(self, ctx: RequestContext) -> None:
        pass

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        response.headers["X-Always"] = "1"


class _ErrorHeader(AdmissionStage):
    category = StageCategory.ORIGIN
    apply_on_error = True

    async def resolve(self, ctx: RequestContext) -> None:
        pass

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        response.headers["X-On-Error"] = "1"


class _Abort(AdmissionStage):
    category = StageCategory.DECODING

    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    async def resolve(self, ctx: RequestContext) -> None:
        raise self._exc


def _make_app(pipeline: Pipeline, calls: list[str] | None = None) -> FastAPI:
    app = FastAPI()
    app.add_middleware(AdmissionMiddleware, pipeline=pipeline)

    @app.get("/test")
    async def endpoint() -> dict[str, Any]:
        if calls is not None:
            calls.append("route")
        return {"ok": True}

    @app.get("/explode")
    async def explode() -> None:
        raise RuntimeError("route failure")

    return app


async def _get(app: FastAPI, path: str = "/test", **kwargs: Any) -> Any:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path, **kwargs)


class TestSuccessfulAdmission:
    async def test_route_runs_after_all_stages(self) -> None:
        order: list[str] = []
        app = _make_app(Pipeline(_Recorder("a", order), _Recorder("b", order)), order)
        resp = await _get(app)
        assert resp.status_code == 200
        assert order == ["a", "b", "route"]

    async def test_completed_stages_decorate_response(self) -> None:
        order: list[str] = []
        app = _make_app(Pipeline(_Recorder("a", order), _AlwaysHeader()))
        resp = await _get(app)
        assert resp.headers["X-Applied-a"] == "1"
        assert resp.headers["X-Always"] == "1"

    async def test_context_bound_to_request_state(self) -> None:
        app = FastAPI()
        app.add_middleware(AdmissionMiddleware, pipeline=Pipeline())

        @app.get("/state")
        async def state_endpoint(request: Request) -> dict[str, bool]:
            return {"bound": isinstance(request.state.admission, RequestContext)}

        resp = await _get(app, "/state")
        assert resp.json() == {"bound": True}


class TestShortCircuit:
    async def test_abort_stops_later_stages_and_route(self) -> None:
        order: list[str] = []
        app = _make_app(
            Pipeline(_Abort(AdmissionAbort("nope", status_code=418)), _Recorder("late", order)),
            order,
        )
        resp = await _get(app)
        assert resp.status_code == 418
        assert resp.json() == {"detail": "nope"}
        assert order == []
        assert "X-Applied-late" not in resp.headers

    async def test_abort_headers_are_sent(self) -> None:
        exc = AdmissionAbort("busy", status_code=503, headers={"Retry-After": "5"})
        resp = await _get(_make_app(Pipeline(_Abort(exc))))
        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "5"

    async def test_always_apply_stage_decorates_error_even_if_not_run(self) -> None:
        class _OriginAbort(AdmissionStage):
            category = StageCategory.ORIGIN

            async def resolve(self, ctx: RequestContext) -> None:
                raise AdmissionAbort("blocked", status_code=403)

        resp = await _get(_make_app(Pipeline(_OriginAbort(), _AlwaysHeader())))
        assert resp.status_code == 403
        assert resp.headers["X-Always"] == "1"

    async def test_apply_on_error_stage_decorates_when_completed(self) -> None:
        resp = await _get(
            _make_app(Pipeline(_ErrorHeader(), _Abort(AdmissionAbort("bad"))))
        )
        assert resp.status_code == 400
        assert resp.headers["X-On-Error"] == "1"

    async def test_plain_stage_does_not_decorate_error(self) -> None:
        order: list[str] = []

        class _EarlyRecorder(_Recorder):
            category = StageCategory.ORIGIN

        resp = await _get(
            _make_app(Pipeline(_EarlyRecorder("early", order), _Abort(AdmissionAbort("bad"))))
        )
        assert order == ["early"]
        assert "X-Applied-early" not in resp.headers

    async def test_preflight_returns_headers_without_route(self) -> None:
        calls: list[str] = []
        exc = PreflightHandled(status_code=200, headers={"Access-Control-Allow-Methods": "GET"})
        resp = await _get(_make_app(Pipeline(_Abort(exc), _AlwaysHeader()), calls))
        assert resp.status_code == 200
        assert resp.headers["Access-Control-Allow-Methods"] == "GET"
        assert resp.headers["X-Always"] == "1"
        assert calls == []

    async def test_abandoned_request_gets_no_decoration(self) -> None:
        resp = await _get(_make_app(Pipeline(_AlwaysHeader(), _Abort(RequestAbandoned()))))
        assert resp.status_code == ABANDONED_STATUS
        assert "X-Always" not in resp.headers


class TestInternalErrors:
    async def test_unexpected_stage_error_becomes_500(self) -> None:
        resp = await _get(_make_app(Pipeline(_Abort(RuntimeError("secret detail")))))
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal admission error"}
        assert "secret detail" not in resp.text

    async def test_internal_error_still_gets_protective_headers(self) -> None:
        resp = await _get(_make_app(Pipeline(_AlwaysHeader(), _Abort(ValueError("x")))))
        assert resp.status_code == 500
        assert resp.headers["X-Always"] == "1"

    async def test_unexpected_apply_error_becomes_500(self) -> None:
        class _BrokenApply(AdmissionStage):
            category = StageCategory.CUSTOM

            async def resolve(self, ctx: RequestContext) -> None:
                pass

            async def apply(self, ctx: RequestContext, response: Response) -> None:
                raise RuntimeError("apply failed")

        resp = await _get(_make_app(Pipeline(_BrokenApply())))
        assert resp.status_code == 500

    async def test_route_errors_are_not_swallowed(self) -> None:
        with pytest.raises(RuntimeError, match="route failure"):
            await _get(_make_app(Pipeline()), "/explode")


class _Discardable(AdmissionStage):
    category = StageCategory.SESSION

    def __init__(self, discarded: list[str], *, fail: bool = False) -> None:
        self._discarded = discarded
        self._fail = fail

    async def resolve(self, ctx: RequestContext) -> None:
        pass

    async def discard(self, ctx: RequestContext) -> None:
        if self._fail:
            raise ConnectionError("store down")
        self._discarded.append("session")


class _LateAbort(_Abort):
    category = StageCategory.CUSTOM


class TestDiscard:
    async def test_completed_stages_discard_on_abort(self) -> None:
        discarded: list[str] = []
        pipeline = Pipeline(
            _Discardable(discarded), _LateAbort(AdmissionAbort("no", status_code=401))
        )
        resp = await _get(_make_app(pipeline))
        assert resp.status_code == 401
        assert discarded == ["session"]

    async def test_discard_on_internal_error(self) -> None:
        discarded: list[str] = []
        pipeline = Pipeline(_Discardable(discarded), _LateAbort(KeyError("x")))
        resp = await _get(_make_app(pipeline))
        assert resp.status_code == 500
        assert discarded == ["session"]

    async def test_no_discard_on_success(self) -> None:
        discarded: list[str] = []
        resp = await _get(_make_app(Pipeline(_Discardable(discarded))))
        assert resp.status_code == 200
        assert discarded == []

    async def test_stages_not_run_are_not_discarded(self) -> None:
        discarded: list[str] = []
        pipeline = Pipeline(_Abort(AdmissionAbort("no")), _Discardable(discarded))
        await _get(_make_app(pipeline))
        assert discarded == []

    async def test_no_discard_on_abandoned_request(self) -> None:
        discarded: list[str] = []
        pipeline = Pipeline(_Discardable(discarded), _LateAbort(RequestAbandoned()))
        resp = await _get(_make_app(pipeline))
        assert resp.status_code == ABANDONED_STATUS
        assert discarded == []

    async def test_failed_discard_keeps_error_response(self) -> None:
        pipeline = Pipeline(
            _Discardable([], fail=True), _LateAbort(AdmissionAbort("no", status_code=401))
        )
        resp = await _get(_make_app(pipeline))
        assert resp.status_code == 401
        assert resp.json() == {"detail": "no"}
