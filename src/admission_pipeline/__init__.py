"""Admission Pipeline - origin policy, protective headers and session bootstrap for FastAPI."""

from admission_pipeline.app import build_pipeline, create_app
from admission_pipeline.component import AdmissionStage, StageCategory
from admission_pipeline.context import RequestContext
from admission_pipeline.dependency import get_request_context, require_identity
from admission_pipeline.exceptions import (
    AdmissionAbort,
    AdmissionException,
    AdmissionInternalError,
    AuthenticationRequired,
    MalformedPayload,
    OriginRejected,
    PayloadTooLarge,
    PreflightHandled,
    RequestAbandoned,
    SessionStoreUnavailable,
    StartupConnectivityFailure,
    UnsupportedCharset,
)
from admission_pipeline.hooks import (
    AdmissionHook,
    RejectionHook,
    StageLogHook,
)
from admission_pipeline.middleware import AdmissionMiddleware
from admission_pipeline.pipeline import Pipeline, ResolvedPipeline
from admission_pipeline.settings import Settings, get_settings
from admission_pipeline.stages.authentication import (
    AuthenticationBinder,
    IdentityStrategy,
    SessionIdentity,
)
from admission_pipeline.stages.headers import CacheRule, ProtectiveHeaders
from admission_pipeline.stages.origin import (
    Accepted,
    OriginAllowList,
    OriginGate,
    Rejected,
    evaluate_origin,
)
from admission_pipeline.stages.payload import (
    PayloadDecoder,
    decode_json,
    decode_urlencoded,
    parse_cookies,
)
from admission_pipeline.stages.session import SessionMaterializer
from admission_pipeline.startup import LifecycleState, StartupSequencer, serve
from admission_pipeline.store import (
    DataStore,
    InMemorySessionStore,
    Session,
    SessionStore,
)

__all__ = [
    "Accepted",
    "AdmissionAbort",
    "AdmissionException",
    "AdmissionHook",
    "AdmissionInternalError",
    "AdmissionMiddleware",
    "AdmissionStage",
    "AuthenticationBinder",
    "AuthenticationRequired",
    "CacheRule",
    "DataStore",
    "IdentityStrategy",
    "InMemorySessionStore",
    "LifecycleState",
    "MalformedPayload",
    "OriginAllowList",
    "OriginGate",
    "OriginRejected",
    "PayloadDecoder",
    "PayloadTooLarge",
    "Pipeline",
    "PreflightHandled",
    "ProtectiveHeaders",
    "Rejected",
    "RejectionHook",
    "RequestAbandoned",
    "RequestContext",
    "ResolvedPipeline",
    "Session",
    "SessionIdentity",
    "SessionMaterializer",
    "SessionStore",
    "SessionStoreUnavailable",
    "Settings",
    "StageCategory",
    "StageLogHook",
    "StartupConnectivityFailure",
    "StartupSequencer",
    "UnsupportedCharset",
    "build_pipeline",
    "create_app",
    "decode_json",
    "decode_urlencoded",
    "evaluate_origin",
    "get_request_context",
    "get_settings",
    "parse_cookies",
    "require_identity",
    "serve",
]
