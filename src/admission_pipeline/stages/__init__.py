"""Built-in admission stages."""

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

__all__ = [
    "Accepted",
    "AuthenticationBinder",
    "CacheRule",
    "IdentityStrategy",
    "OriginAllowList",
    "OriginGate",
    "PayloadDecoder",
    "ProtectiveHeaders",
    "Rejected",
    "SessionIdentity",
    "SessionMaterializer",
    "decode_json",
    "decode_urlencoded",
    "evaluate_origin",
    "parse_cookies",
]
