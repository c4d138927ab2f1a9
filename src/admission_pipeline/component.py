"""AdmissionStage abstract base class and StageCategory enum."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar

from starlette.responses import Response

from admission_pipeline.context import RequestContext


class StageCategory(Enum):
    """Admission stage categories, defining strict execution order."""

    ORIGIN = "origin"
    HEADERS = "headers"
    DECODING = "decoding"
    SESSION = "session"
    AUTHENTICATION = "authentication"
    CUSTOM = "custom"

    @property
    def order(self) -> int:
        _ORDER = {
            "origin": 1,
            "headers": 2,
            "decoding": 3,
            "session": 4,
            "authentication": 5,
            "custom": 6,
        }
        return _ORDER[self.value]


class AdmissionStage(ABC):
    """Base abstraction for every unit of the admission pipeline."""

    category: ClassVar[StageCategory]

    # Decorate every response, even ones cut short before this stage ran.
    always_apply: ClassVar[bool] = False
    # Decorate error responses produced after this stage completed.
    apply_on_error: ClassVar[bool] = False

    @abstractmethod
    async def resolve(self, ctx: RequestContext) -> None: ...

    async def apply(self, ctx: RequestContext, response: Response) -> None:
        pass

    async def discard(self, ctx: RequestContext) -> None:
        """Undo resolve-time side effects when the request fails after this stage."""
