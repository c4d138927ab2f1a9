"""Pipeline class: ordered container of AdmissionStages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from admission_pipeline.component import AdmissionStage

if TYPE_CHECKING:
    from admission_pipeline.hooks import AdmissionHook


@dataclass(frozen=True)
class ResolvedPipeline:
    """Immutable, pre-computed execution plan."""

    stages: tuple[AdmissionStage, ...]
    hooks: tuple[AdmissionHook, ...] = ()


class Pipeline:
    """Ordered container of AdmissionStage instances.

    Stages run in category order regardless of the order they were added in,
    so the origin gate always runs first and the session materializer always
    precedes the authentication binder.
    """

    def __init__(self, *stages: AdmissionStage | Pipeline) -> None:
        self._items: list[AdmissionStage | Pipeline] = list(stages)
        self._hooks: list[AdmissionHook] = []
        self._resolved: ResolvedPipeline | None = None

    def add(self, *stages: AdmissionStage | Pipeline) -> Pipeline:
        self._items.extend(stages)
        self._resolved = None
        return self

    def add_hook(self, hook: AdmissionHook) -> Pipeline:
        self._hooks.append(hook)
        self._resolved = None
        return self

    def resolve(self) -> ResolvedPipeline:
        if self._resolved is not None:
            return self._resolved

        flat: list[AdmissionStage] = []
        hooks: list[AdmissionHook] = []
        self._flatten(self, flat, hooks)

        sorted_stages = sorted(flat, key=lambda s: s.category.order)

        self._resolved = ResolvedPipeline(
            stages=tuple(sorted_stages),
            hooks=tuple(hooks),
        )
        return self._resolved

    @staticmethod
    def _flatten(
        pipeline: Pipeline,
        out: list[AdmissionStage],
        hooks: list[AdmissionHook],
    ) -> None:
        hooks.extend(pipeline._hooks)
        for item in pipeline._items:
            if isinstance(item, Pipeline):
                Pipeline._flatten(item, out, hooks)
            elif isinstance(item, AdmissionStage):
                out.append(item)
            else:
                raise TypeError(f"Not an admission stage: {item!r}")
