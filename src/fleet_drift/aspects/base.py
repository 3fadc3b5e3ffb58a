"""Aspect contract types.

An aspect is one fingerprint family: how the fact is extracted from a
repository, how it is displayed, and (optionally) how a repository is
converged onto a target value. Aspects are stateless; everything a call needs
travels through the snapshot and the context arguments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import structlog

from fleet_drift.clients.credentials import Credentials
from fleet_drift.clients.east_pipeline_client import EastPipelineClient
from fleet_drift.core.fingerprint import Fingerprint
from fleet_drift.core.snapshot import RepoSnapshot


def _default_logger():
    return structlog.get_logger("fleet_drift.aspects")


@dataclass(frozen=True)
class AspectDetails:
    description: str
    short_name: str
    display_name: str
    unit: str
    category: str
    url: str
    manage: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "shortName": self.short_name,
            "displayName": self.display_name,
            "unit": self.unit,
            "category": self.category,
            "url": self.url,
            "manage": self.manage,
        }


@dataclass(frozen=True)
class ExtractionContext:
    credentials: Optional[Credentials] = None
    classifier: Optional[EastPipelineClient] = None
    logger: Any = field(default_factory=_default_logger)

    def bind(self, **values) -> "ExtractionContext":
        return ExtractionContext(
            credentials=self.credentials,
            classifier=self.classifier,
            logger=self.logger.bind(**values),
        )


@dataclass(frozen=True)
class ApplyParameters:
    fp: Optional[Fingerprint] = None


@dataclass(frozen=True)
class ApplyContext:
    parameters: Optional[ApplyParameters] = None
    logger: Any = field(default_factory=_default_logger)

    @property
    def target(self) -> Optional[Fingerprint]:
        if self.parameters is None:
            return None
        return self.parameters.fp


@dataclass(frozen=True)
class Applied:
    """The target was applied; `snapshot` is the converged repository."""

    snapshot: RepoSnapshot
    changed_paths: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.changed_paths)


@dataclass(frozen=True)
class Skipped:
    """Nothing was applied; `snapshot` is the untouched input."""

    snapshot: RepoSnapshot
    reason: str


ApplyResult = Union[Applied, Skipped]


class Aspect(ABC):
    """Read-only fingerprint family."""

    name: str
    display_name: str
    details: AspectDetails

    @abstractmethod
    async def extract(self, snapshot: RepoSnapshot, ctx: ExtractionContext) -> list[Fingerprint]:
        """Return zero or more fingerprints; an empty list means not applicable."""

    @abstractmethod
    def to_displayable_fingerprint(self, fp: Fingerprint) -> str:
        ...

    def to_displayable_fingerprint_name(self, fingerprint_name: str) -> str:
        return self.display_name

    @property
    def can_apply(self) -> bool:
        return False

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "canApply": self.can_apply,
            "details": self.details.to_dict(),
        }


class ConvergentAspect(Aspect):
    """Aspect that can also move a repository onto a target fingerprint."""

    @property
    def can_apply(self) -> bool:
        return True

    @abstractmethod
    async def apply(self, snapshot: RepoSnapshot, ctx: ApplyContext) -> ApplyResult:
        """Converge `snapshot` onto `ctx.target`; never persists anything."""
