"""Current deployment pipeline aspect.

Strict precedence, first hit wins:

1. ``deployment.yaml`` present -> Modern
2. ``buildfile`` present -> Legacy when it carries the legacy marker, else West
3. East deployer lookup reports the repository -> East
4. otherwise -> none

Only the detected category is digested. How the East lookup went is kept in
the fingerprint data for operators but does not change the sha.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from fleet_drift.aspects.base import Aspect, AspectDetails, ExtractionContext
from fleet_drift.clients.east_pipeline_client import LookupOutcome
from fleet_drift.core.fingerprint import Fingerprint, fingerprint_of
from fleet_drift.core.snapshot import RepoSnapshot

DEPLOYMENT_DESCRIPTOR = "deployment.yaml"
LEGACY_BUILD_FILE = "buildfile"
LEGACY_MARKER = "Legacy Deploy Stuff"

PIPELINE_TYPE = "current-pipeline"


class PipelineKind(str, enum.Enum):
    MODERN = "Modern"
    LEGACY = "Legacy"
    WEST = "West"
    EAST = "East"
    NONE = "none"


def pipeline_fingerprint_of(detected: PipelineKind, remote_lookup: LookupOutcome = LookupOutcome.SKIPPED) -> Fingerprint:
    significant = {"detected": detected.value}
    return fingerprint_of(
        type=PIPELINE_TYPE,
        name=PIPELINE_TYPE,
        data={**significant, "remote_lookup": remote_lookup.value},
        significant=significant,
        abbreviation="pl",
        version="0.0.1",
    )


@dataclass(frozen=True)
class CurrentPipelineAspect(Aspect):
    name: str = PIPELINE_TYPE
    display_name: str = "Pipeline"
    details: AspectDetails = AspectDetails(
        description="Detect what pipeline a repository deploys with",
        short_name=PIPELINE_TYPE,
        display_name="Current pipeline",
        unit="pipeline",
        category="Release",
        url=f"fingerprint/{PIPELINE_TYPE}/{PIPELINE_TYPE}?byOrg=true&trim=false",
    )

    async def extract(self, snapshot: RepoSnapshot, ctx: ExtractionContext) -> list[Fingerprint]:
        if await snapshot.has_file(DEPLOYMENT_DESCRIPTOR):
            return [pipeline_fingerprint_of(PipelineKind.MODERN)]

        if await snapshot.has_file(LEGACY_BUILD_FILE):
            content = await snapshot.get_content(LEGACY_BUILD_FILE) or ""
            if LEGACY_MARKER in content:
                return [pipeline_fingerprint_of(PipelineKind.LEGACY)]
            return [pipeline_fingerprint_of(PipelineKind.WEST)]

        outcome = await self._ask_east_deployer(snapshot, ctx)
        if outcome is LookupOutcome.POSITIVE:
            return [pipeline_fingerprint_of(PipelineKind.EAST, outcome)]
        return [pipeline_fingerprint_of(PipelineKind.NONE, outcome)]

    async def _ask_east_deployer(self, snapshot: RepoSnapshot, ctx: ExtractionContext) -> LookupOutcome:
        if ctx.classifier is None:
            ctx.logger.error("No HTTP client", repo=snapshot.id.slug)
            return LookupOutcome.SKIPPED
        return await ctx.classifier.lookup(snapshot.id, ctx.credentials, log=ctx.logger)

    def to_displayable_fingerprint(self, fp: Fingerprint) -> str:
        return str(fp.data.get("detected", PipelineKind.NONE.value))
