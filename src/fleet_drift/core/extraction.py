"""Extraction pipeline.

Runs every configured aspect against one repository snapshot concurrently.
One aspect failing (bad file, exhausted lookup, bug) is logged and costs only
that aspect's fingerprints; the others are always returned.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable

import structlog

from fleet_drift.aspects.base import Aspect, ExtractionContext
from fleet_drift.core.fingerprint import Fingerprint
from fleet_drift.core.snapshot import RepoSnapshot
from fleet_drift.observability.tracing import get_tracer

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


@dataclass(frozen=True)
class ExtractionReport:
    fingerprints: list[Fingerprint]
    failed_aspects: dict[str, str] = field(default_factory=dict)


async def _run_aspect(aspect: Aspect, snapshot: RepoSnapshot, ctx: ExtractionContext) -> list[Fingerprint]:
    result = await aspect.extract(snapshot, ctx.bind(aspect=aspect.name))
    return list(result or [])


async def extract_with_report(
    aspects: Iterable[Aspect],
    snapshot: RepoSnapshot,
    ctx: ExtractionContext | None = None,
) -> ExtractionReport:
    ctx = ctx or ExtractionContext()
    aspects = list(aspects)
    log = ctx.logger.bind(repo=snapshot.id.slug)

    with tracer.start_as_current_span("extract_all") as span:
        span.set_attribute("repo", snapshot.id.slug)
        span.set_attribute("aspect_count", len(aspects))
        log.info("extract.start", aspects=[a.name for a in aspects])

        results = await asyncio.gather(
            *(_run_aspect(a, snapshot, ctx) for a in aspects),
            return_exceptions=True,
        )

        fingerprints: list[Fingerprint] = []
        failed: dict[str, str] = {}
        for aspect, result in zip(aspects, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    # Cancellation and interpreter exits are not aspect failures.
                    raise result
                failed[aspect.name] = f"{type(result).__name__}: {result}"
                log.error(
                    "extract.aspect_failed",
                    aspect=aspect.name,
                    error=str(result),
                    error_type=type(result).__name__,
                    exc_info=result,
                )
                continue
            fingerprints.extend(result)

        span.set_attribute("fingerprint_count", len(fingerprints))
        span.set_attribute("failed_aspect_count", len(failed))
        log.info("extract.done", fingerprint_count=len(fingerprints), failed_aspects=sorted(failed))
    return ExtractionReport(fingerprints=fingerprints, failed_aspects=failed)


async def extract_all(
    aspects: Iterable[Aspect],
    snapshot: RepoSnapshot,
    ctx: ExtractionContext | None = None,
) -> list[Fingerprint]:
    """Union of all non-failed aspects' fingerprints for `snapshot`."""

    report = await extract_with_report(aspects, snapshot, ctx)
    return report.fingerprints
