"""Convergence engine.

Dispatches a target fingerprint to the aspect that owns it and returns the
converged snapshot. Every refusal is a `Skipped` result rather than an
exception so one bad target never aborts a fleet run.
"""

from __future__ import annotations

import structlog

from fleet_drift.aspects.base import (
    Applied,
    ApplyContext,
    ApplyParameters,
    ApplyResult,
    ConvergentAspect,
    Skipped,
)
from fleet_drift.aspects.registry import AspectRegistry
from fleet_drift.core.snapshot import RepoSnapshot
from fleet_drift.observability.tracing import get_tracer

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


async def converge(
    registry: AspectRegistry,
    snapshot: RepoSnapshot,
    parameters: ApplyParameters | None,
    log=None,
) -> ApplyResult:
    log = (log or logger).bind(repo=snapshot.id.slug)
    fp = parameters.fp if parameters is not None else None
    if fp is None:
        log.error("No parameters")
        return Skipped(snapshot=snapshot, reason="no target fingerprint in apply parameters")

    aspect = registry.for_fingerprint(fp)
    if aspect is None:
        log.error("converge.unknown_fingerprint_type", fingerprint_type=fp.type)
        return Skipped(snapshot=snapshot, reason=f"no aspect registered for {fp.type!r}")
    if not isinstance(aspect, ConvergentAspect):
        log.warning("converge.read_only_aspect", aspect=aspect.name)
        return Skipped(snapshot=snapshot, reason=f"aspect {aspect.name!r} does not support apply")

    with tracer.start_as_current_span("converge") as span:
        span.set_attribute("repo", snapshot.id.slug)
        span.set_attribute("aspect", aspect.name)
        span.set_attribute("target_sha", fp.sha)
        try:
            result = await aspect.apply(
                snapshot,
                ApplyContext(parameters=parameters, logger=log.bind(aspect=aspect.name)),
            )
        except Exception as e:
            log.error(
                "converge.apply_failed",
                aspect=aspect.name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=e,
            )
            result = Skipped(snapshot=snapshot, reason=f"apply failed: {type(e).__name__}: {e}")
        span.set_attribute("outcome", "applied" if isinstance(result, Applied) else "skipped")

    if isinstance(result, Applied):
        log.info("converge.applied", aspect=aspect.name, changed_paths=list(result.changed_paths))
    else:
        log.info("converge.skipped", aspect=aspect.name, reason=result.reason)
    return result
