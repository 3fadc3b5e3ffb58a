"""Fingerprint API endpoints: aspect metadata, extraction and apply preview."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request

from fleet_drift.api.schemas import (
    ApplyRequest,
    ApplyResponse,
    ExtractRequest,
    ExtractResponse,
    FingerprintModel,
    RepoRequest,
)
from fleet_drift.aspects.base import Applied, ApplyParameters, ExtractionContext
from fleet_drift.aspects.registry import AspectRegistry
from fleet_drift.clients.credentials import credentials_from_authorization
from fleet_drift.clients.east_pipeline_client import EastPipelineClient
from fleet_drift.configuration.common_config import AppSettings, get_app_settings
from fleet_drift.core.convergence import converge
from fleet_drift.core.extraction import extract_with_report
from fleet_drift.core.repo_materializer import RepoMaterializationError, materialize_git, remove_tree
from fleet_drift.core.snapshot import RepoRef, RepoSnapshot, load_snapshot
from fleet_drift.core.workspace import Workspace

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Fingerprints"])


def get_aspect_registry(request: Request) -> AspectRegistry:
    """Get the aspect registry from app state."""
    return request.app.state.aspect_registry


async def _snapshot_for(payload: RepoRequest, settings: AppSettings) -> RepoSnapshot:
    """Clone into a private checkout, load the committed tree, then discard the checkout."""

    workspace = Workspace(Path(settings.WORKSPACE_ROOT))
    checkout = await asyncio.to_thread(
        workspace.checkout_dir, payload.owner, payload.repo, payload.git_url, payload.ref
    )
    try:
        result = await asyncio.to_thread(
            materialize_git, git_url=payload.git_url, ref=payload.ref, dest_dir=checkout / "repo"
        )
        if result.head_commit is None:
            raise RepoMaterializationError(f"repository has no commits at ref {payload.ref or 'HEAD'}")
        ref = RepoRef(
            owner=payload.owner,
            repo=payload.repo,
            branch=payload.ref,
            sha=result.head_commit,
            host_url=settings.GIT_HOST_URL,
        )
        return await load_snapshot(result.repo_root, ref)
    finally:
        await asyncio.to_thread(remove_tree, checkout)


@router.get("/aspects")
async def list_aspects(registry: AspectRegistry = Depends(get_aspect_registry)) -> list[dict]:
    return [aspect.describe() for aspect in registry]


@router.post("/fingerprints/extract", response_model=ExtractResponse)
async def extract_fingerprints(
    payload: ExtractRequest,
    registry: AspectRegistry = Depends(get_aspect_registry),
    settings: AppSettings = Depends(get_app_settings),
    authorization: str | None = Header(default=None),
) -> ExtractResponse:
    try:
        aspects = registry.select(payload.aspects)
    except KeyError as e:
        raise HTTPException(status_code=400, detail=str(e.args[0])) from e

    snapshot = await _snapshot_for(payload, settings)
    async with EastPipelineClient(settings.classifier) as classifier:
        ctx = ExtractionContext(
            credentials=credentials_from_authorization(authorization),
            classifier=classifier,
            logger=logger.bind(repo=snapshot.id.slug),
        )
        report = await extract_with_report(aspects, snapshot, ctx)

    return ExtractResponse(
        owner=payload.owner,
        repo=payload.repo,
        commit=snapshot.id.sha,
        fingerprints=[FingerprintModel.from_fingerprint(fp) for fp in report.fingerprints],
        failed_aspects=report.failed_aspects,
    )


@router.post("/fingerprints/apply", response_model=ApplyResponse)
async def apply_fingerprint(
    payload: ApplyRequest,
    registry: AspectRegistry = Depends(get_aspect_registry),
    settings: AppSettings = Depends(get_app_settings),
) -> ApplyResponse:
    """Preview converging a repository onto a target fingerprint. Nothing is committed."""

    snapshot = await _snapshot_for(payload, settings)
    target = payload.fingerprint.to_fingerprint() if payload.fingerprint is not None else None
    result = await converge(registry, snapshot, ApplyParameters(fp=target))

    if isinstance(result, Applied):
        return ApplyResponse(
            outcome="applied",
            changed_paths=list(result.changed_paths),
            files={p: result.snapshot.files[p] for p in result.changed_paths},
        )
    return ApplyResponse(outcome="skipped", reason=result.reason)
