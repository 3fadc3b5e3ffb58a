"""Landing convergence changes on branches that may have moved.

A change is proposed against the target branch tip it was computed from. When
it lands:

- tip unchanged -> fast-forward, Merged
- tip advanced -> Rebasing: every changed path is replayed with a three-way
  merge against the new tip. Conflicting hunks go to the configured side;
  modify/delete conflicts cannot be resolved by picking a side and abandon the
  change. An abandoned change's proposal branch is deleted when configured.

Abandoned is terminal. A later convergence run recomputes and proposes again.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping, Optional

import structlog

from fleet_drift.configuration.common_config import get_app_settings
from fleet_drift.configuration.rebase_config import RebaseSettings
from fleet_drift.core.merge3 import ConflictSide, MergeConflictError, merge3
from fleet_drift.core.snapshot import RepoSnapshot
from fleet_drift.persistence.branch_store import BranchStore

logger = structlog.get_logger(__name__)


class ChangeState(str, enum.Enum):
    PROPOSED = "proposed"
    REBASING = "rebasing"
    MERGED = "merged"
    ABANDONED = "abandoned"


class RebaseStrategy(str, enum.Enum):
    OURS = "ours"
    THEIRS = "theirs"
    NONE = "none"


class RebaseFailure(str, enum.Enum):
    DELETE_BRANCH = "delete-branch"
    KEEP_BRANCH = "keep-branch"


@dataclass(frozen=True)
class RebaseOptions:
    rebase: bool = True
    strategy: RebaseStrategy = RebaseStrategy.OURS
    on_failure: RebaseFailure = RebaseFailure.DELETE_BRANCH

    @classmethod
    def from_settings(cls, settings: Optional[RebaseSettings] = None) -> "RebaseOptions":
        settings = settings or get_app_settings().rebase
        return cls(
            rebase=settings.REBASE_ENABLED,
            strategy=RebaseStrategy(settings.REBASE_STRATEGY),
            on_failure=RebaseFailure(settings.REBASE_ON_FAILURE),
        )


_STRATEGY_SIDE = {
    RebaseStrategy.OURS: ConflictSide.OURS,
    RebaseStrategy.THEIRS: ConflictSide.THEIRS,
    RebaseStrategy.NONE: ConflictSide.NONE,
}


@dataclass(frozen=True)
class ProposedChange:
    branch: str
    target_branch: str
    base_commit: str
    base_files: Mapping[str, Optional[str]]
    files: Mapping[str, Optional[str]]
    message: str
    commit: Optional[str] = None


@dataclass(frozen=True)
class LandingResult:
    state: ChangeState
    commit: Optional[str] = None
    conflicts: int = 0
    reason: Optional[str] = None
    branch_deleted: bool = False
    transitions: tuple[ChangeState, ...] = field(default_factory=tuple)


class IrreconcilableConflict(Exception):
    """The change cannot be replayed onto the new tip."""


async def propose_change(
    store: BranchStore,
    *,
    target_branch: str,
    before: RepoSnapshot,
    after: RepoSnapshot,
    branch: str,
    message: str,
) -> Optional[ProposedChange]:
    """Commit the difference between `before` and `after` on a new proposal branch.

    Returns None when the snapshots do not differ or the target branch is missing.
    """

    paths = before.changed_paths(after)
    if not paths:
        return None
    base = await store.head(target_branch)
    if base is None:
        logger.error("rebase.missing_target_branch", target_branch=target_branch)
        return None

    base_files = await store.read_files(base, paths)
    files = {p: after.files.get(p) for p in paths}
    commit = await store.commit(base, files, message)
    if not await store.set_branch(branch, commit, expected=None):
        logger.warning("rebase.proposal_branch_exists", branch=branch)
        return None
    logger.info("rebase.proposed", branch=branch, target_branch=target_branch, base=base, paths=paths)
    return ProposedChange(
        branch=branch,
        target_branch=target_branch,
        base_commit=base,
        base_files=base_files,
        files=files,
        message=message,
        commit=commit,
    )


class RebasePolicy:
    def __init__(self, options: Optional[RebaseOptions] = None):
        self.options = options or RebaseOptions.from_settings()

    def _replay(
        self, change: ProposedChange, tip_files: Mapping[str, Optional[str]]
    ) -> tuple[dict[str, Optional[str]], int]:
        side = _STRATEGY_SIDE[self.options.strategy]
        merged: dict[str, Optional[str]] = {}
        conflicts = 0
        for path, incoming in change.files.items():
            base = change.base_files.get(path)
            tip = tip_files.get(path)
            if tip == base:
                merged[path] = incoming
                continue
            if tip == incoming:
                merged[path] = tip
                continue
            if incoming is None or (tip is None and base is not None):
                raise IrreconcilableConflict(f"{path}: modified on one side, deleted on the other")
            try:
                result = merge3(base or "", incoming, tip or "", prefer=side)
            except MergeConflictError as e:
                raise IrreconcilableConflict(f"{path}: {e}") from e
            merged[path] = result.text
            conflicts += result.conflicts
        return merged, conflicts

    async def _abandon(
        self,
        store: BranchStore,
        change: ProposedChange,
        reason: str,
        transitions: list[ChangeState],
    ) -> LandingResult:
        transitions.append(ChangeState.ABANDONED)
        deleted = False
        if self.options.on_failure is RebaseFailure.DELETE_BRANCH:
            deleted = await store.delete_branch(change.branch)
        logger.warning(
            "rebase.abandoned",
            branch=change.branch,
            target_branch=change.target_branch,
            reason=reason,
            branch_deleted=deleted,
        )
        return LandingResult(
            state=ChangeState.ABANDONED,
            reason=reason,
            branch_deleted=deleted,
            transitions=tuple(transitions),
        )

    async def land(self, change: ProposedChange, store: BranchStore) -> LandingResult:
        """Drive `change` from Proposed to Merged or Abandoned."""

        transitions = [ChangeState.PROPOSED]
        log = logger.bind(branch=change.branch, target_branch=change.target_branch)

        tip = await store.head(change.target_branch)
        if tip is None:
            return await self._abandon(store, change, "target branch no longer exists", transitions)

        if tip == change.base_commit:
            commit = change.commit or await store.commit(tip, change.files, change.message)
            if not await store.set_branch(change.target_branch, commit, expected=tip):
                return await self._abandon(store, change, "target branch moved while landing", transitions)
            transitions.append(ChangeState.MERGED)
            log.info("rebase.merged", commit=commit, rebased=False)
            return LandingResult(state=ChangeState.MERGED, commit=commit, transitions=tuple(transitions))

        transitions.append(ChangeState.REBASING)
        log.info("rebase.rebasing", base=change.base_commit, tip=tip, strategy=self.options.strategy.value)
        if not self.options.rebase:
            return await self._abandon(store, change, "target branch advanced and rebase is disabled", transitions)

        tip_files = await store.read_files(tip, change.files.keys())
        try:
            merged, conflicts = self._replay(change, tip_files)
        except IrreconcilableConflict as e:
            return await self._abandon(store, change, str(e), transitions)

        commit = await store.commit(tip, merged, change.message)
        if change.commit is not None:
            await store.set_branch(change.branch, commit, expected=change.commit)
        if not await store.set_branch(change.target_branch, commit, expected=tip):
            return await self._abandon(store, change, "target branch moved while landing", transitions)

        transitions.append(ChangeState.MERGED)
        log.info("rebase.merged", commit=commit, rebased=True, conflicts_resolved=conflicts)
        return LandingResult(
            state=ChangeState.MERGED,
            commit=commit,
            conflicts=conflicts,
            transitions=tuple(transitions),
        )
