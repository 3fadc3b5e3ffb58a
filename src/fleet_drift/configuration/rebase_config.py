"""
Defaults for landing convergence changes on diverged branches.
"""
from typing import Literal

from pydantic import Field

from .base_config import BaseConfig


class RebaseSettings(BaseConfig):
    """Environment-driven rebase policy defaults."""

    REBASE_ENABLED: bool = Field(
        default=True,
        description="Replay proposed changes onto the branch tip when the branch has advanced"
    )

    REBASE_STRATEGY: Literal["ours", "theirs", "none"] = Field(
        default="ours",
        description="Which side wins a conflicting hunk: the incoming change (ours) or the branch tip (theirs)"
    )

    REBASE_ON_FAILURE: Literal["delete-branch", "keep-branch"] = Field(
        default="delete-branch",
        description="What happens to the proposal branch when the rebase cannot be completed"
    )

    COMMIT_AUTHOR: str = Field(
        default="fleet-drift <fleet-drift@localhost>",
        description="Author/committer identity for convergence commits"
    )

