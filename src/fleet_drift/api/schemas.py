"""Pydantic request/response models for the fingerprint API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from fleet_drift.core.fingerprint import Fingerprint


class FingerprintModel(BaseModel):
    type: str = Field(min_length=1)
    name: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    sha: str = Field(min_length=1)
    abbreviation: str = ""
    version: str = "0.0.1"

    @classmethod
    def from_fingerprint(cls, fp: Fingerprint) -> "FingerprintModel":
        return cls(**fp.to_dict())

    def to_fingerprint(self) -> Fingerprint:
        return Fingerprint.from_dict(self.model_dump())


class RepoRequest(BaseModel):
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    git_url: str = Field(min_length=1)
    ref: str | None = None


class ExtractRequest(RepoRequest):
    aspects: list[str] | None = None


class ExtractResponse(BaseModel):
    owner: str
    repo: str
    commit: str | None = None
    fingerprints: list[FingerprintModel]
    failed_aspects: dict[str, str] = Field(default_factory=dict)


class ApplyRequest(RepoRequest):
    fingerprint: FingerprintModel | None = None


class ApplyResponse(BaseModel):
    outcome: Literal["applied", "skipped"]
    reason: str | None = None
    changed_paths: list[str] = Field(default_factory=list)
    files: dict[str, str] = Field(default_factory=dict)
