"""Fingerprint value type and digesting.

A fingerprint's ``sha`` is computed over the *significant* payload only.
Display-only fields (links, lookup diagnostics) live in ``data`` but never
reach the digest, so two repositories with the same significant facts always
compare equal.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Mapping


def canonical_json(payload: Any) -> str:
    """Serialize `payload` deterministically (sorted keys, compact separators)."""

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_of(payload: Any) -> str:
    """Return the hex SHA-256 of the canonical JSON form of `payload`."""

    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Fingerprint:
    type: str
    name: str
    data: Mapping[str, Any]
    sha: str
    abbreviation: str = ""
    version: str = "0.0.1"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "data": dict(self.data),
            "sha": self.sha,
            "abbreviation": self.abbreviation,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Fingerprint":
        return cls(
            type=raw["type"],
            name=raw["name"],
            data=dict(raw.get("data") or {}),
            sha=raw["sha"],
            abbreviation=raw.get("abbreviation", ""),
            version=raw.get("version", "0.0.1"),
        )


def fingerprint_of(
    *,
    type: str,
    name: str,
    data: Mapping[str, Any],
    significant: Any,
    abbreviation: str,
    version: str = "0.0.1",
) -> Fingerprint:
    """Build a fingerprint whose sha covers `significant` and nothing else."""

    return Fingerprint(
        type=type,
        name=name,
        data=dict(data),
        sha=sha256_of(significant),
        abbreviation=abbreviation,
        version=version,
    )
