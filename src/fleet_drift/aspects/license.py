"""License aspect (read-only).

Classifies the repository license from the manifest's ``license`` field or,
failing that, from a LICENSE file. A repository without either still gets a
fingerprint classified ``none`` so unlicensed repositories show up in the
fleet view.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from fleet_drift.aspects.base import Aspect, AspectDetails, ExtractionContext
from fleet_drift.core.fingerprint import Fingerprint, fingerprint_of
from fleet_drift.core.snapshot import RepoSnapshot

LICENSE_TYPE = "license"
LICENSE_FILES: tuple[str, ...] = ("LICENSE", "LICENSE.md", "LICENSE.txt", "LICENCE", "COPYING")
NO_LICENSE = "none"
UNKNOWN_LICENSE = "unknown"

# (identifier, phrases that must all appear), checked in order.
_LICENSE_SIGNATURES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Apache-2.0", ("apache license", "version 2.0")),
    ("LGPL-3.0", ("gnu lesser general public license", "version 3")),
    ("GPL-3.0", ("gnu general public license", "version 3")),
    ("GPL-2.0", ("gnu general public license", "version 2")),
    ("MPL-2.0", ("mozilla public license", "2.0")),
    ("MIT", ("permission is hereby granted, free of charge",)),
    ("ISC", ("permission to use, copy, modify, and/or distribute",)),
    ("BSD-3-Clause", ("redistribution and use in source and binary forms", "neither the name")),
    ("BSD-2-Clause", ("redistribution and use in source and binary forms",)),
    ("Unlicense", ("this is free and unencumbered software",)),
)


def classify_license_text(text: str) -> str:
    lowered = " ".join(text.lower().split())
    for identifier, phrases in _LICENSE_SIGNATURES:
        if all(p in lowered for p in phrases):
            return identifier
    return UNKNOWN_LICENSE


def license_fingerprint_of(classification: str, path: str | None) -> Fingerprint:
    return fingerprint_of(
        type=LICENSE_TYPE,
        name=LICENSE_TYPE,
        data={"classification": classification, "path": path},
        significant={"classification": classification},
        abbreviation="lic",
        version="0.0.1",
    )


def _declared_license(manifest_text: str | None) -> str | None:
    if not manifest_text:
        return None
    try:
        manifest = json.loads(manifest_text)
    except json.JSONDecodeError:
        return None
    if not isinstance(manifest, dict):
        return None
    declared = manifest.get("license")
    if isinstance(declared, str) and declared.strip():
        return declared.strip()
    return None


@dataclass(frozen=True)
class LicenseAspect(Aspect):
    name: str = LICENSE_TYPE
    display_name: str = "License"
    details: AspectDetails = AspectDetails(
        description="License declared or shipped by the repository",
        short_name=LICENSE_TYPE,
        display_name="License",
        unit="license",
        category="Legal",
        url=f"fingerprint/{LICENSE_TYPE}/{LICENSE_TYPE}?byOrg=true&trim=false",
    )

    async def extract(self, snapshot: RepoSnapshot, ctx: ExtractionContext) -> list[Fingerprint]:
        declared = _declared_license(await snapshot.get_content("package.json"))
        if declared is not None:
            return [license_fingerprint_of(declared, "package.json")]

        for path in LICENSE_FILES:
            text = await snapshot.get_content(path)
            if text is not None:
                classification = classify_license_text(text)
                if classification == UNKNOWN_LICENSE:
                    ctx.logger.info("license.unclassified", repo=snapshot.id.slug, path=path)
                return [license_fingerprint_of(classification, path)]

        return [license_fingerprint_of(NO_LICENSE, None)]

    def to_displayable_fingerprint(self, fp: Fingerprint) -> str:
        return str(fp.data.get("classification", NO_LICENSE))
