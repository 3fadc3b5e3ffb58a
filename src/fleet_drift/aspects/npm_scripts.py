"""npm scripts aspect.

Keeps the ``package.json`` ``scripts`` mapping consistent for some categories
of projects:

- aspect SDMs (depend on the aspect pack)
- other SDMs

Each category gets its own fingerprint. The fingerprint data holds the
``scripts`` and a link to the file; only the ``scripts`` affect the sha, only
the link is displayed.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Mapping

from fleet_drift.aspects.base import (
    Applied,
    ApplyContext,
    ApplyResult,
    AspectDetails,
    ConvergentAspect,
    ExtractionContext,
    Skipped,
)
from fleet_drift.core.fingerprint import Fingerprint, fingerprint_of
from fleet_drift.core.snapshot import RepoSnapshot

PACKAGE_JSON = "package.json"
NPM_SCRIPTS_TYPE = "npm-scripts"
_NAME_PREFIX = f"{NPM_SCRIPTS_TYPE}-"

_BOM = "\ufeff"
_JSON_WS = " \t\r\n"
_DEFAULT_INDENT = "  "


class ScriptsCategory(str, enum.Enum):
    ASPECT_SDM = "aspect-sdm"
    SDM = "sdm"


# First match wins; more specific categories come first.
CATEGORY_MARKERS: tuple[tuple[ScriptsCategory, str], ...] = (
    (ScriptsCategory.ASPECT_SDM, "@atomist/sdm-pack-aspect"),
    (ScriptsCategory.SDM, "@atomist/sdm"),
)


class ManifestError(ValueError):
    """Raised when package.json cannot be used as a manifest."""


def fingerprint_name_from_category(category: ScriptsCategory) -> str:
    return _NAME_PREFIX + category.value


def scripts_fingerprint_of(category: ScriptsCategory, scripts: Mapping[str, str], link: str) -> Fingerprint:
    return fingerprint_of(
        type=NPM_SCRIPTS_TYPE,
        name=fingerprint_name_from_category(category),
        data={"scripts": dict(scripts), "link": link},
        significant=dict(scripts),
        abbreviation="npmscr",
        version="0.0.1",
    )


def categorize(dependencies: Mapping[str, Any]) -> ScriptsCategory | None:
    for category, marker in CATEGORY_MARKERS:
        if marker in dependencies:
            return category
    return None


def parse_manifest(content: str) -> dict[str, Any]:
    try:
        manifest = json.loads(content.lstrip(_BOM))
    except json.JSONDecodeError as e:
        raise ManifestError(f"{PACKAGE_JSON} is not valid JSON: {e}") from e
    if not isinstance(manifest, dict):
        raise ManifestError(f"{PACKAGE_JSON} root must be an object")
    for key in ("dependencies", "scripts"):
        if key in manifest and not isinstance(manifest[key], dict):
            raise ManifestError(f"{PACKAGE_JSON} {key!r} must be an object")
    return manifest


@dataclass(frozen=True)
class _ManifestLayout:
    """Character offsets of the top-level object members."""

    open_brace: int
    close_brace: int
    indent: str
    last_value_end: int | None = None
    scripts_span: tuple[int, int] | None = None


def _skip_ws(text: str, idx: int) -> int:
    while idx < len(text) and text[idx] in _JSON_WS:
        idx += 1
    return idx


def _member_indent(content: str, key_start: int) -> str:
    line_start = content.rfind("\n", 0, key_start) + 1
    ws = content[line_start:key_start]
    if line_start == 0 or not ws or ws.strip():
        return _DEFAULT_INDENT
    return ws


def _scan_manifest(content: str) -> _ManifestLayout:
    decoder = json.JSONDecoder()
    open_brace = _skip_ws(content, len(content) - len(content.lstrip(_BOM)))
    idx = _skip_ws(content, open_brace + 1)
    if content[idx] == "}":
        return _ManifestLayout(open_brace=open_brace, close_brace=idx, indent=_DEFAULT_INDENT)

    indent = _member_indent(content, idx)
    scripts_span = None
    try:
        while True:
            key, idx = decoder.raw_decode(content, idx)
            start = _skip_ws(content, _skip_ws(content, idx) + 1)
            _value, end = decoder.raw_decode(content, start)
            # Later duplicates win, as they do for json.loads.
            if key == "scripts":
                scripts_span = (start, end)
            idx = _skip_ws(content, end)
            if content[idx] == "}":
                break
            idx = _skip_ws(content, idx + 1)
    except (json.JSONDecodeError, IndexError) as e:
        raise ManifestError(f"{PACKAGE_JSON} layout could not be scanned: {e}") from e

    return _ManifestLayout(
        open_brace=open_brace,
        close_brace=idx,
        indent=indent,
        last_value_end=end,
        scripts_span=scripts_span,
    )


def _render_scripts(scripts: Mapping[str, str], indent: str, newline: str, inline: bool) -> str:
    if inline or not scripts:
        return json.dumps(dict(scripts), ensure_ascii=False, separators=(", ", ": "))
    body = json.dumps(dict(scripts), indent=indent, ensure_ascii=False)
    return body.replace("\n", newline + indent)


def replace_scripts(content: str, scripts: Mapping[str, str]) -> str:
    """Return `content` with only the top-level ``scripts`` value rewritten.

    Every character outside that value is kept as is. The new value follows
    the file's newline style and member indentation; a manifest without
    ``scripts`` gets the member appended after its last member.
    """

    layout = _scan_manifest(content)
    newline = "\r\n" if "\r\n" in content else "\n"

    if layout.scripts_span is not None:
        start, end = layout.scripts_span
        inline = "\n" not in content[start:end]
        return content[:start] + _render_scripts(scripts, layout.indent, newline, inline) + content[end:]

    inline = "\n" not in content[layout.open_brace:layout.close_brace]
    member = '"scripts": ' + _render_scripts(scripts, layout.indent, newline, inline)
    if layout.last_value_end is None:
        if inline:
            return content[:layout.open_brace + 1] + member + content[layout.close_brace:]
        return (
            content[:layout.open_brace + 1]
            + newline + layout.indent + member + newline
            + content[layout.close_brace:]
        )

    separator = ", " if inline else "," + newline + layout.indent
    at = layout.last_value_end
    return content[:at] + separator + member + content[at:]


@dataclass(frozen=True)
class NpmScriptsAspect(ConvergentAspect):
    name: str = NPM_SCRIPTS_TYPE
    display_name: str = "npm scripts"
    details: AspectDetails = AspectDetails(
        description="NPM Scripts",
        short_name=NPM_SCRIPTS_TYPE,
        display_name="NPM Scripts",
        unit="scripts",
        category="npm",
        url=f"fingerprint/{NPM_SCRIPTS_TYPE}/*?byOrg=true&trim=false",
    )

    async def extract(self, snapshot: RepoSnapshot, ctx: ExtractionContext) -> list[Fingerprint]:
        content = await snapshot.get_content(PACKAGE_JSON)
        if content is None:
            return []
        try:
            manifest = parse_manifest(content)
        except ManifestError as e:
            ctx.logger.warning("npm_scripts.unparseable_manifest", repo=snapshot.id.slug, error=str(e))
            return []

        category = categorize(manifest.get("dependencies") or {})
        if category is None:
            return []
        scripts = manifest.get("scripts") or {}
        return [scripts_fingerprint_of(category, scripts, snapshot.id.blob_url(PACKAGE_JSON))]

    async def apply(self, snapshot: RepoSnapshot, ctx: ApplyContext) -> ApplyResult:
        fp = ctx.target
        if fp is None:
            ctx.logger.error("No parameters", repo=snapshot.id.slug, aspect=self.name)
            return Skipped(snapshot=snapshot, reason="no target fingerprint in apply parameters")

        target_scripts = fp.data.get("scripts")
        if not isinstance(target_scripts, dict):
            ctx.logger.error("npm_scripts.target_without_scripts", repo=snapshot.id.slug, fingerprint=fp.name)
            return Skipped(snapshot=snapshot, reason="target fingerprint carries no scripts")

        content = await snapshot.get_content(PACKAGE_JSON)
        if content is None:
            ctx.logger.warning("npm_scripts.no_manifest", repo=snapshot.id.slug)
            return Skipped(snapshot=snapshot, reason=f"{PACKAGE_JSON} not found")
        try:
            manifest = parse_manifest(content)
            if manifest.get("scripts") == target_scripts:
                return Applied(snapshot=snapshot)
            updated = replace_scripts(content, target_scripts)
        except ManifestError as e:
            ctx.logger.warning("npm_scripts.unparseable_manifest", repo=snapshot.id.slug, error=str(e))
            return Skipped(snapshot=snapshot, reason=str(e))

        converged = snapshot.with_file(PACKAGE_JSON, updated)
        ctx.logger.info(
            "npm_scripts.applied",
            repo=snapshot.id.slug,
            fingerprint=fp.name,
            sha=fp.sha,
        )
        return Applied(snapshot=converged, changed_paths=(PACKAGE_JSON,))

    def to_displayable_fingerprint(self, fp: Fingerprint) -> str:
        return str(fp.data.get("link", ""))

    def to_displayable_fingerprint_name(self, fingerprint_name: str) -> str:
        return "NPM Scripts for " + fingerprint_name.replace(_NAME_PREFIX, "", 1)
