import json

import pytest

from fleet_drift.aspects.base import Applied, ApplyContext, ApplyParameters, ExtractionContext, Skipped
from fleet_drift.aspects.npm_scripts import (
    NpmScriptsAspect,
    ScriptsCategory,
    categorize,
    replace_scripts,
    scripts_fingerprint_of,
)
from fleet_drift.core.snapshot import RepoSnapshot

SCRIPTS = {"build": "tsc", "test": "mocha"}


def _manifest(deps: dict, scripts: dict | None = None, **extra) -> str:
    body = {"name": "svc", "version": "1.0.0", **extra, "dependencies": deps}
    if scripts is not None:
        body["scripts"] = scripts
    return json.dumps(body, indent=2) + "\n"


def _snapshot(content: str | None) -> RepoSnapshot:
    files = {} if content is None else {"package.json": content}
    return RepoSnapshot.of("acme", "svc", files, sha="c0ffee")


def test_categorize_first_match_wins() -> None:
    both = {"@atomist/sdm": "1.0.0", "@atomist/sdm-pack-aspect": "1.0.0"}

    assert categorize(both) is ScriptsCategory.ASPECT_SDM
    assert categorize({"@atomist/sdm": "1.0.0"}) is ScriptsCategory.SDM
    assert categorize({"lodash": "4.0.0"}) is None


@pytest.mark.asyncio
async def test_extract_aspect_sdm_fingerprint() -> None:
    snap = _snapshot(_manifest({"@atomist/sdm": "1", "@atomist/sdm-pack-aspect": "1"}, SCRIPTS))

    fps = await NpmScriptsAspect().extract(snap, ExtractionContext())

    assert len(fps) == 1
    fp = fps[0]
    assert fp.type == "npm-scripts"
    assert fp.name == "npm-scripts-aspect-sdm"
    assert fp.abbreviation == "npmscr"
    assert fp.version == "0.0.1"
    assert fp.data["scripts"] == SCRIPTS
    assert fp.data["link"] == "https://github.com/acme/svc/blob/c0ffee/package.json"


@pytest.mark.asyncio
async def test_extract_not_applicable_cases() -> None:
    aspect = NpmScriptsAspect()
    ctx = ExtractionContext()

    assert await aspect.extract(_snapshot(None), ctx) == []
    assert await aspect.extract(_snapshot(_manifest({"lodash": "4"}, SCRIPTS)), ctx) == []
    assert await aspect.extract(_snapshot("{not json"), ctx) == []
    assert await aspect.extract(_snapshot('{"dependencies": []}'), ctx) == []


@pytest.mark.asyncio
async def test_same_scripts_same_sha_different_scripts_different_sha() -> None:
    aspect = NpmScriptsAspect()
    ctx = ExtractionContext()
    deps = {"@atomist/sdm": "1"}

    [a] = await aspect.extract(_snapshot(_manifest(deps, {"test": "mocha", "build": "tsc"})), ctx)
    [b] = await aspect.extract(
        RepoSnapshot.of("other", "repo", {"package.json": _manifest(deps, SCRIPTS, description="x")}),
        ctx,
    )
    [c] = await aspect.extract(_snapshot(_manifest(deps, {"build": "tsc", "test": "jest"})), ctx)
    renamed = json.dumps({"name": "other", "dependencies": {**deps, "lodash": "4"}, "scripts": SCRIPTS})
    [d] = await aspect.extract(_snapshot(renamed), ctx)
    [e] = await aspect.extract(_snapshot(_manifest(deps, {**SCRIPTS, "lint": "eslint ."})), ctx)

    assert a.sha == b.sha == d.sha
    assert a.data["link"] != b.data["link"]
    assert a.sha != c.sha
    assert a.sha != e.sha


@pytest.mark.asyncio
async def test_apply_rewrites_only_the_scripts_value_of_a_crlf_manifest() -> None:
    head = '{\r\n  "name": "svc",\r\n  "dependencies": {"@atomist/sdm": "1"},\r\n  "scripts": '
    tail = ',\r\n  "files": ["lib", "index.js"]\r\n}\r\n'
    original = head + '{\r\n    "test": "jest"\r\n  }' + tail
    target = scripts_fingerprint_of(ScriptsCategory.SDM, SCRIPTS, "https://example.com/x")

    result = await NpmScriptsAspect().apply(
        _snapshot(original), ApplyContext(parameters=ApplyParameters(fp=target))
    )

    assert isinstance(result, Applied)
    assert result.changed_paths == ("package.json",)
    assert result.snapshot.files["package.json"] == (
        head + '{\r\n    "build": "tsc",\r\n    "test": "mocha"\r\n  }' + tail
    )


@pytest.mark.asyncio
async def test_apply_appends_scripts_and_keeps_inline_members() -> None:
    body = '{\n  "name": "svc",\n  "files": ["lib", "index.js"],\n  "dependencies": {"@atomist/sdm": "1"}'
    original = body + "\n}\n"
    target = scripts_fingerprint_of(ScriptsCategory.SDM, SCRIPTS, "")

    result = await NpmScriptsAspect().apply(
        _snapshot(original), ApplyContext(parameters=ApplyParameters(fp=target))
    )

    assert result.snapshot.files["package.json"] == (
        body + ',\n  "scripts": {\n    "build": "tsc",\n    "test": "mocha"\n  }\n}\n'
    )


@pytest.mark.asyncio
async def test_apply_is_idempotent() -> None:
    aspect = NpmScriptsAspect()
    target = scripts_fingerprint_of(ScriptsCategory.SDM, SCRIPTS, "")
    ctx = ApplyContext(parameters=ApplyParameters(fp=target))

    once = await aspect.apply(_snapshot(_manifest({"@atomist/sdm": "1"}, {"x": "y"})), ctx)
    twice = await aspect.apply(once.snapshot, ctx)

    assert isinstance(twice, Applied)
    assert not twice.changed
    assert twice.snapshot.files == once.snapshot.files


@pytest.mark.asyncio
async def test_apply_without_parameters_is_skipped() -> None:
    snap = _snapshot(_manifest({"@atomist/sdm": "1"}, SCRIPTS))

    result = await NpmScriptsAspect().apply(snap, ApplyContext(parameters=ApplyParameters()))

    assert isinstance(result, Skipped)
    assert result.snapshot is snap


@pytest.mark.asyncio
async def test_apply_with_unparseable_manifest_is_skipped() -> None:
    target = scripts_fingerprint_of(ScriptsCategory.SDM, SCRIPTS, "")
    snap = _snapshot("{broken")

    result = await NpmScriptsAspect().apply(snap, ApplyContext(parameters=ApplyParameters(fp=target)))

    assert isinstance(result, Skipped)
    assert result.snapshot.files["package.json"] == "{broken"


def test_replace_scripts_follows_tab_indent() -> None:
    original = '{\n\t"name": "svc",\n\t"scripts": {\n\t\t"test": "jest"\n\t}\n}'

    assert replace_scripts(original, SCRIPTS) == (
        '{\n\t"name": "svc",\n\t"scripts": {\n\t\t"build": "tsc",\n\t\t"test": "mocha"\n\t}\n}'
    )


def test_replace_scripts_keeps_inline_style() -> None:
    assert replace_scripts('{"name": "svc", "scripts": {"test": "jest"}}', SCRIPTS) == (
        '{"name": "svc", "scripts": {"build": "tsc", "test": "mocha"}}'
    )
    assert replace_scripts("{}\n", SCRIPTS) == '{"scripts": {"build": "tsc", "test": "mocha"}}\n'


def test_display_name_carries_category() -> None:
    assert NpmScriptsAspect().to_displayable_fingerprint_name("npm-scripts-sdm") == "NPM Scripts for sdm"
