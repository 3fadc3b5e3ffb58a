from unittest.mock import Mock

import httpx
import pytest

from fleet_drift.aspects.base import ExtractionContext
from fleet_drift.aspects.pipeline import CurrentPipelineAspect, PipelineKind, pipeline_fingerprint_of
from fleet_drift.clients.credentials import TokenCredentials, UsernamePasswordCredentials
from fleet_drift.clients.east_pipeline_client import EastPipelineClient, LookupOutcome
from fleet_drift.configuration.classifier_config import ClassifierSettings
from fleet_drift.core.extraction import extract_with_report
from fleet_drift.core.snapshot import RepoRef, RepoSnapshot


def _snapshot(files: dict[str, str]) -> RepoSnapshot:
    return RepoSnapshot.of("acme", "svc", files)


def _client(handler) -> EastPipelineClient:
    return EastPipelineClient(settings=ClassifierSettings(), transport=httpx.MockTransport(handler))


def _never_called(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


async def _detect(files: dict[str, str], ctx: ExtractionContext):
    [fp] = await CurrentPipelineAspect().extract(_snapshot(files), ctx)
    return fp


@pytest.mark.asyncio
async def test_deployment_descriptor_wins_over_everything() -> None:
    async with _client(_never_called) as client:
        fp = await _detect(
            {"deployment.yaml": "kind: x", "buildfile": "Legacy Deploy Stuff"},
            ExtractionContext(classifier=client),
        )

    assert fp.data["detected"] == "Modern"
    assert fp.type == fp.name == "current-pipeline"
    assert fp.abbreviation == "pl"


@pytest.mark.asyncio
async def test_buildfile_classifies_legacy_or_west() -> None:
    async with _client(_never_called) as client:
        ctx = ExtractionContext(classifier=client)
        legacy = await _detect({"buildfile": "step 1\nLegacy Deploy Stuff\n"}, ctx)
        west = await _detect({"buildfile": "step 1\n"}, ctx)

    assert legacy.data["detected"] == "Legacy"
    assert west.data["detected"] == "West"


@pytest.mark.asyncio
async def test_east_when_deployer_reports_found() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="yes, found it")

    async with _client(handler) as client:
        fp = await _detect({}, ExtractionContext(classifier=client, credentials=TokenCredentials("t0k")))

    assert fp.data == {"detected": "East", "remote_lookup": "positive"}
    assert str(seen[0].url) == "https://eastpipeline.yo/acme/svc/doesThisWork"
    assert seen[0].headers["Authorization"] == "Bearer t0k"


@pytest.mark.asyncio
async def test_no_bearer_header_for_non_token_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="nothing here")

    async with _client(handler) as client:
        fp = await _detect(
            {}, ExtractionContext(classifier=client, credentials=UsernamePasswordCredentials("u", "p"))
        )

    assert fp.data == {"detected": "none", "remote_lookup": "negative"}
    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_failing_remote_is_none_with_single_attempt() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        fp = await _detect({}, ExtractionContext(classifier=client))

    assert fp.data == {"detected": "none", "remote_lookup": "failed"}
    assert calls == 1


@pytest.mark.asyncio
async def test_non_2xx_is_not_east_even_with_marker() -> None:
    async with _client(lambda request: httpx.Response(500, text="found")) as client:
        fp = await _detect({}, ExtractionContext(classifier=client))

    assert fp.data["detected"] == "none"
    assert fp.data["remote_lookup"] == "failed"


@pytest.mark.asyncio
async def test_no_classifier_is_none() -> None:
    fp = await _detect({}, ExtractionContext())

    assert fp.data == {"detected": "none", "remote_lookup": "skipped"}


@pytest.mark.asyncio
async def test_lookup_outcome_does_not_change_sha() -> None:
    async with _client(lambda request: httpx.Response(200, text="no")) as client:
        negative = await _detect({}, ExtractionContext(classifier=client))
    skipped = await _detect({}, ExtractionContext())

    assert negative.data["remote_lookup"] != skipped.data["remote_lookup"]
    assert negative.sha == skipped.sha


@pytest.mark.asyncio
async def test_client_retries_connect_errors_when_configured() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("flaky", request=request)
        return httpx.Response(200, text="found")

    settings = ClassifierSettings(CLASSIFIER_MAX_RETRIES=1)
    client = EastPipelineClient(settings=settings, transport=httpx.MockTransport(handler))
    try:
        outcome = await client.lookup(RepoRef(owner="acme", repo="svc"))
    finally:
        await client.close()

    assert outcome is LookupOutcome.POSITIVE
    assert calls == 2


def test_display_value_is_detected_category() -> None:
    aspect = CurrentPipelineAspect()
    assert aspect.to_displayable_fingerprint(pipeline_fingerprint_of(PipelineKind.WEST)) == "West"
    assert aspect.to_displayable_fingerprint_name("current-pipeline") == "Pipeline"


@pytest.mark.asyncio
async def test_lookup_url_percent_encodes_owner_and_repo() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="found")

    snap = RepoSnapshot.of("acme/x?y#z", "svc\x01", {})
    async with _client(handler) as client:
        report = await extract_with_report([CurrentPipelineAspect()], snap, ExtractionContext(classifier=client))

    assert report.failed_aspects == {}
    assert [fp.data for fp in report.fingerprints] == [{"detected": "East", "remote_lookup": "positive"}]
    assert seen[0].url.raw_path == b"/acme%2Fx%3Fy%23z/svc%01/doesThisWork"


@pytest.mark.asyncio
async def test_unbuildable_lookup_url_is_a_failed_lookup(monkeypatch) -> None:
    async with _client(_never_called) as client:
        monkeypatch.setattr(client, "lookup_url", lambda ref: "https://eastpipeline.yo/bad\x01path")
        report = await extract_with_report(
            [CurrentPipelineAspect()], _snapshot({}), ExtractionContext(classifier=client)
        )

    assert report.failed_aspects == {}
    assert [fp.data for fp in report.fingerprints] == [{"detected": "none", "remote_lookup": "failed"}]


@pytest.mark.asyncio
async def test_lookup_logs_through_the_extraction_logger() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    log = Mock()
    async with _client(handler) as client:
        fp = await _detect({}, ExtractionContext(classifier=client, logger=log))

    assert fp.data["remote_lookup"] == "failed"
    log.error.assert_called_once()
    assert log.error.call_args.args[0] == "Couldn't check for East pipeline"
    assert log.error.call_args.kwargs["repo"] == "acme/svc"
