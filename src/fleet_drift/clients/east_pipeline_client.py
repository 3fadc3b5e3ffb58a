"""
Async HTTP client for the East pipeline deployer.

The deployer is asked a single yes/no question per repository: does it deploy
this repository? Any failure is contained here and reported as a failed lookup,
never raised to the aspect calling it.
"""

from __future__ import annotations

import enum
from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fleet_drift.clients.credentials import Credentials, auth_headers
from fleet_drift.configuration.classifier_config import ClassifierSettings, get_classifier_settings
from fleet_drift.core.snapshot import RepoRef

logger = structlog.get_logger(__name__)


class LookupOutcome(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    FAILED = "failed"
    SKIPPED = "skipped"


class EastPipelineClient:
    """Async HTTP client for the East pipeline lookup."""

    def __init__(
        self,
        settings: Optional[ClassifierSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = settings or get_classifier_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "EastPipelineClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_client(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.TIMEOUT),
                follow_redirects=True,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def lookup_url(self, ref: RepoRef) -> str:
        owner = quote(ref.owner, safe="")
        repo = quote(ref.repo, safe="")
        return f"{self.config.EAST_PIPELINE_BASE_URL}/{owner}/{repo}/{self.config.EAST_PIPELINE_PATH}"

    async def _get_with_retry(self, url: str, headers: dict[str, str]) -> httpx.Response:
        await self._ensure_client()

        @retry(
            stop=stop_after_attempt(self.config.MAX_RETRIES + 1),
            wait=wait_exponential(multiplier=1, max=10),
            retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
            reraise=True,
        )
        async def _get():
            response = await self._client.request("GET", url, headers=headers)
            response.raise_for_status()
            return response

        return await _get()

    async def lookup(
        self,
        ref: RepoRef,
        credentials: Optional[Credentials] = None,
        log: Optional[Any] = None,
    ) -> LookupOutcome:
        """Ask the deployer about `ref`; POSITIVE only when the body carries the marker.

        `log` is the caller's bound logger; the module logger is used without one.
        """

        log = log or logger
        url = self.lookup_url(ref)
        try:
            response = await self._get_with_retry(url, auth_headers(credentials))
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            log.error(
                "Couldn't check for East pipeline",
                repo=ref.slug,
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return LookupOutcome.FAILED

        if self.config.EAST_PIPELINE_MARKER in response.text:
            log.info("East pipeline confirmed", repo=ref.slug, status_code=response.status_code)
            return LookupOutcome.POSITIVE
        log.info("East pipeline not reported", repo=ref.slug, status_code=response.status_code)
        return LookupOutcome.NEGATIVE
