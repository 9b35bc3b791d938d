"""Async GitHub REST client: page-number pagination, retries, rate limits, deadlines."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import AsyncGenerator, Mapping
from typing import Any

import httpx
import structlog

from repowatch.engines.pr_sync.payloads import GitHubPayloadError

log = structlog.get_logger("repowatch.engine")

_MAX_ATTEMPTS = 3
_BACKOFF_BASE = 1.0  # seconds, doubled per attempt
_DEFAULT_PER_PAGE = 100
_FALLBACK_WAIT = 60  # seconds, when GitHub gives no reset hint


class RateLimitError(Exception):
    """Raised when GitHub keeps rate limiting us after every retry."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


def _header_int(headers: Mapping[str, str], name: str) -> int | None:
    try:
        return int(headers[name])
    except (KeyError, TypeError, ValueError):
        return None


def rate_limit_wait(headers: Mapping[str, str]) -> int:
    """Seconds to wait before GitHub accepts requests again (at least 1).

    ``Retry-After`` (secondary limits) wins over ``X-RateLimit-Reset``.
    """
    retry_after = _header_int(headers, "Retry-After")
    if retry_after is not None:
        return max(retry_after, 1)
    reset_at = _header_int(headers, "X-RateLimit-Reset")
    if reset_at is not None:
        return max(reset_at - int(time.time()), 1)
    return _FALLBACK_WAIT


def is_rate_limited(response: httpx.Response) -> bool:
    """True for a 403 caused by the primary or a secondary rate limit."""
    if response.status_code != 403:
        return False
    remaining = _header_int(response.headers, "X-RateLimit-Remaining")
    if remaining is not None:
        return remaining == 0
    return "Retry-After" in response.headers


class GitHubClient:
    """Async wrapper around the GitHub REST API, one per access token.

    *deadline* bounds every single HTTP call end to end (connect, upload,
    server think time, download); expiry is treated like a transport
    timeout and retried.
    """

    def __init__(self, token: str | None = None, *, deadline: float | None = None) -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"Bearer {resolved_token}"
        if deadline is None:
            deadline = float(os.environ.get("REPOWATCH_GITHUB_DEADLINE", "30"))
        self._deadline = deadline
        self._client = httpx.AsyncClient(
            base_url="https://api.github.com",
            headers=headers,
            timeout=deadline,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── endpoints ──────────────────────────────────────────────────────────

    async def get_repo(self, owner: str, name: str) -> dict[str, Any]:
        """GET /repos/{owner}/{name}"""
        return await self.get(f"/repos/{owner}/{name}")

    async def list_pull_requests(
        self, owner: str, name: str, *, state: str = "all"
    ) -> list[dict[str, Any]]:
        """GET /repos/{owner}/{name}/pulls, every page."""
        path = f"/repos/{owner}/{name}/pulls"
        return [item async for item in self.get_pages(path, {"state": state})]

    async def get_pull_request(self, owner: str, name: str, number: int) -> dict[str, Any]:
        """GET /repos/{owner}/{name}/pulls/{number}; the only PR endpoint with diff stats."""
        return await self.get(f"/repos/{owner}/{name}/pulls/{number}")

    # ── generic ────────────────────────────────────────────────────────────

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Single GET returning parsed JSON."""
        response = await self._request_with_retry(path, params)
        await self._check_rate_limit(response)
        return response.json()

    async def get_pages(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        per_page: int = _DEFAULT_PER_PAGE,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield items of a page-numbered list endpoint.

        Requests ``page=1, 2, ...`` until a page holds fewer than *per_page*
        items, so a long list is never cut off.
        """
        query = {**(params or {}), "per_page": per_page}
        page = 1
        while True:
            query["page"] = page
            data = await self.get(path, query)
            if not isinstance(data, list):
                raise GitHubPayloadError(path, f"expected a JSON list, got {type(data).__name__}")
            for item in data:
                yield item
            if len(data) < per_page:
                return
            page += 1

    # ── transport ──────────────────────────────────────────────────────────

    async def _request_with_retry(
        self, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        """GET with up to three attempts.

        Retried: 5xx, transport timeouts, deadline expiry, rate-limited 403.
        Any other 4xx raises ``httpx.HTTPStatusError`` at once.
        """
        error: Exception | None = None
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                response = await asyncio.wait_for(
                    self._client.get(path, params=params), timeout=self._deadline
                )
            except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
                log.warning("github.timeout", path=path, attempt=attempt)
                error = (
                    exc
                    if isinstance(exc, httpx.TimeoutException)
                    else httpx.TimeoutException(f"no response from {path} within {self._deadline}s")
                )
            else:
                if is_rate_limited(response):
                    wait = rate_limit_wait(response.headers)
                    log.warning("github.rate_limit", path=path, wait_seconds=wait, attempt=attempt)
                    await asyncio.sleep(wait)
                    error = RateLimitError(wait)
                    continue
                if response.status_code < 500:
                    response.raise_for_status()
                    return response
                log.warning(
                    "github.server_error",
                    path=path,
                    status=response.status_code,
                    attempt=attempt,
                )
                error = httpx.HTTPStatusError(
                    f"{response.status_code} from {path}",
                    request=response.request,
                    response=response,
                )

            if attempt < _MAX_ATTEMPTS:
                await asyncio.sleep(_BACKOFF_BASE * 2 ** (attempt - 1))

        assert error is not None
        raise error

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Sleep until the window resets when this response used the last request."""
        if _header_int(response.headers, "X-RateLimit-Remaining") == 0:
            wait = rate_limit_wait(response.headers)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)
