"""Async HTTP client shared by every interactor: retries, rate limits, error mapping."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

import httpx
import structlog

from depsight.core.config import Settings
from depsight.errors import DecodeError, NotFoundError, TransportError

log = structlog.get_logger("depsight.interactors")

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_MAX_RATE_LIMIT_WAIT = 60  # seconds


class HttpClient:
    """Thin async wrapper around ``httpx.AsyncClient``.

    404 becomes ``NotFoundError``; any other failure, after retrying 5xx
    responses, timeouts and GitHub rate-limit 403s with exponential backoff,
    becomes ``TransportError``.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        github_token: str | None = None,
        timeout: float = 30.0,
        retry_base_delay: float = _RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._github_token = github_token
        self._retry_base_delay = retry_base_delay
        self._client = httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> HttpClient:
        return cls(
            user_agent=settings.user_agent,
            github_token=settings.github_token,
            timeout=settings.http_timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    def github_headers(self) -> dict[str, str]:
        """Headers for api.github.com, including the token when configured."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._github_token:
            headers["Authorization"] = f"token {self._github_token}"
        return headers

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self._request_with_retry(url, params, headers)

    async def get_bytes(self, url: str, **kwargs: Any) -> bytes:
        response = await self.get(url, **kwargs)
        return response.content

    async def get_text(self, url: str, **kwargs: Any) -> str:
        content = await self.get_bytes(url, **kwargs)
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"response from {url} is not valid UTF-8") from exc

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.get(url, **kwargs)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"response from {url} is not valid JSON") from exc

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET with exponential backoff on 5xx, 403 rate-limit, and timeout errors."""
        last_error = "no attempt made"
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.get(url, params=params, headers=headers)
            except httpx.TimeoutException:
                log.warning(
                    "http.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_error = "timed out"
            except httpx.HTTPError as exc:
                raise TransportError(f"GET {url} failed: {exc}") from exc
            else:
                if resp.status_code == 404:
                    raise NotFoundError(f"not found: {url}")

                # 403 with rate-limit headers → sleep and retry
                if resp.status_code == 403 and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning(
                        "http.rate_limit",
                        url=url,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=_MAX_RETRIES,
                    )
                    await asyncio.sleep(wait)
                    last_error = "rate limit exceeded"
                    continue

                if resp.status_code < 400:
                    return resp
                if resp.status_code < 500:
                    raise TransportError(f"GET {url} returned HTTP {resp.status_code}")

                log.warning(
                    "http.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_error = f"HTTP {resp.status_code}"

            if attempt < _MAX_RETRIES - 1:
                await asyncio.sleep(self._retry_base_delay * (2**attempt))

        raise TransportError(f"GET {url} failed after {_MAX_RETRIES} attempts: {last_error}")

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for abuse rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Seconds to wait based on rate-limit headers, capped at one minute."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return min(max(int(retry_after), 1), _MAX_RATE_LIMIT_WAIT)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return min(max(int(reset_ts) - int(time.time()), 1), _MAX_RATE_LIMIT_WAIT)
            except (ValueError, TypeError):
                pass
        return _MAX_RATE_LIMIT_WAIT
