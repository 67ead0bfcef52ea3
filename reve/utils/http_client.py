from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import httpx

from .errors import AuthenticationError
from .session import ReveSession

logger = logging.getLogger("reve.http")

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=5.0)
RETRY_BACKOFF: Tuple[int, ...] = (1, 2, 4)  # seconds
RETRYABLE_EXC = (httpx.TransportError,)
CHAT_PATH = "/api/misc/chat"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"

DEFAULT_HEADERS: Dict[str, str] = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.5",
    "origin": "https://preview.reve.art",
    "referer": "https://preview.reve.art/app",
    "dnt": "1",
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-origin",
    "sec-gpc": "1",
    "te": "trailers",
    "user-agent": "ReveAI-SDK/1.0",
}


def _is_retryable_status(status_code: int) -> bool:
    return status_code >= 500


def _redact(value: str) -> str:
    return value[:25] + "..." if len(value) > 25 else value


class HttpClient:
    """
    Authenticated HTTP client for the upstream service.

    Wraps ``httpx.AsyncClient`` and adds retries on network errors and 5xx
    responses with exponential backoff, session headers on every request and
    401 handling that clears the cached session token.
    """

    def __init__(
        self,
        session: ReveSession,
        base_url: str,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        retries: int = 3,
        backoff: Tuple[int, ...] = RETRY_BACKOFF,
        custom_headers: Optional[Mapping[str, str]] = None,
        verbose: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not isinstance(timeout, httpx.Timeout):
            timeout = httpx.Timeout(timeout)
        self.session = session
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.verbose = verbose
        self.custom_headers = {k.lower(): v for k, v in (custom_headers or {}).items()}
        self._sleep = sleep

        headers = dict(DEFAULT_HEADERS)
        headers.update(self.custom_headers)
        headers["content-type"] = JSON_CONTENT_TYPE

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=self.timeout,
            headers=headers,
            follow_redirects=True,
            transport=transport,
            http2=transport is None,
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _build_headers(self, url: str, overrides: Optional[Mapping[str, str]]) -> Dict[str, str]:
        headers = self.session.auth_headers()
        headers.update(self.custom_headers)
        if url.endswith(CHAT_PATH):
            headers["content-type"] = JSON_CONTENT_TYPE
        for key, value in (overrides or {}).items():
            headers[key.lower()] = value
        return headers

    def _log_request(self, method: str, url: str, headers: Mapping[str, str], kwargs: Mapping[str, Any]) -> None:
        if not self.verbose:
            return
        shown = dict(headers)
        for key in ("authorization", "cookie"):
            if key in shown:
                shown[key] = _redact(shown[key])
        logger.debug("REQUEST %s %s headers=%s", method, url, json.dumps(shown))
        if "json" in kwargs:
            logger.debug("REQUEST body=%s", json.dumps(kwargs["json"]))
        elif "content" in kwargs:
            logger.debug("REQUEST body=%s", kwargs["content"])

    def _log_response(self, resp: httpx.Response) -> None:
        if not self.verbose:
            return
        content_type = resp.headers.get("content-type", "")
        if content_type.startswith("image/"):
            logger.debug("RESPONSE %s %s (%d bytes)", resp.status_code, content_type, len(resp.content))
        else:
            logger.debug("RESPONSE %s body=%s", resp.status_code, resp.text[:2000])

    def _check(self, resp: httpx.Response) -> httpx.Response:
        self._log_response(resp)
        if resp.status_code == 401 and self.session.has_token:
            self.session.invalidate()
            raise AuthenticationError("Authentication token expired", status_code=401)
        resp.raise_for_status()
        return resp

    async def _request(self, method: str, url: str, *, name: Optional[str] = None, **kwargs) -> httpx.Response:
        name = name or method.upper()
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.timeout

        retries = kwargs.pop("retries", self.retries)
        headers = self._build_headers(url, kwargs.pop("headers", None))
        self._log_request(method, url, headers, kwargs)

        for attempt in range(retries):
            try:
                resp = await self._client.request(method, url, headers=headers, **kwargs)
                return self._check(resp)
            except httpx.HTTPStatusError as e:
                if not _is_retryable_status(e.response.status_code):
                    raise
            except RETRYABLE_EXC as e:
                logger.debug("Transport error on %s %s: %s", name, url, e)

            delay = self.backoff[min(attempt, len(self.backoff) - 1)]
            logger.warning("Retrying %s attempt=%d delay=%ss url=%s", name, attempt + 1, delay, url)
            await self._sleep(delay)

        # last attempt, errors propagate to the caller
        resp = await self._client.request(method, url, headers=headers, **kwargs)
        return self._check(resp)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self._request("POST", url, **kwargs)


__all__ = ["HttpClient", "DEFAULT_TIMEOUT", "RETRY_BACKOFF", "DEFAULT_HEADERS"]
