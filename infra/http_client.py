from __future__ import annotations

import aiohttp
import asyncio
import json
import random
from typing import Any, Mapping, Optional
from urllib.parse import urlencode
import logging
from utils.logger import logger

JSON_SEPARATORS = (",", ":")
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
NETWORK_ERROR_STATUS = 599


class HttpError(Exception):
    """Non-2xx answer or transport failure. `payload` is the decoded error body when there is one."""
    def __init__(self, status: int, message: str, payload: Optional[Any] = None):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.payload = payload if payload is not None else {}


def _encode_body(obj: Any) -> Optional[str]:
    if obj is None:
        return None
    return json.dumps(obj, separators=JSON_SEPARATORS, ensure_ascii=False)


def _with_query(url: str, params: Optional[Mapping[str, Any]]) -> str:
    if not params:
        return url
    return f"{url}?{urlencode(params, doseq=True, safe=':/')}"


def _decode_error(text: str) -> Any:
    try:
        return json.loads(text) if text else {}
    except json.JSONDecodeError:
        return {"raw": text}


class HttpClient:
    """
    JSON-over-HTTP client shared by the Merkle indexer and the Aptos node REST API.
    Retries 5xx/429 and network errors with exponential backoff plus jitter;
    other 4xx answers raise HttpError immediately with the decoded error body.
    """
    def __init__(self,
                 base_url: str,
                 cfg: Optional[Mapping[str, Any]] = None,
                 logger: Optional[logging.Logger] = None,
                 *,
                 name: str = "",
                 timeout_ms: Optional[int] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 ) -> None:
        cfg = cfg or {}
        self.base_url = base_url.rstrip("/")
        self.name = name or self.base_url
        self.log = logger or logging.getLogger("HttpClient")
        self.session = session
        self._owned_session = session is None

        timeouts_cfg = cfg.get("timeouts", {}) or {}
        retries_cfg = cfg.get("retries", {}) or {}
        self.timeout_ms = int(timeout_ms or timeouts_cfg.get("rest_ms", 5000))
        self.max_attempts = max(1, int(retries_cfg.get("rest_max_attempts", 3)))
        self.backoff_ms = int(retries_cfg.get("backoff_ms", 200))

        self.log.debug(f"HttpClient[{self.name}] base_url={self.base_url} timeout_ms={self.timeout_ms} "
                       f"max_attempts={self.max_attempts}")

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0),
                raise_for_status=False,
                trust_env=True,
            )
            self._owned_session = True
        return self.session

    async def __aenter__(self) -> "HttpClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owned_session and self.session is not None and not self.session.closed:
            await self.session.close()

    async def request(
            self,
            method: str,
            path: str,
            *,
            params: Optional[Mapping[str, Any]] = None,
            json_body: Optional[Any] = None,
            headers: Optional[Mapping[str, str]] = None,
            timeout_ms: Optional[int] = None,
            retry: bool = True,
        ) -> Any:
        """
        Send one JSON request and return the decoded document (object or array).

        `path` is appended to base_url and must start with "/". With `retry`,
        429/5xx answers and transport errors are retried up to `max_attempts`.
        """
        assert path.startswith("/"), "path must start with /"
        method = method.upper()
        url = _with_query(self.base_url + path, params)
        body = _encode_body(json_body)
        req_headers = {"Content-Type": "application/json", "Accept": "application/json", **(headers or {})}
        per_call_timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000.0) if timeout_ms else None
        session = self._ensure_session()

        attempt = 0
        while True:
            attempt += 1
            can_retry = retry and attempt < self.max_attempts
            try:
                async with session.request(method, url, data=body, headers=req_headers,
                                           timeout=per_call_timeout) as resp:
                    status, text = resp.status, await resp.text()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if can_retry:
                    logger.warning(f"[{self.name}] {method} {path} network error: {e}, "
                                   f"retry {attempt}/{self.max_attempts - 1}")
                    await self._sleep_backoff(attempt)
                    continue
                raise HttpError(NETWORK_ERROR_STATUS, f"Network error: {e}") from e

            if status < 400:
                try:
                    return json.loads(text) if text else {}
                except json.JSONDecodeError:
                    raise HttpError(status, f"invalid json: {text[:256]}")

            if status in RETRYABLE_STATUS and can_retry:
                logger.warning(f"[{self.name}] {method} {path} -> {status}, "
                               f"retry {attempt}/{self.max_attempts - 1}")
                await self._sleep_backoff(attempt)
                continue
            raise HttpError(status, text[:256], _decode_error(text))

    async def _sleep_backoff(self, attempt: int) -> None:
        delay_ms = self.backoff_ms * (2 ** (attempt - 1)) + random.randint(0, self.backoff_ms)
        await asyncio.sleep(delay_ms / 1000.0)

    async def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post_json(self, path: str, json_body: Any) -> Any:
        return await self.request("POST", path, json_body=json_body)
