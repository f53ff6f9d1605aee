from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Mapping, Any, Optional, Dict

from infra.http_client import HttpClient

# ========== 1) Abstract port: services depend on this, not on HttpClient ==========
class HttpPort(Protocol):
    async def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any: ...
    async def post_json(self, path: str, json_body: Any) -> Any: ...


# ========== 2) Named client registry: one client per remote base URL ==========
class HttpClientRegistry:
    """
    Keeps one HttpClient per name (e.g. "aptos", "merkle") and closes them together.
    The composition root owns it and injects registry.get(name) into services.
    """
    def __init__(self) -> None:
        self._clients: Dict[str, HttpClient] = {}

    def add(self, name: str,
            base_url: str,
            cfg: Optional[Mapping[str, Any]] = None,
            logger: Optional[logging.Logger] = None,
            ) -> HttpClient:
        if name in self._clients:
            return self._clients[name]
        cli = HttpClient(base_url, cfg, logger=logger, name=name)
        self._clients[name] = cli
        return cli

    def get(self, name: str) -> HttpClient:
        return self._clients[name]

    async def close_all(self) -> None:
        await asyncio.gather(*(c.close() for c in self._clients.values()), return_exceptions=True)
        self._clients.clear()
