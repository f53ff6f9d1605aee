from utils.logger import logger
import contextlib
import asyncio, json
import websockets
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional
from websockets.exceptions import ConnectionClosed, InvalidStatus

from copytrade.errors import FeedError
from copytrade.models import AccountUpdate

Json = Dict[str, Any]

# Control frames that carry no account activity
_CONTROL_TYPES = {"subscribed", "unsubscribed", "pong", "ack", "welcome"}


class MerkleFeedSession:
    """
    One live websocket connection to the Merkle account feed.
    Reconnection is not handled here; the replicator restarts the whole session.
    """

    def __init__(self, ws, *, topic_template: str = "account::{address}",
                 ping_interval: int = 20, name: str = "") -> None:
        self._ws = ws
        self._topic_template = topic_template
        self._ping_interval = ping_interval
        self._name = name
        self._closing = False

    async def _heartbeat(self):
        while not self._closing:
            await asyncio.sleep(self._ping_interval)
            try:
                await self._ws.send(json.dumps({"type": "ping"}))
            except Exception:
                return

    async def subscribe(self, address: str) -> AsyncIterator[AccountUpdate]:
        topic = self._topic_template.format(address=address)
        logger.info(f"WS {self._name} subscribe request topic={topic}")
        try:
            await self._ws.send(json.dumps({"type": "subscribe", "topic": topic}))
        except ConnectionClosed as e:
            raise FeedError(f"feed closed before subscribe: {e}") from e

        hb = asyncio.create_task(self._heartbeat()) if self._ping_interval > 0 else None
        try:
            async for msg in self._ws:
                if isinstance(msg, bytes):
                    msg = msg.decode("utf-8", errors="replace")
                m = msg.strip().lower()
                if m in ("ping", "pong"):
                    if m == "ping":
                        with contextlib.suppress(Exception):
                            await self._ws.send("pong")
                    continue

                try:
                    data = json.loads(msg)
                except json.JSONDecodeError:
                    logger.debug(f"WS {self._name} non-json frame dropped: {msg[:128]}")
                    continue
                if not isinstance(data, dict):
                    continue

                kind = str(data.get("type", "")).lower()
                if kind == "ping":
                    with contextlib.suppress(Exception):
                        await self._ws.send(json.dumps({"type": "pong"}))
                    continue
                if kind == "error":
                    raise FeedError(f"feed error event: {data}")
                if kind in _CONTROL_TYPES:
                    logger.info(f"WS {self._name} event: {kind}")
                    continue

                yield AccountUpdate.from_message(data)
        except ConnectionClosed as e:
            if not self._closing:
                raise FeedError(f"feed connection closed: {type(e).__name__} ({e})") from e
        finally:
            if hb:
                hb.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await hb

        if not self._closing:
            raise FeedError("feed stream ended")

    async def close(self) -> None:
        self._closing = True
        with contextlib.suppress(Exception):
            await self._ws.close()
        logger.info(f"WS {self._name} close: websocket closed")


class MerkleAccountFeed:
    """Factory for feed sessions against the Merkle websocket API."""

    def __init__(self, url: str, *, topic_template: str = "account::{address}",
                 ping_interval: int = 20, open_timeout_s: float = 10.0,
                 connector: Optional[Callable[[str], Awaitable[Any]]] = None) -> None:
        self.url = url
        self.topic_template = topic_template
        self.ping_interval = ping_interval
        self.open_timeout_s = open_timeout_s
        self._connector = connector or self._default_connect
        logger.info(f"MerkleAccountFeed init url={url} ping_interval={ping_interval}s")

    async def _default_connect(self, url: str):
        return await websockets.connect(url, ping_interval=None, close_timeout=10,
                                        open_timeout=self.open_timeout_s)

    async def connect(self) -> MerkleFeedSession:
        logger.info(f"WS connect: connecting to {self.url}")
        try:
            ws = await self._connector(self.url)
        except InvalidStatus as e:
            code = getattr(e, "status_code", None) or getattr(getattr(e, "response", None), "status_code", None)
            raise FeedError(f"handshake rejected: HTTP {code}") from e
        except (OSError, asyncio.TimeoutError) as e:
            raise FeedError(f"connect failed: {type(e).__name__} ({e})") from e
        logger.info("WS connect: connected")
        return MerkleFeedSession(ws, topic_template=self.topic_template,
                                 ping_interval=self.ping_interval, name="merkle")
