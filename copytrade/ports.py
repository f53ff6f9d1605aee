from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Protocol

from copytrade.models import AccountUpdate, MarketOrderRequest, Position, TradeRecord

# Abstract ports: the replicator depends on these, not on the concrete
# Merkle / Aptos clients.

class MarketDataClient(Protocol):
    async def get_positions(self, address: str) -> List[Position]: ...
    def build_market_order_payload(self, req: MarketOrderRequest) -> Dict[str, Any]: ...
    async def get_vault_balance(self, vault_id: int, module_address: str) -> int: ...
    async def get_account_value(self, address: str) -> int: ...


class TransactionSubmitter(Protocol):
    async def submit(self, payload: Dict[str, Any]) -> str: ...


class LedgerClient(Protocol):
    async def append_trade_record(self, record: TradeRecord) -> str: ...


class FeedSession(Protocol):
    def subscribe(self, address: str) -> AsyncIterator[AccountUpdate]: ...
    async def close(self) -> None: ...


class AccountUpdateFeed(Protocol):
    async def connect(self) -> FeedSession: ...
