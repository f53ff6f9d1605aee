import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Dict, Optional

from copytrade.config import ReplicatorSettings
from copytrade.enums import SizingMode, TradeAction
from copytrade.errors import FeedError, VaultReadError
from copytrade.event_bus import (
    EventBus,
    TOPIC_MONITOR_GAVE_UP,
    TOPIC_MONITOR_RESTARTING,
    TOPIC_REPLICATION_FAILED,
    TOPIC_REPLICATION_OK,
)
from copytrade.models import MarketOrderRequest, Position, TradeRecord
from copytrade.ports import AccountUpdateFeed, FeedSession, LedgerClient, MarketDataClient, TransactionSubmitter
from copytrade.retry import RetryPolicy
from copytrade.sizing import calculate_proportional_size, collateral_for
from copytrade.stores.position_store import PositionStore
from utils.logger import logger


def _usdc(amount: int) -> str:
    return f"{amount / 1e6:,.2f} USDC"


def _side(is_long: bool) -> str:
    return "LONG" if is_long else "SHORT"


class PositionReplicator:
    """
    Mirrors a lead trader's perpetual positions into a vault account.

    Every feed notification triggers a full re-read of the lead account, which
    is diffed against the last-known snapshot:
      - pair not in snapshot        -> open the same position on the vault
      - pair in snapshot, size moved -> increase/decrease by the size delta
      - snapshot pair no longer open -> close the mirrored position

    Notifications are handled one at a time from a single loop, so the snapshot
    is only ever touched by one coroutine. Nothing raised by collaborators
    escapes `start_monitoring()`; failures are logged and published on the
    event bus, and the loop moves on.
    """

    def __init__(self,
                 market: MarketDataClient,
                 submitter: TransactionSubmitter,
                 ledger: LedgerClient,
                 feed: AccountUpdateFeed,
                 lead_trader: str,
                 settings: ReplicatorSettings,
                 *,
                 event_bus: Optional[EventBus] = None,
                 sleep: Optional[Callable[[float], Awaitable[None]]] = None,
                 ) -> None:
        self._market = market
        self._submitter = submitter
        self._ledger = ledger
        self._feed = feed
        self._lead = lead_trader
        self._settings = settings
        self._bus = event_bus or EventBus()
        self._sleep = sleep or self._interruptible_sleep

        self._store = PositionStore()
        self._monitoring = False
        self._restart_pending = False
        self._stop_evt = asyncio.Event()
        self._session: Optional[FeedSession] = None
        self._failures = 0
        self._retry = RetryPolicy(
            mode=settings.retry_mode,
            delay_s=settings.retry_delay_s,
            max_delay_s=settings.retry_max_delay_s,
            max_retries=settings.max_retries,
        )

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    @property
    def lead_trader(self) -> str:
        return self._lead

    @property
    def last_known_positions(self) -> Dict[str, Position]:
        return {p.pair_type: p for p in self._store.list_all()}

    # ---- lifecycle ----------------------------------------------------------------

    async def start_monitoring(self) -> None:
        """
        Run the monitoring loop until `stop()` is called or the task is cancelled.
        A second call while a loop is active is a no-op.
        """
        if self._monitoring or self._restart_pending:
            logger.warning(f"Already monitoring lead trader {self._lead}")
            return

        self._stop_evt.clear()
        self._failures = 0
        try:
            while not self._stop_evt.is_set():
                self._monitoring = True
                logger.info(f"Monitoring lead trader: {self._lead}")
                try:
                    await self._run_session()
                    break
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._monitoring = False
                    if self._stop_evt.is_set():
                        break
                    self._failures += 1
                    logger.error(f"Account feed error: {type(e).__name__}: {e}")
                    if self._retry.exhausted(self._failures):
                        logger.error(f"Giving up on lead trader {self._lead} after {self._failures} failures")
                        self._bus.publish(TOPIC_MONITOR_GAVE_UP, {
                            "lead_trader": self._lead, "failures": self._failures, "error": str(e),
                        })
                        break
                    delay = self._retry.delay(self._failures)
                    logger.info(f"Retrying in {delay:.1f} seconds...")
                    self._bus.publish(TOPIC_MONITOR_RESTARTING, {
                        "lead_trader": self._lead, "attempt": self._failures, "delay_s": delay, "error": str(e),
                    })
                    self._restart_pending = True
                    try:
                        await self._sleep(delay)
                    finally:
                        self._restart_pending = False
        finally:
            self._monitoring = False
            self._store.clear()
            logger.info(f"Stopped monitoring lead trader {self._lead}")

    async def stop(self) -> None:
        """Ask the monitoring loop to finish and close the live feed session."""
        self._stop_evt.set()
        session = self._session
        if session is not None:
            await session.close()

    async def _interruptible_sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_evt.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _run_session(self) -> None:
        session = await self._feed.connect()
        self._session = session
        logger.info("Connected to account feed")
        try:
            if self._stop_evt.is_set():
                return
            await self.sync_initial_positions()
            logger.info(f"Subscribing to account feed for {self._lead}")
            async with contextlib.aclosing(session.subscribe(self._lead)) as updates:
                async for update in updates:
                    # The feed delivered, so the restart budget starts over
                    self._failures = 0
                    await self.handle_account_update(update)
                    if self._stop_evt.is_set():
                        break
        finally:
            self._session = None
            await session.close()
        if not self._stop_evt.is_set():
            raise FeedError("account feed ended")

    # ---- snapshot & diff ----------------------------------------------------------

    async def sync_initial_positions(self) -> None:
        """Baseline snapshot of the lead account. Positions already open are not mirrored."""
        logger.info("Syncing initial positions...")
        try:
            positions = await self._market.get_positions(self._lead)
        except Exception:
            logger.exception("Error syncing positions")
            return

        self._store.replace_all(positions)
        logger.info(f"Found {len(positions)} open positions")
        for p in positions:
            logger.info(f"  {p.pair}: {_side(p.is_long)} {_usdc(p.size)}")

    async def handle_account_update(self, update: Any) -> None:
        kind = getattr(update, "type", None) or (update.get("type") if isinstance(update, dict) else None)
        logger.info(f"Account update received: {kind}")

        try:
            current = await self._market.get_positions(self._lead)
            open_pairs = set()

            for pos in current:
                open_pairs.add(pos.pair_type)
                last = self._store.get(pos.pair_type)

                if last is None:
                    logger.info(f"NEW POSITION: {pos.pair} {_side(pos.is_long)}")
                    await self.replicate_position(pos)
                elif last.size != pos.size:
                    logger.info(f"POSITION MODIFIED: {pos.pair} {_usdc(last.size)} -> {_usdc(pos.size)}")
                    await self.replicate_position_change(last, pos)

                self._store.upsert(pos)

            for pair_type in self._store.pairs():
                if pair_type in open_pairs:
                    continue
                last = self._store.get(pair_type)
                logger.info(f"POSITION CLOSED: {last.pair}")
                await self.close_position(last)
                self._store.remove(pair_type)
        except Exception:
            logger.exception("Error handling account update")

    # ---- replication actions ------------------------------------------------------

    async def replicate_position(self, position: Position) -> None:
        logger.info(f"Replicating position: {position.pair} {_side(position.is_long)}")
        try:
            size = await self._mirrored_size(position.size)
            logger.info(f"  Lead trader size: {_usdc(position.size)}, vault size: {_usdc(size)}")
            if size <= 0:
                self._skip(TradeAction.OPEN, position)
                return

            collateral = self._collateral(size, position)
            tx_hash = await self._submit_order(MarketOrderRequest(
                pair_type=position.pair_type,
                account_address=self._settings.account_address,
                size_delta=size,
                collateral_delta=collateral,
                is_long=position.is_long,
                is_increase=True,
            ))
            logger.info(f"  Position replicated! Tx: {tx_hash}")
            self._publish_ok(TradeAction.OPEN, position, size, tx_hash)
        except Exception as e:
            logger.exception("Error replicating position")
            self._publish_failed(TradeAction.OPEN, position, e)
            return

        await self._record(TradeAction.OPEN, position, size)

    async def replicate_position_change(self, old: Position, new: Position) -> None:
        size_delta = new.size - old.size
        is_increase = size_delta > 0
        action = TradeAction.INCREASE if is_increase else TradeAction.DECREASE
        logger.info(f"Replicating position change: {new.pair} {'+' if is_increase else ''}{_usdc(size_delta)}")

        try:
            size = await self._mirrored_size(abs(size_delta))
            if size <= 0:
                self._skip(action, new)
                return

            collateral = self._collateral(size, new)
            tx_hash = await self._submit_order(MarketOrderRequest(
                pair_type=new.pair_type,
                account_address=self._settings.account_address,
                size_delta=size,
                collateral_delta=collateral,
                is_long=new.is_long,
                is_increase=is_increase,
            ))
            logger.info(f"  Position change replicated! Tx: {tx_hash}")
            self._publish_ok(action, new, size, tx_hash)
        except Exception as e:
            logger.exception("Error replicating position change")
            self._publish_failed(action, new, e)
            return

        if self._settings.record_all_actions:
            await self._record(action, new, size)

    async def close_position(self, position: Position) -> None:
        logger.info(f"Closing position: {position.pair}")
        try:
            # Stored lead amounts, unscaled; the exchange caps a decrease at the open size
            tx_hash = await self._submit_order(MarketOrderRequest(
                pair_type=position.pair_type,
                account_address=self._settings.account_address,
                size_delta=position.size,
                collateral_delta=position.collateral,
                is_long=position.is_long,
                is_increase=False,
            ))
            logger.info(f"  Position closed! Tx: {tx_hash}")
            self._publish_ok(TradeAction.CLOSE, position, position.size, tx_hash)
        except Exception as e:
            logger.exception("Error closing position")
            self._publish_failed(TradeAction.CLOSE, position, e)
            return

        if self._settings.record_all_actions:
            await self._record(TradeAction.CLOSE, position, position.size)

    # ---- sizing -------------------------------------------------------------------

    def calculate_proportional_size(self, leader_size: int, vault_value: int,
                                    leader_value: Optional[int] = None) -> int:
        return calculate_proportional_size(leader_size, vault_value, leader_value,
                                           mode=self._settings.sizing_mode)

    async def get_vault_total_value(self) -> int:
        """Vault valuation. Raises VaultReadError instead of reporting a failed read as zero."""
        try:
            return await self._market.get_vault_balance(self._settings.vault_id, self._settings.module_address)
        except VaultReadError:
            raise
        except Exception as e:
            raise VaultReadError(f"vault {self._settings.vault_id} value read failed: {e}") from e

    async def _mirrored_size(self, leader_size: int) -> int:
        if self._settings.sizing_mode is SizingMode.MIRROR:
            return self.calculate_proportional_size(leader_size, vault_value=0)
        vault_value = await self.get_vault_total_value()
        leader_value = await self._market.get_account_value(self._lead)
        return self.calculate_proportional_size(leader_size, vault_value, leader_value)

    def _collateral(self, size: int, lead: Position) -> int:
        return collateral_for(
            size,
            mode=self._settings.collateral_mode,
            collateral_bps=self._settings.collateral_bps,
            leader_size=lead.size,
            leader_collateral=lead.collateral,
        )

    # ---- submission, ledger, events -----------------------------------------------

    async def _submit_order(self, req: MarketOrderRequest) -> str:
        payload = self._market.build_market_order_payload(req)
        return await self._submitter.submit(payload)

    async def _record(self, action: TradeAction, position: Position, amount: int) -> None:
        record = TradeRecord(
            vault_id=self._settings.vault_id,
            action=action,
            pair_type=position.pair_type,
            amount=amount,
            price=position.entry_price,
            profit_amount=0,
            is_profit=True,
        )
        try:
            tx_hash = await self._ledger.append_trade_record(record)
            logger.info(f"  Trade recorded in vault {self._settings.vault_id}: {record.label()} tx={tx_hash}")
        except Exception as e:
            logger.exception("Error recording trade in vault")
            self._bus.publish(TOPIC_REPLICATION_FAILED, {
                "stage": "ledger", "action": action.value, "pair_type": position.pair_type,
                "lead_trader": self._lead, "error": str(e),
            })

    def _skip(self, action: TradeAction, position: Position) -> None:
        logger.warning(f"  Mirrored size is zero for {position.pair}, {action.value} skipped")
        self._bus.publish(TOPIC_REPLICATION_FAILED, {
            "stage": "sizing", "action": action.value, "pair_type": position.pair_type,
            "lead_trader": self._lead, "error": "zero mirrored size",
        })

    def _publish_ok(self, action: TradeAction, position: Position, size: int, tx_hash: str) -> None:
        self._bus.publish(TOPIC_REPLICATION_OK, {
            "action": action.value, "pair_type": position.pair_type, "size": size,
            "lead_trader": self._lead, "tx_hash": tx_hash,
        })

    def _publish_failed(self, action: TradeAction, position: Position, err: Exception) -> None:
        self._bus.publish(TOPIC_REPLICATION_FAILED, {
            "stage": "order", "action": action.value, "pair_type": position.pair_type,
            "lead_trader": self._lead, "error": f"{type(err).__name__}: {err}",
        })
