import asyncio
import signal
import sys

from utils import logger, load_cfg
from infra import HttpClientRegistry
from infra.ws_client import MerkleAccountFeed
from copytrade.config import make_settings_from_cfg
from copytrade.event_bus import EventBus, TOPIC_MONITOR_GAVE_UP, TOPIC_REPLICATION_FAILED
from copytrade.services.endpoints import make_endpoints_from_cfg
from copytrade.services.ledger_service import VaultLedgerService
from copytrade.services.market_service import MerkleMarketService
from copytrade.services.replicator import PositionReplicator
from copytrade.services.submitter import AptosTransactionSubmitter

REQUIRED = (("bot", "private_key", "BOT_PRIVATE_KEY"),
            ("vault", "module_address", "MODULE_ADDRESS"),
            ("vault", "id", "VAULT_ID"))


def missing_settings(cfg: dict) -> list[str]:
    return [env for section, key, env in REQUIRED if not str((cfg.get(section) or {}).get(key) or "").strip()]


def install_stop_handlers(replicator, stop_tasks: set) -> None:
    """SIGINT/SIGTERM schedule `replicator.stop()`; the task is held in `stop_tasks` until it finishes."""
    loop = asyncio.get_running_loop()

    def _request_stop() -> None:
        task = loop.create_task(replicator.stop())
        stop_tasks.add(task)
        task.add_done_callback(stop_tasks.discard)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop)
        except NotImplementedError:
            pass


async def main(cfg_path: str | None = None) -> int:
    cfg = load_cfg(cfg_path)
    stop_tasks: set = set()

    missing = missing_settings(cfg)
    if missing:
        logger.error("Missing required environment variables")
        logger.error(f"Please set: {', '.join(missing)}")
        return 1

    endpoints = make_endpoints_from_cfg(cfg)
    logger.info("Starting copy-trading bot...")
    logger.info(f"Network: {endpoints.network.value}")

    registry = HttpClientRegistry()
    aptos_http = registry.add("aptos", endpoints.aptos_rest, cfg, logger)
    merkle_http = registry.add("merkle", endpoints.merkle_api, cfg, logger)

    submitter = AptosTransactionSubmitter(endpoints.aptos_rest, cfg["bot"]["private_key"])
    settings = make_settings_from_cfg(cfg, account_address=submitter.address)
    logger.info(f"Module Address: {settings.module_address}")
    logger.info(f"Vault ID: {settings.vault_id}")
    logger.info(f"Bot Address: {settings.account_address}")

    market = MerkleMarketService(merkle_http, aptos_http, endpoints)
    ledger = VaultLedgerService(submitter, aptos_http, endpoints, settings.module_address)

    try:
        logger.info("Fetching vault information...")
        vault = await ledger.get_vault_info(settings.vault_id)
        if vault is None:
            logger.error("Vault not found")
            return 1

        logger.info(f"Lead Trader: {vault.lead_trader}")
        logger.info(f"Vault Total Value: {vault.total_value / 1e8} APT")
        logger.info(f"Strategy: {vault.strategy}")

        bus = EventBus()
        bus.subscribe(TOPIC_REPLICATION_FAILED,
                      lambda ev: logger.warning(f"[drift] {ev['stage']} {ev['action']} {ev['pair_type']}: {ev['error']}"))
        bus.subscribe(TOPIC_MONITOR_GAVE_UP, lambda ev: logger.critical(f"[monitor] gave up: {ev}"))

        feed = MerkleAccountFeed(endpoints.merkle_ws,
                                 topic_template=endpoints.account_topic,
                                 ping_interval=int((cfg.get("timeouts") or {}).get("ws_ping_s", 20)))
        replicator = PositionReplicator(market, submitter, ledger, feed, vault.lead_trader, settings,
                                        event_bus=bus)

        install_stop_handlers(replicator, stop_tasks)

        logger.info("Starting WebSocket monitoring...")
        await replicator.start_monitoring()
        logger.info("Shutting down bot...")
        return 0
    finally:
        if stop_tasks:
            await asyncio.gather(*stop_tasks, return_exceptions=True)
        await submitter.close()
        await registry.close_all()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None)))
