import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
import pytest_asyncio

from copytrade.config import ReplicatorSettings
from copytrade.enums import Network
from copytrade.services.endpoints import Endpoints
from infra.http_client import HttpClient

BASE = "https://api.testnet.merkle.trade"


@pytest.fixture
def settings():
    return ReplicatorSettings(vault_id=7, module_address="0xmod", account_address="0xvault")


@pytest.fixture
def endpoints():
    return Endpoints(
        network=Network.TESTNET,
        aptos_rest="https://api.testnet.aptoslabs.com",
        merkle_api=BASE,
        merkle_ws="wss://api.testnet.merkle.trade/v1",
        merkle_address="0xmerkle",
        collateral_type="0xmerkle::fa_box::W_USDC",
    )


@pytest_asyncio.fixture
async def http_client():
    """HttpClient as an async context manager; the session is closed after each test."""
    cfg = {"timeouts": {"rest_ms": 2000}, "retries": {"rest_max_attempts": 3, "backoff_ms": 1}}
    async with HttpClient(BASE, cfg) as client:
        yield client
