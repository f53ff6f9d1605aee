from typing import Any, Dict, Optional

from aptos_sdk.account import Account
from aptos_sdk.async_client import RestClient

from copytrade.errors import SubmissionError
from utils.logger import logger


class AptosTransactionSubmitter:
    """
    Builds, signs, broadcasts and waits for finality of entry-function payloads
    on behalf of the bot (vault manager) account.
    """

    def __init__(self, node_url: str, private_key: str, *,
                 rest_client: Optional[RestClient] = None,
                 account: Optional[Account] = None) -> None:
        self._client = rest_client or RestClient(f"{node_url.rstrip('/')}/v1")
        self._account = account or Account.load_key(private_key)

    @property
    def address(self) -> str:
        return str(self._account.address())

    async def submit(self, payload: Dict[str, Any]) -> str:
        fn = payload.get("function", "?")
        try:
            tx_hash = await self._client.submit_transaction(self._account, payload)
        except Exception as e:
            raise SubmissionError(f"submit {fn} failed: {e}") from e
        logger.debug(f"Submitted {fn} tx={tx_hash}, waiting for finality")
        try:
            await self._client.wait_for_transaction(tx_hash)
        except Exception as e:
            raise SubmissionError(f"tx {tx_hash} did not reach finality: {e}") from e
        return tx_hash

    async def close(self) -> None:
        await self._client.close()
