import logging
from typing import Optional

from copytrade.errors import AptosApiError, PayloadValidationError
from copytrade.models import EntryFunctionPayload, TradeRecord, VaultInfo
from copytrade.ports import TransactionSubmitter
from copytrade.services.endpoints import Endpoints
from copytrade.services.market_service import aptos_view
from infra import HttpPort


class VaultLedgerService:
    """
    Vault-contract ledger: appends copy-trade records via `vault::execute_trade`
    and reads vault metadata.
    """
    def __init__(self, submitter: TransactionSubmitter, aptos_http: HttpPort, endpoints: Endpoints,
                 module_address: str) -> None:
        self._submitter = submitter
        self._aptos = aptos_http
        self._ep = endpoints
        self._module = module_address
        self.log = getattr(aptos_http, "log", logging.getLogger("VaultLedgerService"))

    def build_trade_record_payload(self, record: TradeRecord) -> dict:
        payload = EntryFunctionPayload(
            function=f"{self._module}::vault::execute_trade",
            type_arguments=[],
            arguments=[
                str(record.vault_id),
                record.label(),
                str(record.amount),
                str(record.price),
                str(record.profit_amount),
                record.is_profit,
                record.memo_text(),
                self._module,
            ],
        )
        return payload.to_json()

    async def append_trade_record(self, record: TradeRecord) -> str:
        return await self._submitter.submit(self.build_trade_record_payload(record))

    async def get_vault_info(self, vault_id: int) -> Optional[VaultInfo]:
        """Vault metadata, or None when the vault does not exist / cannot be read."""
        try:
            result = await aptos_view(self._aptos, self._ep,
                                      f"{self._module}::vault::get_vault_info",
                                      [str(vault_id), self._module])
            return VaultInfo.from_payload(result[0])
        except (AptosApiError, PayloadValidationError) as e:
            self.log.error(f"Vault {vault_id} info unavailable: {e}")
            return None
