import logging
from typing import Any, Dict, List

from copytrade.errors import AptosApiError, MerkleApiError, PayloadValidationError, VaultReadError
from copytrade.models import EntryFunctionPayload, MarketOrderRequest, Position, parse_int
from copytrade.services.endpoints import Endpoints
from infra import HttpPort
from infra.http_client import HttpError

U64_MAX = 2**64 - 1


async def aptos_view(http: HttpPort, endpoints: Endpoints, function: str, arguments: List[Any]) -> List[Any]:
    """POST /v1/view for a Move view function; returns the JSON result list."""
    body = {"function": function, "type_arguments": [], "arguments": arguments}
    try:
        result = await http.post_json(endpoints.view_path, body)
    except HttpError as e:
        payload = e.payload if isinstance(e.payload, dict) else {}
        raise AptosApiError(str(payload.get("error_code") or e.status),
                            str(payload.get("message") or e)) from e
    if not isinstance(result, list) or not result:
        raise PayloadValidationError("view returned no values", function=function, got=repr(result)[:128])
    return result


class MerkleMarketService:
    """
    Lead-trader position reads (Merkle indexer), market-order payload construction,
    and vault / account valuation reads.
    """
    def __init__(self, merkle_http: HttpPort, aptos_http: HttpPort, endpoints: Endpoints) -> None:
        self._merkle = merkle_http
        self._aptos = aptos_http
        self._ep = endpoints
        self.log = getattr(merkle_http, "log", logging.getLogger("MerkleMarketService"))

    async def get_positions(self, address: str) -> List[Position]:
        path = self._ep.positions_path.format(address=address)
        try:
            resp = await self._merkle.get_json(path)
        except HttpError as e:
            raise MerkleApiError(str(e.status), f"positions query failed for {address}: {e}") from e

        raw_list = resp.get("positions", resp.get("data")) if isinstance(resp, dict) else resp
        if not isinstance(raw_list, list):
            raise PayloadValidationError("positions response is not a list", got=type(raw_list).__name__)

        positions: List[Position] = []
        seen = set()
        for it in raw_list:
            pos = Position.from_payload(it)
            # Closed positions can linger in the indexer with zero size
            if pos.size == 0:
                continue
            if pos.pair_type in seen:
                raise PayloadValidationError("duplicate position for pair", pair_type=pos.pair_type)
            seen.add(pos.pair_type)
            positions.append(pos)
        return positions

    def build_market_order_payload(self, req: MarketOrderRequest) -> Dict[str, Any]:
        # Market bound: buying accepts any price, selling accepts down to zero
        is_buy = req.is_long == req.is_increase
        price = U64_MAX if is_buy else 0
        payload = EntryFunctionPayload(
            function=self._ep.place_order_function,
            type_arguments=[req.pair_type, self._ep.collateral_type],
            arguments=[
                req.account_address,
                str(req.size_delta),
                str(req.collateral_delta),
                str(price),
                req.is_long,
                req.is_increase,
                True,               # is_market
                "0",                # stop_loss_trigger_price
                "0",                # take_profit_trigger_price
                is_buy,             # can_execute_above_price
                "0x0",              # referrer
            ],
        )
        return payload.to_json()

    async def get_vault_balance(self, vault_id: int, module_address: str) -> int:
        try:
            result = await aptos_view(self._aptos, self._ep,
                                      f"{module_address}::vault::get_vault_balance",
                                      [str(vault_id), module_address])
            return parse_int({"balance": result[0]}, "balance")
        except (AptosApiError, PayloadValidationError) as e:
            raise VaultReadError(f"vault {vault_id} balance read failed: {e}") from e

    async def get_account_value(self, address: str) -> int:
        path = self._ep.account_value_path.format(address=address)
        try:
            resp = await self._merkle.get_json(path)
        except HttpError as e:
            raise MerkleApiError(str(e.status), f"account value query failed for {address}: {e}") from e
        if not isinstance(resp, dict):
            raise PayloadValidationError("account response is not an object", got=type(resp).__name__)
        return parse_int(resp, "totalValue", "equity", "balance")
