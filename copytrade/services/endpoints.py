from dataclasses import dataclass

from copytrade.enums import Network

@dataclass
class Endpoints:
    network: Network
    # REST / WS bases
    aptos_rest: str
    merkle_api: str
    merkle_ws: str

    # Merkle contract addresses and collateral coin
    merkle_address: str
    collateral_type: str

    # Path templates, relative to the bases above
    positions_path: str = "/v1/indexer/trading/position/{address}"
    account_value_path: str = "/v1/indexer/trading/account/{address}"
    view_path: str = "/v1/view"
    account_topic: str = "account::{address}"

    @property
    def place_order_function(self) -> str:
        return f"{self.merkle_address}::managed_trading::place_order_v3"


def make_endpoints_from_cfg(cfg: dict) -> Endpoints:
    try:
        net_str = str(cfg["network"]).lower()
        network = Network(net_str)

        aptos_rest = cfg["aptos"]["rest_base"][net_str].rstrip("/")
        merkle_cfg = cfg["merkle"]
        merkle_api = merkle_cfg["api_base"][net_str].rstrip("/")
        merkle_ws = merkle_cfg["ws"][net_str]
        merkle_address = merkle_cfg["address"][net_str]
        collateral_type = merkle_cfg.get("collateral_type") or f"{merkle_address}::fa_box::W_USDC"
        paths = merkle_cfg.get("paths") or {}

    except KeyError as e:
        raise ValueError(f"Invalid cfg missing key: {e}") from e
    except ValueError as e:
        raise ValueError(f"Invalid cfg network: {cfg.get('network')!r}") from e

    ep = Endpoints(
        network=network,
        aptos_rest=aptos_rest,
        merkle_api=merkle_api,
        merkle_ws=merkle_ws,
        merkle_address=merkle_address,
        collateral_type=collateral_type,
    )
    for key in ("positions_path", "account_value_path", "view_path", "account_topic"):
        if paths.get(key):
            setattr(ep, key, paths[key])
    return ep
