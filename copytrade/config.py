from dataclasses import dataclass
from typing import Any, Mapping, Optional

from copytrade.enums import CollateralMode, RetryMode, SizingMode

@dataclass
class ReplicatorSettings:
    """Copy-trader runtime configuration."""
    vault_id: int
    module_address: str
    account_address: str                # vault manager / bot account that places mirrored orders

    retry_mode: RetryMode = RetryMode.FIXED
    retry_delay_s: float = 10.0         # fixed delay, or the base delay for exponential
    retry_max_delay_s: float = 300.0    # cap for exponential backoff
    max_retries: Optional[int] = None   # None = retry forever

    sizing_mode: SizingMode = SizingMode.MIRROR
    collateral_mode: CollateralMode = CollateralMode.FIXED_RATIO
    collateral_bps: int = 1000          # 10% of size, implicit 10x leverage

    record_all_actions: bool = True     # False = only opens reach the vault ledger


def make_settings_from_cfg(cfg: Mapping[str, Any], account_address: str = "") -> ReplicatorSettings:
    try:
        vault_cfg = cfg["vault"]
        vault_id = int(vault_cfg["id"])
        module_address = str(vault_cfg["module_address"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid cfg vault section: {e}") from e
    if not module_address:
        raise ValueError("Invalid cfg: vault.module_address is empty")

    rep = cfg.get("replicator") or {}
    retry = rep.get("retry") or {}
    sizing = rep.get("sizing") or {}
    ledger = rep.get("ledger") or {}

    max_retries = retry.get("max_retries")
    return ReplicatorSettings(
        vault_id=vault_id,
        module_address=module_address,
        account_address=account_address or str(rep.get("account_address") or ""),
        retry_mode=RetryMode(str(retry.get("mode", "fixed")).lower()),
        retry_delay_s=float(retry.get("delay_s", 10.0)),
        retry_max_delay_s=float(retry.get("max_delay_s", 300.0)),
        max_retries=int(max_retries) if max_retries not in (None, "") else None,
        sizing_mode=SizingMode(str(sizing.get("mode", "mirror")).lower()),
        collateral_mode=CollateralMode(str(sizing.get("collateral_mode", "fixed_ratio")).lower()),
        collateral_bps=int(sizing.get("collateral_bps", 1000)),
        record_all_actions=bool(ledger.get("record_all_actions", True)),
    )
