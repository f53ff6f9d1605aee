from typing import Optional

from copytrade.enums import CollateralMode, SizingMode
from copytrade.errors import SizingError

BPS = 10_000


def calculate_proportional_size(leader_size: int, vault_value: int,
                                leader_value: Optional[int] = None,
                                mode: SizingMode = SizingMode.MIRROR) -> int:
    """
    Mirrored size for a lead-trader size.

    MIRROR copies the lead size 1:1. PROPORTIONAL scales it by the vault's
    capital relative to the lead account's capital:

        mirrored = leader_size * vault_value // leader_value

    Integer floor division, so the vault never over-sizes by rounding.
    """
    if leader_size < 0:
        raise SizingError(f"leader size must be non-negative, got {leader_size}")
    if mode is SizingMode.MIRROR:
        return leader_size
    if vault_value < 0:
        raise SizingError(f"vault value must be non-negative, got {vault_value}")
    if leader_value is None or leader_value <= 0:
        raise SizingError(f"lead account value must be positive, got {leader_value}")
    return leader_size * vault_value // leader_value


def collateral_for(size: int, *, mode: CollateralMode = CollateralMode.FIXED_RATIO,
                   collateral_bps: int = 1000,
                   leader_size: int = 0, leader_collateral: int = 0) -> int:
    if mode is CollateralMode.MATCH_LEADER and leader_size > 0:
        return size * leader_collateral // leader_size
    return size * collateral_bps // BPS
