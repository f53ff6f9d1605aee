from enum import Enum

class Network(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"

class Direction(Enum):
    LONG = "long"
    SHORT = "short"

class TradeAction(Enum):
    OPEN = "open"
    INCREASE = "increase"
    DECREASE = "decrease"
    CLOSE = "close"

class SizingMode(Enum):
    MIRROR = "mirror"              # 1:1 absolute copy of the lead size
    PROPORTIONAL = "proportional"  # lead size * vault value / lead account value

class CollateralMode(Enum):
    FIXED_RATIO = "fixed_ratio"    # collateral = size * collateral_bps / 10_000
    MATCH_LEADER = "match_leader"  # keep the lead position's collateral/size ratio

class RetryMode(Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"
