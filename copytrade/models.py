from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from copytrade.enums import Direction, TradeAction
from copytrade.errors import PayloadValidationError


def parse_int(raw: Dict[str, Any], *keys: str) -> int:
    """
    Exact integer from the first present key.
    On-chain amounts arrive as ints or decimal strings ("500000000");
    floats and bools are rejected so no precision is ever lost.
    """
    for k in keys:
        if k in raw and raw[k] is not None:
            v = raw[k]
            break
    else:
        raise PayloadValidationError("missing integer field", field="|".join(keys))

    if isinstance(v, bool):
        raise PayloadValidationError("bool is not an amount", field=keys[0], value=v)
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        s = v.strip()
        digits = s[1:] if s[:1] in ("-", "+") else s
        if digits.isdigit():
            return int(s)
    raise PayloadValidationError("not an exact integer", field=keys[0], value=repr(v))


def _to_bool(raw: Dict[str, Any], key: str) -> bool:
    v = raw.get(key)
    if isinstance(v, bool):
        return v
    if isinstance(v, str) and v.strip().lower() in ("true", "false"):
        return v.strip().lower() == "true"
    raise PayloadValidationError("missing or malformed boolean", field=key, value=repr(v))


def pair_name(pair_type: str) -> str:
    """`0x5ae6...::pair_types::BTC_USD` -> `BTC_USD`."""
    return pair_type.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class Position:
    pair_type: str          # resource-qualified pair type, unique per account
    size: int               # notional size, base units
    collateral: int         # margin, base units
    is_long: bool
    entry_price: int        # fixed-point price at open

    @property
    def direction(self) -> Direction:
        return Direction.LONG if self.is_long else Direction.SHORT

    @property
    def pair(self) -> str:
        return pair_name(self.pair_type)

    @classmethod
    def from_payload(cls, raw: Any) -> "Position":
        if not isinstance(raw, dict):
            raise PayloadValidationError("position payload must be an object", got=type(raw).__name__)
        pair_type = raw.get("pairType")
        if not isinstance(pair_type, str) or not pair_type.strip():
            raise PayloadValidationError("missing pairType", value=repr(pair_type))
        return cls(
            pair_type=pair_type.strip(),
            size=parse_int(raw, "size"),
            collateral=parse_int(raw, "collateral"),
            is_long=_to_bool(raw, "isLong"),
            entry_price=parse_int(raw, "entryPrice", "avgPrice"),
        )


@dataclass(frozen=True)
class AccountUpdate:
    """Push notification from the account feed. Only its arrival matters."""
    type: str
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, msg: Dict[str, Any]) -> "AccountUpdate":
        kind = msg.get("type") or msg.get("topic") or "unknown"
        return cls(type=str(kind), raw=msg)


@dataclass
class MarketOrderRequest:
    pair_type: str
    account_address: str
    size_delta: int
    collateral_delta: int
    is_long: bool
    is_increase: bool

    def __post_init__(self):
        if self.size_delta < 0 or self.collateral_delta < 0:
            raise PayloadValidationError(
                "order deltas must be non-negative",
                size_delta=self.size_delta, collateral_delta=self.collateral_delta,
            )


@dataclass
class EntryFunctionPayload:
    function: str
    type_arguments: List[str]
    arguments: List[Any]

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": "entry_function_payload",
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            "arguments": list(self.arguments),
        }


@dataclass
class TradeRecord:
    vault_id: int
    action: TradeAction
    pair_type: str
    amount: int
    price: int
    profit_amount: int = 0
    is_profit: bool = True
    memo: Optional[str] = None

    def label(self) -> str:
        return f"{self.action.value}:{pair_name(self.pair_type)}"

    def memo_text(self) -> str:
        return self.memo or f"Copy-trade: {self.label()}"


@dataclass
class VaultInfo:
    lead_trader: str
    total_value: int
    strategy: str = ""

    @classmethod
    def from_payload(cls, raw: Any) -> "VaultInfo":
        if not isinstance(raw, dict):
            raise PayloadValidationError("vault info must be an object", got=type(raw).__name__)
        lead = raw.get("lead_trader")
        if not isinstance(lead, str) or not lead:
            raise PayloadValidationError("missing lead_trader", value=repr(lead))
        return cls(
            lead_trader=lead,
            total_value=parse_int(raw, "total_value"),
            strategy=str(raw.get("strategy") or ""),
        )
