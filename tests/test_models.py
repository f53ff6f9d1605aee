import pytest

from copytrade.enums import Direction, TradeAction
from copytrade.errors import PayloadValidationError
from copytrade.models import (
    AccountUpdate,
    MarketOrderRequest,
    Position,
    TradeRecord,
    VaultInfo,
    pair_name,
    parse_int,
)

BTC = "0x5ae6789dd2fec1a9ec9cccfb3acaf12e93d432f0a3a42c92fe1a9d490b7bbc06::pair_types::BTC_USD"


def raw_position(**over):
    raw = {"pairType": BTC, "size": "500000000", "collateral": "50000000",
           "isLong": True, "entryPrice": "6500000000000"}
    raw.update(over)
    return raw


def test_position_from_payload_parses_strings_exactly():
    p = Position.from_payload(raw_position(size="340282366920938463463374607431768211455"))
    assert p.size == 2**128 - 1
    assert p.collateral == 50_000_000
    assert p.is_long is True
    assert p.direction is Direction.LONG
    assert p.pair == "BTC_USD"


def test_position_accepts_avg_price_and_string_bool():
    raw = raw_position(isLong="false")
    raw.pop("entryPrice")
    raw["avgPrice"] = 123
    p = Position.from_payload(raw)
    assert p.entry_price == 123
    assert p.direction is Direction.SHORT


@pytest.mark.parametrize("field,value", [
    ("size", 1.5),
    ("size", "1e9"),
    ("size", True),
    ("collateral", None),
    ("isLong", "yes"),
    ("pairType", ""),
])
def test_position_rejects_malformed_fields(field, value):
    with pytest.raises(PayloadValidationError) as ei:
        Position.from_payload(raw_position(**{field: value}))
    assert "[" in str(ei.value)


def test_position_payload_must_be_object():
    with pytest.raises(PayloadValidationError):
        Position.from_payload(["BTC_USD", 1])


def test_parse_int_first_present_key_wins():
    assert parse_int({"equity": "-5", "balance": 9}, "totalValue", "equity", "balance") == -5
    with pytest.raises(PayloadValidationError):
        parse_int({}, "totalValue")


def test_order_request_rejects_negative_deltas():
    with pytest.raises(PayloadValidationError):
        MarketOrderRequest("BTC_USD", "0xvault", -1, 0, True, True)


def test_trade_record_label_and_default_memo():
    r = TradeRecord(vault_id=1, action=TradeAction.OPEN, pair_type=BTC, amount=1, price=2)
    assert r.label() == "open:BTC_USD"
    assert r.memo_text() == "Copy-trade: open:BTC_USD"
    r.memo = "manual"
    assert r.memo_text() == "manual"


def test_pair_name_without_module_prefix():
    assert pair_name("ETH_USD") == "ETH_USD"


def test_account_update_from_message():
    u = AccountUpdate.from_message({"topic": "account::0xlead", "data": {}})
    assert u.type == "account::0xlead"
    assert AccountUpdate.from_message({}).type == "unknown"


def test_vault_info_from_payload():
    v = VaultInfo.from_payload({"lead_trader": "0xlead", "total_value": "100000000", "strategy": "momentum"})
    assert v.lead_trader == "0xlead"
    assert v.total_value == 100_000_000
    with pytest.raises(PayloadValidationError):
        VaultInfo.from_payload({"total_value": "1"})
