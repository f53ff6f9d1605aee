import pytest

from copytrade.enums import CollateralMode, RetryMode, SizingMode
from copytrade.errors import SizingError
from copytrade.retry import RetryPolicy
from copytrade.sizing import calculate_proportional_size, collateral_for


def test_mirror_is_identity_regardless_of_values():
    assert calculate_proportional_size(500_000_000, vault_value=0) == 500_000_000
    assert calculate_proportional_size(10**30, vault_value=1, leader_value=None) == 10**30


def test_proportional_floors():
    size = calculate_proportional_size(1_000, 1, 3, mode=SizingMode.PROPORTIONAL)
    assert size == 333


@pytest.mark.parametrize("leader_size,vault_value,leader_value", [
    (-1, 1, 1),
    (1, -1, 1),
    (1, 1, 0),
    (1, 1, None),
])
def test_proportional_rejects_invalid_inputs(leader_size, vault_value, leader_value):
    with pytest.raises(SizingError):
        calculate_proportional_size(leader_size, vault_value, leader_value, mode=SizingMode.PROPORTIONAL)


def test_fixed_ratio_collateral_is_ten_percent_by_default():
    assert collateral_for(250_000_000) == 25_000_000
    assert collateral_for(9) == 0
    assert collateral_for(1_000, collateral_bps=2_500) == 250


def test_match_leader_collateral():
    assert collateral_for(500, mode=CollateralMode.MATCH_LEADER, leader_size=1_000, leader_collateral=200) == 100
    # no lead size to derive leverage from
    assert collateral_for(500, mode=CollateralMode.MATCH_LEADER) == 50


def test_fixed_retry_never_grows():
    p = RetryPolicy()
    assert [p.delay(n) for n in (1, 2, 50)] == [10.0, 10.0, 10.0]
    assert not p.exhausted(10_000)


def test_exponential_retry_is_capped():
    p = RetryPolicy(mode=RetryMode.EXPONENTIAL, delay_s=1.0, max_delay_s=8.0, jitter=False)
    assert [p.delay(n) for n in (1, 2, 3, 4, 5, 100)] == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]


def test_exponential_jitter_stays_within_cap():
    p = RetryPolicy(mode=RetryMode.EXPONENTIAL, delay_s=2.0, max_delay_s=5.0)
    for n in range(1, 20):
        assert 0 < p.delay(n) <= 5.0


def test_max_retries_exhaustion():
    p = RetryPolicy(max_retries=2)
    assert not p.exhausted(2)
    assert p.exhausted(3)
