"""
Tests for display-currency / wei conversion.
"""
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from insurechain_sdk.currency import (
    CurrencyConverter, DEFAULT_XAF_PER_ETHER, ether_to_wei, wei_to_ether
)
from insurechain_sdk.exceptions import ConversionError


@pytest.fixture
def converter():
    return CurrencyConverter()


def test_default_rate(converter):
    assert converter.rate == DEFAULT_XAF_PER_ETHER == Decimal("2500000")


@pytest.mark.parametrize("display,expected_wei", [
    (0, "0"),
    ("0", "0"),
    (2500000, "1000000000000000000"),
    ("5000000", "2000000000000000000"),
    ("250000", "100000000000000000"),
    (1, "400000000000"),
    (Decimal("1000"), "400000000000000"),
])
def test_to_base_unit(converter, display, expected_wei):
    assert converter.to_base_unit(display) == expected_wei


def test_to_base_unit_rounds_down():
    # 1/3 ether truncated to 18 places
    assert CurrencyConverter(rate=3).to_base_unit(1) == "333333333333333333"
    assert CurrencyConverter(rate=3).to_base_unit(2) == "666666666666666666"


def test_to_base_unit_large_amount(converter):
    assert converter.to_base_unit("2500000000000000") == str(10**27)


@pytest.mark.parametrize("bad", [-1, "-0.01", 1.5, 0.0, True, "NaN", "Infinity", "abc", None, [1]])
def test_to_base_unit_rejects(converter, bad):
    with pytest.raises(ConversionError):
        converter.to_base_unit(bad)


def test_conversion_error_is_value_error(converter):
    with pytest.raises(ValueError):
        converter.to_base_unit(-5)


def test_from_base_unit(converter):
    assert converter.from_base_unit(10**18) == Decimal("2500000")
    assert converter.from_base_unit("400000000000") == Decimal("1")
    assert converter.from_base_unit(0) == Decimal(0)


def test_from_base_unit_rejects_fractional_wei(converter):
    with pytest.raises(ConversionError):
        converter.from_base_unit("1.5")


@pytest.mark.parametrize("rate", [0, "0", -1, "NaN", 2.5])
def test_invalid_rate(rate):
    with pytest.raises(ConversionError):
        CurrencyConverter(rate=rate)


def test_negative_scale():
    with pytest.raises(ConversionError):
        CurrencyConverter(scale=-1)


def test_wei_ether_helpers():
    assert wei_to_ether(10**18) == Decimal("1")
    assert wei_to_ether("1") == Decimal("0.000000000000000001")
    assert ether_to_wei("0.1") == 10**17
    assert ether_to_wei(Decimal("1.5")) == 15 * 10**17
    assert ether_to_wei("1e-19") == 0


def test_to_ether(converter):
    assert converter.to_ether("1250000") == Decimal("0.5")


@settings(max_examples=200)
@given(amount=st.decimals(min_value=0, max_value=10**12, places=6,
                          allow_nan=False, allow_infinity=False))
def test_round_trip_within_tolerance(amount):
    converter = CurrencyConverter()
    wei = converter.to_base_unit(amount)
    back = converter.from_base_unit(wei)
    assert back <= amount
    assert amount - back <= converter.tolerance()


@pytest.mark.parametrize("amount", ["1e110", Decimal("1E+200")])
def test_amount_beyond_decimal_precision(converter, amount):
    with pytest.raises(ConversionError, match="too large"):
        converter.to_base_unit(amount)


def test_amount_beyond_uint256(converter):
    # fits the decimal context but not a uint256 once in wei
    with pytest.raises(ConversionError, match="uint256"):
        converter.to_base_unit("1e80")


def test_from_base_unit_beyond_precision(converter):
    with pytest.raises(ConversionError):
        converter.from_base_unit(10**200)


@pytest.mark.parametrize("rate", [3, "7", Decimal("655.957")])
def test_non_terminating_rates_truncate(rate):
    converter = CurrencyConverter(rate=rate)
    ether = converter.to_ether(10)
    assert ether.as_tuple().exponent == -18
    assert ether * converter.rate <= 10


@settings(max_examples=200)
@given(
    amount=st.decimals(min_value=0, max_value=10**9, places=4, allow_nan=False, allow_infinity=False),
    rate=st.sampled_from(["3", "7", "655.957", "2499999"]),
)
def test_round_trip_non_terminating_rate(amount, rate):
    converter = CurrencyConverter(rate=rate)
    back = converter.from_base_unit(converter.to_base_unit(amount))
    assert back <= amount
    assert amount - back <= converter.tolerance()
