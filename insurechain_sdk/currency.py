"""
Fixed-rate conversion between the application's display currency (XAF)
and the chain's base unit (wei).

All arithmetic goes through :class:`decimal.Decimal` with an explicit
context, so amounts recorded off-chain match the integer actually sent
on-chain.
"""
import logging
from decimal import Decimal, Context, ROUND_DOWN, InvalidOperation, localcontext
from typing import Union

from .exceptions import ConversionError

logger = logging.getLogger(__name__)

Amount = Union[int, str, Decimal]

WEI_PER_ETHER = Decimal(10) ** 18
DEFAULT_SCALE = 18
DEFAULT_XAF_PER_ETHER = Decimal("2500000")
MAX_WEI = 2 ** 256 - 1

# 2**256 has 78 digits; leave room for the fractional part
_CONTEXT = Context(prec=120, rounding=ROUND_DOWN)


def _to_decimal(amount: Amount, field: str = "amount") -> Decimal:
    """
    Coerce an amount to Decimal, refusing anything lossy.

    Raises:
        ConversionError: For floats, booleans, unparsable strings,
            NaN/Infinity and negative values
    """
    if isinstance(amount, bool) or isinstance(amount, float):
        raise ConversionError(
            f"{field} must be int, str or Decimal, not {type(amount).__name__}", amount=amount
        )
    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, (int, str)):
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation:
            raise ConversionError(f"{field} is not a number: {amount!r}", amount=amount)
    else:
        raise ConversionError(
            f"{field} must be int, str or Decimal, not {type(amount).__name__}", amount=amount
        )

    if not value.is_finite():
        raise ConversionError(f"{field} must be finite: {amount!r}", amount=amount)
    if value < 0:
        raise ConversionError(f"{field} cannot be negative: {amount}", amount=amount)
    return value


def _quantize(value: Decimal, quantum: Decimal, amount: Amount) -> Decimal:
    """Quantize under the module context, reporting overflow as ConversionError."""
    try:
        with localcontext(_CONTEXT):
            return value.quantize(quantum, rounding=ROUND_DOWN)
    except InvalidOperation:
        raise ConversionError(f"amount is too large to convert: {amount}", amount=amount)


def wei_to_ether(wei: Union[int, str]) -> Decimal:
    """Convert an integer wei amount to ether with 18 fractional digits."""
    value = _to_decimal(wei, "wei")
    if value != value.to_integral_value():
        raise ConversionError(f"wei must be an integer: {wei}", amount=wei)
    with localcontext(_CONTEXT):
        ether = value / WEI_PER_ETHER
    return _quantize(ether, Decimal(1).scaleb(-DEFAULT_SCALE), wei)


def ether_to_wei(ether: Amount) -> int:
    """Convert an ether amount to integer wei, truncating below 1 wei."""
    value = _to_decimal(ether, "ether")
    with localcontext(_CONTEXT):
        return int((value * WEI_PER_ETHER).to_integral_value(rounding=ROUND_DOWN))


class CurrencyConverter:
    """
    Converts display-currency amounts to wei and back at a fixed rate.

    The rate is expressed as display units per one ether (for XAF the
    development network uses 2,500,000).
    """

    def __init__(self, rate: Amount = DEFAULT_XAF_PER_ETHER, scale: int = DEFAULT_SCALE):
        """
        Initialize the converter

        Args:
            rate: Display currency units per ether
            scale: Fractional digits kept for the intermediate ether amount

        Raises:
            ConversionError: If the rate is not strictly positive
        """
        self.rate = _to_decimal(rate, "rate")
        if self.rate == 0:
            raise ConversionError("rate must be greater than zero", amount=rate)
        if scale < 0:
            raise ConversionError(f"scale cannot be negative: {scale}", amount=scale)
        self.scale = scale
        self._quantum = Decimal(1).scaleb(-scale)

    def to_ether(self, display_amount: Amount) -> Decimal:
        """Display amount to ether, rounded down to ``scale`` fractional digits."""
        value = _to_decimal(display_amount)
        with localcontext(_CONTEXT):
            ether = value / self.rate
        return _quantize(ether, self._quantum, display_amount)

    def to_base_unit(self, display_amount: Amount) -> str:
        """
        Convert a display-currency amount to wei.

        Args:
            display_amount: Amount in display currency (int, str or Decimal)

        Returns:
            Integer wei amount as a decimal string

        Raises:
            ConversionError: If the amount is negative, non-finite or a float,
                or its wei value does not fit in a uint256
        """
        ether = self.to_ether(display_amount)
        wei = ether_to_wei(ether)
        if wei > MAX_WEI:
            raise ConversionError(f"{display_amount} converts to more wei than a uint256 holds",
                                  amount=display_amount)
        logger.debug(f"Converted {display_amount} at rate {self.rate} to {wei} wei")
        return str(wei)

    def from_base_unit(self, wei: Union[int, str]) -> Decimal:
        """
        Convert an integer wei amount back to display currency.

        Args:
            wei: Integer wei amount (int or decimal string)

        Returns:
            Display-currency amount with ``scale`` fractional digits
        """
        ether = wei_to_ether(wei)
        with localcontext(_CONTEXT):
            display = ether * self.rate
        return _quantize(display, self._quantum, wei)

    def tolerance(self) -> Decimal:
        """Largest display-currency error a round trip can introduce."""
        with localcontext(_CONTEXT):
            return self.rate * self._quantum + self._quantum
