"""Small helpers shared by the dispatcher modules"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, List, Optional

from eth_utils import is_checksum_address, is_hex_address

from .constants import ZERO_ADDRESS
from .errors import InvalidArgumentError


def is_valid_address(value: Any) -> bool:
    """
    0x-prefixed 20 byte hex string. Mixed case must be a valid EIP-55
    checksum; all lower or all upper case is accepted as is.
    """
    if not is_hex_prefixed(value) or not is_hex_address(value):
        return False
    body = value[2:]
    if body.lower() == body or body.upper() == body:
        return True
    return is_checksum_address(value)


def falsy_or_zero_address(address: Optional[Any]) -> bool:
    """True when the value is empty, not an address, or the zero address"""
    if not address or not isinstance(address, str):
        return True
    if not is_valid_address(address):
        return True
    return address.lower() == ZERO_ADDRESS


def is_hex_prefixed(value: Any) -> bool:
    return isinstance(value, str) and value[:2].lower() == '0x'


def parse_units(value: str, decimals: int) -> int:
    """
    Convert a decimal string into an integer scaled by 10^decimals.

    Raises InvalidArgumentError when the value is not a number or has more
    fractional digits than decimals allows.
    """
    try:
        amount = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        raise InvalidArgumentError(f"Invalid decimal value: {value}") from None
    if not amount.is_finite():
        raise InvalidArgumentError(f"Invalid decimal value: {value}")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = amount.scaleb(decimals)
        fractional = scaled != scaled.to_integral_value()
    if fractional:
        raise InvalidArgumentError(f"Fractional component exceeds {decimals} decimals: {value}")
    return int(scaled)


def split_array(n: int, values: List[Any]) -> List[List[Any]]:
    """Distribute interleaved values round-robin into n lists"""
    result: List[List[Any]] = [[] for _ in range(n)]
    for index, value in enumerate(values):
        result[index % n].append(value)
    return result
