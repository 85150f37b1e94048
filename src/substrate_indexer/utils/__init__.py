from decimal import Decimal, localcontext
from hashlib import sha256
from typing import Union

# Substrate chains indexed here use 18 decimals for the native token
BASE_UNIT_SCALE = Decimal(10) ** 18

# u128 balances need 39 significant digits
_DECIMAL_PRECISION = 80


def content_hash(from_address: str, to_address: str, amount: str, fee: str) -> str:
    """Deterministic identity of a transfer, used as its dedup key.

    amount and fee are base-unit integer strings.
    """
    preimage = f"{from_address}{to_address}{amount}{fee}".encode("utf-8")
    return f"0x{sha256(preimage).hexdigest()}"


def parse_base_units(value: Union[str, int]) -> int:
    """Parse a base-unit quantity given as int, decimal string or 0x hex string"""
    if isinstance(value, bool):
        raise ValueError(f"not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError(f"not a quantity: {value!r}")

    value = value.strip()
    if value.startswith(("0x", "0X")):
        return int(value, 16)
    return int(value, 10)


def base_units_to_decimal(value: Union[str, int]) -> str:
    """Convert base units to the decimal token amount, exactly"""
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        amount = Decimal(parse_base_units(value)) / BASE_UNIT_SCALE
        return format(amount.normalize(), "f")


__all__ = [
    "BASE_UNIT_SCALE",
    "content_hash",
    "parse_base_units",
    "base_units_to_decimal",
]
