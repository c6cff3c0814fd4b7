"""
Decimal floating-point packing for token amounts and fees.

A packed value stores ``mantissa * 10^exponent`` as ``mantissa << exp_bits | exponent``
in big-endian order. Only values with an exact representation are packable.
"""
from typing import Optional
from rollup_tx.params import (
    AMOUNT_EXPONENT_BIT_WIDTH,
    AMOUNT_MANTISSA_BIT_WIDTH,
    FEE_EXPONENT_BIT_WIDTH,
    FEE_MANTISSA_BIT_WIDTH,
)


def _split(value: int, exp_bits: int, mantissa_bits: int) -> Optional[tuple[int, int]]:
    """Returns (mantissa, exponent) for an exactly representable value, else None."""
    if value < 0:
        return None
    mantissa, exponent = value, 0
    max_mantissa = 1 << mantissa_bits
    while mantissa >= max_mantissa:
        if mantissa % 10:
            return None
        mantissa //= 10
        exponent += 1
    if exponent >= 1 << exp_bits:
        return None
    return mantissa, exponent


def pack_as_float(value: int, exp_bits: int, mantissa_bits: int) -> bytes:
    """
    Packs an integer into (exp_bits + mantissa_bits) / 8 bytes.

    Raises:
        ValueError: If the value has no exact packed representation.
    """
    parts = _split(value, exp_bits, mantissa_bits)
    if parts is None:
        raise ValueError(f"Value {value} is not packable into {exp_bits}+{mantissa_bits} bits")
    mantissa, exponent = parts
    packed = (mantissa << exp_bits) | exponent
    return packed.to_bytes((exp_bits + mantissa_bits) // 8, 'big')


def unpack_float(data: bytes, exp_bits: int, mantissa_bits: int) -> int:
    """Inverse of pack_as_float."""
    if len(data) * 8 != exp_bits + mantissa_bits:
        raise ValueError(f"Expected {(exp_bits + mantissa_bits) // 8} bytes, got {len(data)}")
    packed = int.from_bytes(data, 'big')
    exponent = packed & ((1 << exp_bits) - 1)
    mantissa = packed >> exp_bits
    return mantissa * 10 ** exponent


def closest_packable(value: int, exp_bits: int, mantissa_bits: int) -> int:
    """Largest packable value that is not greater than ``value``."""
    if value < 0:
        raise ValueError("Cannot pack a negative value")
    mantissa, exponent = value, 0
    max_mantissa = 1 << mantissa_bits
    while mantissa >= max_mantissa:
        mantissa //= 10
        exponent += 1
    max_exponent = (1 << exp_bits) - 1
    if exponent > max_exponent:
        return (max_mantissa - 1) * 10 ** max_exponent
    return mantissa * 10 ** exponent


def is_token_amount_packable(amount: int) -> bool:
    return _split(amount, AMOUNT_EXPONENT_BIT_WIDTH, AMOUNT_MANTISSA_BIT_WIDTH) is not None


def is_fee_amount_packable(fee: int) -> bool:
    return _split(fee, FEE_EXPONENT_BIT_WIDTH, FEE_MANTISSA_BIT_WIDTH) is not None


def pack_token_amount(amount: int) -> bytes:
    return pack_as_float(amount, AMOUNT_EXPONENT_BIT_WIDTH, AMOUNT_MANTISSA_BIT_WIDTH)


def pack_fee_amount(fee: int) -> bytes:
    return pack_as_float(fee, FEE_EXPONENT_BIT_WIDTH, FEE_MANTISSA_BIT_WIDTH)


def unpack_token_amount(data: bytes) -> int:
    return unpack_float(data, AMOUNT_EXPONENT_BIT_WIDTH, AMOUNT_MANTISSA_BIT_WIDTH)


def unpack_fee_amount(data: bytes) -> int:
    return unpack_float(data, FEE_EXPONENT_BIT_WIDTH, FEE_MANTISSA_BIT_WIDTH)


def closest_packable_token_amount(amount: int) -> int:
    return closest_packable(amount, AMOUNT_EXPONENT_BIT_WIDTH, AMOUNT_MANTISSA_BIT_WIDTH)


def closest_packable_fee_amount(fee: int) -> int:
    return closest_packable(fee, FEE_EXPONENT_BIT_WIDTH, FEE_MANTISSA_BIT_WIDTH)
