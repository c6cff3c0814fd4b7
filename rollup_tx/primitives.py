"""
Value types shared by transactions and their consumers.
"""
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Union

from rollup_tx.params import ADDRESS_LEN, TX_HASH_LEN


def format_address(address: bytes) -> str:
    """Renders a 20-byte address as a 0x-prefixed hex string."""
    return '0x' + address.hex()


def parse_address(value: Union[str, bytes], length: int = ADDRESS_LEN) -> bytes:
    """
    Parses a 0x-prefixed hex string (or raw bytes) into a fixed-length byte value.

    Raises:
        ValueError: If the value is not valid hex or has the wrong length.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        text = value[2:] if value.startswith('0x') else value
        raw = bytes.fromhex(text)
    if len(raw) != length:
        raise ValueError(f"Expected {length} bytes, got {len(raw)}")
    return raw


@dataclass(frozen=True)
class TxHash:
    """Content-addressed identity of a transaction."""
    data: bytes

    def __post_init__(self):
        if len(self.data) != TX_HASH_LEN:
            raise ValueError(f"TxHash must be {TX_HASH_LEN} bytes, got {len(self.data)}")

    def hex(self) -> str:
        return self.data.hex()

    def __str__(self) -> str:
        return '0x' + self.data.hex()

    @classmethod
    def from_hex(cls, value: str) -> 'TxHash':
        return cls(parse_address(value, TX_HASH_LEN))


class TxFeeTypes(Enum):
    """Fee-market buckets priced separately by the fee pricer."""
    TRANSFER = "Transfer"
    WITHDRAW = "Withdraw"
    FAST_WITHDRAW = "FastWithdraw"


class TokenLike:
    """A token referenced either by numeric id or by symbol."""

    def __init__(self, token_id: Optional[int] = None, symbol: Optional[str] = None):
        if (token_id is None) == (symbol is None):
            raise ValueError("TokenLike needs exactly one of token_id or symbol")
        self.token_id = token_id
        self.symbol = symbol

    @classmethod
    def id(cls, token_id: int) -> 'TokenLike':
        return cls(token_id=token_id)

    @classmethod
    def from_symbol(cls, symbol: str) -> 'TokenLike':
        return cls(symbol=symbol)

    def is_id(self) -> bool:
        return self.token_id is not None

    def __eq__(self, other):
        if not isinstance(other, TokenLike):
            return NotImplemented
        return (self.token_id, self.symbol) == (other.token_id, other.symbol)

    def __hash__(self):
        return hash((self.token_id, self.symbol))

    def __repr__(self):
        if self.is_id():
            return f"TokenLike.id({self.token_id})"
        return f"TokenLike.from_symbol({self.symbol!r})"


class FeeInfo(NamedTuple):
    fee_type: TxFeeTypes
    token: TokenLike
    address: bytes
    fee: int
