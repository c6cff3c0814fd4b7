"""
Signed transaction envelope, canonical hashing and fee classification.

Lifecycle: an external builder produces a TxVariant, wraps it in a
SignedTransaction, runs the correctness check exactly once, and from then on
treats the instance as frozen (or holds the ValidatedTransaction returned by
``validate``).
"""
import copy
import logging
from typing import Optional, Union

import msgpack

from rollup_tx.config import Config
from rollup_tx.primitives import FeeInfo, TxHash
from rollup_tx.signature import EthSignData
from rollup_tx.variants import TxVariant

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when validation fails."""
    pass


class SignedTransaction:
    """
    A transaction together with optional off-chain (Ethereum) authorization.

    The envelope owns a private copy of the variant and hands out only
    copies of it, so ``check_correctness`` is the only path that updates it.
    """

    def __init__(self, tx: TxVariant, eth_sign_data: Optional[EthSignData] = None):
        if not isinstance(tx, TxVariant):
            raise TypeError(f"Expected a TxVariant, got {type(tx).__name__}")
        self._tx = copy.deepcopy(tx)
        self.eth_sign_data = eth_sign_data

    @classmethod
    def from_tx(cls, tx: TxVariant) -> 'SignedTransaction':
        """Wraps a natively signed transaction with no Ethereum signature data."""
        return cls(tx)

    @property
    def tx(self) -> TxVariant:
        """A detached copy of the wrapped variant."""
        return copy.deepcopy(self._tx)

    @property
    def tx_type(self) -> str:
        return self._tx.TX_TYPE

    @property
    def nonce(self) -> int:
        return self._tx.nonce

    @property
    def verified_signer(self) -> Optional[bytes]:
        return self._tx.verified_signer

    def account(self) -> bytes:
        return self._tx.account()

    def get_bytes(self) -> bytes:
        return self._tx.get_bytes()

    def hash(self) -> TxHash:
        return self._tx.hash()

    def min_chunks(self) -> int:
        return self._tx.min_chunks()

    def is_withdraw(self) -> bool:
        return self._tx.is_withdraw()

    def is_close(self) -> bool:
        return self._tx.is_close()

    def get_fee_info(self) -> Optional[FeeInfo]:
        return self._tx.get_fee_info()

    def correctness_error(self, config: Optional[Config] = None) -> Optional[str]:
        """Returns the rejection reason, or None if the transaction is correct."""
        validation = (config or Config.default()).validation

        error = self._tx.correctness_error(validation.max_token_id)
        if error is not None:
            return error

        if self.eth_sign_data is None:
            # Only fee-paying operations move funds and need the second signature
            if validation.require_eth_sign_data and self._tx.get_fee_info() is not None:
                self._tx.verified_signer = None
                return "missing eth signature data"
            return None

        if self.eth_sign_data.signer_address() != self._tx.account():
            self._tx.verified_signer = None
            return "eth signature data does not match account"
        return None

    def check_correctness(self, config: Optional[Config] = None) -> bool:
        """
        Validates the transaction once before it is hashed, priced or queued.

        Returns:
            False if any structural or signature check fails; the caller must
            then discard the transaction.
        """
        error = self.correctness_error(config)
        if error is not None:
            logger.debug(f"Rejected {self.tx_type} from {self.account().hex()}: {error}")
            return False
        return True

    def validate(self, config: Optional[Config] = None) -> 'ValidatedTransaction':
        """
        Runs the correctness check and returns a frozen, validated view.

        Raises:
            ValidationError: If the transaction is rejected.
        """
        error = self.correctness_error(config)
        if error is not None:
            logger.debug(f"Rejected {self.tx_type} from {self.account().hex()}: {error}")
            raise ValidationError(f"{self.tx_type} rejected: {error}")
        validated = ValidatedTransaction(copy.deepcopy(self))
        logger.debug(f"Validated {self.tx_type} {validated.hash().hex()[:16]}")
        return validated

    def to_dict(self) -> dict:
        return {
            "tx": self._tx.to_dict(),
            "ethSignData": self.eth_sign_data.to_dict() if self.eth_sign_data else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SignedTransaction':
        """
        Creates a signed transaction from its wire representation.

        Raises:
            ValueError: If the data is malformed.
        """
        if not isinstance(data, dict) or "tx" not in data:
            raise ValueError("Signed transaction must be a dict with a 'tx' field")
        tx = TxVariant.from_dict(data["tx"])
        raw_sign_data = data.get("ethSignData")
        try:
            eth_sign_data = EthSignData.from_dict(raw_sign_data) if raw_sign_data else None
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed eth signature data: {e}") from e
        return cls(tx, eth_sign_data)

    def to_msgpack(self) -> bytes:
        """Storage encoding."""
        return msgpack.packb(self.to_dict(), use_bin_type=True)

    @classmethod
    def from_msgpack(cls, data: bytes) -> 'SignedTransaction':
        try:
            decoded = msgpack.unpackb(data, raw=False)
        except (ValueError, msgpack.exceptions.UnpackException) as e:
            raise ValueError(f"Error deserializing transaction: {e}") from e
        return cls.from_dict(decoded)

    def __eq__(self, other):
        if not isinstance(other, SignedTransaction):
            return NotImplemented
        return self._tx == other._tx and self.eth_sign_data == other.eth_sign_data

    # Mutable until validated; key by hash() instead
    __hash__ = None

    def __repr__(self):
        return f"SignedTransaction({self._tx!r}, eth_sign_data={self.eth_sign_data is not None})"


class ValidatedTransaction:
    """
    Read-only view of a transaction that passed the correctness check.

    Holds its own copy of the envelope and caches the hash, so later changes
    to the original instance cannot affect it.
    """

    __slots__ = ('_signed', '_hash')

    def __init__(self, signed: SignedTransaction):
        object.__setattr__(self, '_signed', signed)
        object.__setattr__(self, '_hash', signed.hash())

    def __setattr__(self, name, value):
        raise AttributeError("ValidatedTransaction is immutable")

    @property
    def tx_type(self) -> str:
        return self._signed.tx_type

    @property
    def nonce(self) -> int:
        return self._signed.nonce

    @property
    def eth_sign_data(self) -> Optional[EthSignData]:
        return self._signed.eth_sign_data

    @property
    def verified_signer(self) -> Optional[bytes]:
        """Public key hash (or None for ChangePubKey) recorded by the check."""
        return self._signed.tx.verified_signer

    def account(self) -> bytes:
        return self._signed.account()

    def get_bytes(self) -> bytes:
        return self._signed.get_bytes()

    def hash(self) -> TxHash:
        return self._hash

    def min_chunks(self) -> int:
        return self._signed.min_chunks()

    def is_withdraw(self) -> bool:
        return self._signed.is_withdraw()

    def is_close(self) -> bool:
        return self._signed.is_close()

    def get_fee_info(self) -> Optional[FeeInfo]:
        return self._signed.get_fee_info()

    def to_dict(self) -> dict:
        return self._signed.to_dict()

    def __repr__(self):
        return f"ValidatedTransaction({self.tx_type}, hash={self._hash})"


AnyTx = Union[TxVariant, SignedTransaction, ValidatedTransaction]


def tx_hash(tx: AnyTx) -> TxHash:
    """SHA-256 over the canonical bytes, copied verbatim into a 32-byte TxHash."""
    return tx.hash()


def get_fee_info(tx: AnyTx) -> Optional[FeeInfo]:
    """Fee-market classification; None for kinds that pay no fee at this layer."""
    return tx.get_fee_info()
