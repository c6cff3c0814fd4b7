"""
The closed catalogue of rollup operations.

Every operation kind implements the TxVariant capability set once: canonical
bytes, owning account, nonce, chunk cost, withdraw/close predicates,
correctness check and fee info. A kind missing any of these cannot be
instantiated, and every concrete kind registers itself under its TX_TYPE name
so the wire decoder sees exactly the same set.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from rollup_tx.crypto import generate_hash
from rollup_tx.params import (
    ADDRESS_LEN,
    PUB_KEY_HASH_LEN,
    ZERO_ADDRESS,
    MAX_TOKEN_ID,
    MAX_NONCE,
    MAX_BALANCE,
    TRANSFER_OPCODE,
    WITHDRAW_OPCODE,
    CLOSE_OPCODE,
    CHANGE_PUBKEY_OPCODE,
    TRANSFER_CHUNKS,
    WITHDRAW_CHUNKS,
    CLOSE_CHUNKS,
    CHANGE_PUBKEY_CHUNKS,
)
from rollup_tx.primitives import (
    FeeInfo,
    TokenLike,
    TxFeeTypes,
    TxHash,
    format_address,
    parse_address,
)
from rollup_tx.signature import TxSignature, TxEthSignature
from rollup_tx.utils.packing import (
    is_fee_amount_packable,
    is_token_amount_packable,
    pack_fee_amount,
    pack_token_amount,
)

logger = logging.getLogger(__name__)


def _is_address(value) -> bool:
    return isinstance(value, bytes) and len(value) == ADDRESS_LEN


def _is_balance(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_BALANCE


def _is_nonce(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_NONCE


def _is_token(value, max_token_id: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= max_token_id


def _int_field(data: dict, name: str) -> int:
    """Reads an integer wire field: an int or a string of decimal digits."""
    value = data[name]
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise ValueError(f"Field '{name}' must be an integer or a decimal string, got {value!r}")


def _bool_field(data: dict, name: str, default: bool) -> bool:
    value = data.get(name, default)
    if not isinstance(value, bool):
        raise ValueError(f"Field '{name}' must be a boolean, got {value!r}")
    return value


class TxVariant(ABC):
    """Capability interface implemented once per operation kind."""

    TX_TYPE: str = None
    CHUNKS: int = None

    _registry: dict = {}

    nonce: int
    signature: Optional[TxSignature] = None
    verified_signer: Optional[bytes] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.TX_TYPE is None or cls.CHUNKS is None:
            raise TypeError(f"{cls.__name__} must define TX_TYPE and CHUNKS")
        if cls.TX_TYPE in TxVariant._registry:
            raise TypeError(f"Duplicate transaction type: {cls.TX_TYPE}")
        TxVariant._registry[cls.TX_TYPE] = cls

    @classmethod
    def kinds(cls) -> dict:
        """Registered operation kinds by name."""
        return dict(TxVariant._registry)

    @abstractmethod
    def get_bytes(self) -> bytes:
        """Canonical byte encoding, the sole input to the transaction hash."""

    @abstractmethod
    def account(self) -> bytes:
        """Address of the account that owns this operation."""

    @abstractmethod
    def is_withdraw(self) -> bool:
        ...

    @abstractmethod
    def is_close(self) -> bool:
        ...

    @abstractmethod
    def correctness_error(self, max_token_id: int = MAX_TOKEN_ID) -> Optional[str]:
        """
        Runs the structural and signature checks of this kind.

        May cache data derived while checking (the verified signer).

        Returns:
            None if the operation is well-formed, otherwise the rejection reason.
        """

    @abstractmethod
    def get_fee_info(self) -> Optional[FeeInfo]:
        ...

    @abstractmethod
    def _fields_to_dict(self) -> dict:
        ...

    @classmethod
    @abstractmethod
    def _from_fields(cls, data: dict) -> 'TxVariant':
        ...

    def min_chunks(self) -> int:
        return self.CHUNKS

    def check_correctness(self, max_token_id: int = MAX_TOKEN_ID) -> bool:
        error = self.correctness_error(max_token_id)
        if error is not None:
            logger.debug(f"{self.TX_TYPE} rejected: {error}")
            return False
        return True

    def hash(self) -> TxHash:
        """SHA-256 of the canonical bytes. Only meaningful after a passed check."""
        return TxHash(generate_hash(self.get_bytes()))

    def _verify_native_signature(self) -> Optional[str]:
        self.verified_signer = None
        if self.signature is None:
            return "missing signature"
        self.verified_signer = self.signature.verify(self.get_bytes())
        if self.verified_signer is None:
            return "invalid signature"
        return None

    def to_dict(self) -> dict:
        return {"type": self.TX_TYPE, **self._fields_to_dict()}

    @staticmethod
    def from_dict(data: dict) -> 'TxVariant':
        """
        Decodes a tagged wire dict into the matching operation kind.

        Raises:
            ValueError: If the type is unknown or a field is malformed.
        """
        tx_type = data.get("type") if isinstance(data, dict) else None
        variant_cls = TxVariant._registry.get(tx_type)
        if variant_cls is None:
            raise ValueError(f"Unknown transaction type: {tx_type}")
        try:
            return variant_cls._from_fields(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed {tx_type} transaction: {e}") from e

    def __eq__(self, other):
        if not isinstance(other, TxVariant):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    # Mutable until validated; key by hash() instead
    __hash__ = None

    def __repr__(self):
        return f"{self.TX_TYPE}(account={format_address(self.account())}, nonce={self.nonce})"


def _signature_from_dict(data: dict) -> Optional[TxSignature]:
    raw = data.get("signature")
    return TxSignature.from_dict(raw) if raw else None


class Transfer(TxVariant):
    """Moves tokens between two rollup accounts."""

    TX_TYPE = "Transfer"
    CHUNKS = TRANSFER_CHUNKS

    def __init__(self,
                 from_address: bytes,
                 to: bytes,
                 token: int,
                 amount: int,
                 fee: int,
                 nonce: int,
                 signature: Optional[TxSignature] = None):
        self.from_address = from_address
        self.to = to
        self.token = token
        self.amount = amount
        self.fee = fee
        self.nonce = nonce
        self.signature = signature
        self.verified_signer = None

    def get_bytes(self) -> bytes:
        return (
            bytes([TRANSFER_OPCODE])
            + self.from_address
            + self.to
            + self.token.to_bytes(2, 'big')
            + pack_token_amount(self.amount)
            + pack_fee_amount(self.fee)
            + self.nonce.to_bytes(4, 'big')
        )

    def account(self) -> bytes:
        return self.from_address

    def is_withdraw(self) -> bool:
        return False

    def is_close(self) -> bool:
        return False

    def correctness_error(self, max_token_id: int = MAX_TOKEN_ID) -> Optional[str]:
        self.verified_signer = None
        if not _is_address(self.from_address) or not _is_address(self.to):
            return "malformed address"
        if self.to == ZERO_ADDRESS:
            return "transfer to the zero address"
        if not _is_balance(self.amount) or not is_token_amount_packable(self.amount):
            return f"amount {self.amount} is out of range or not packable"
        if not _is_balance(self.fee) or not is_fee_amount_packable(self.fee):
            return f"fee {self.fee} is out of range or not packable"
        if not _is_token(self.token, max_token_id):
            return f"token {self.token} exceeds max token id {max_token_id}"
        if not _is_nonce(self.nonce):
            return f"nonce {self.nonce} out of range"
        return self._verify_native_signature()

    def get_fee_info(self) -> Optional[FeeInfo]:
        return FeeInfo(TxFeeTypes.TRANSFER, TokenLike.id(self.token), self.to, self.fee)

    def _fields_to_dict(self) -> dict:
        return {
            "from": format_address(self.from_address),
            "to": format_address(self.to),
            "token": self.token,
            "amount": str(self.amount),
            "fee": str(self.fee),
            "nonce": self.nonce,
            "signature": self.signature.to_dict() if self.signature else None,
        }

    @classmethod
    def _from_fields(cls, data: dict) -> 'Transfer':
        return cls(
            from_address=parse_address(data["from"]),
            to=parse_address(data["to"]),
            token=_int_field(data, "token"),
            amount=_int_field(data, "amount"),
            fee=_int_field(data, "fee"),
            nonce=_int_field(data, "nonce"),
            signature=_signature_from_dict(data),
        )


class Withdraw(TxVariant):
    """Moves tokens out of the rollup to an L1 address."""

    TX_TYPE = "Withdraw"
    CHUNKS = WITHDRAW_CHUNKS

    def __init__(self,
                 from_address: bytes,
                 to: bytes,
                 token: int,
                 amount: int,
                 fee: int,
                 nonce: int,
                 fast: bool = False,
                 signature: Optional[TxSignature] = None):
        self.from_address = from_address
        self.to = to
        self.token = token
        self.amount = amount
        self.fee = fee
        self.nonce = nonce
        self.fast = fast
        self.signature = signature
        self.verified_signer = None

    def get_bytes(self) -> bytes:
        # The fast flag only selects the fee bucket and is not signed.
        return (
            bytes([WITHDRAW_OPCODE])
            + self.from_address
            + self.to
            + self.token.to_bytes(2, 'big')
            + self.amount.to_bytes(16, 'big')
            + pack_fee_amount(self.fee)
            + self.nonce.to_bytes(4, 'big')
        )

    def account(self) -> bytes:
        return self.from_address

    def is_withdraw(self) -> bool:
        return True

    def is_close(self) -> bool:
        return False

    def correctness_error(self, max_token_id: int = MAX_TOKEN_ID) -> Optional[str]:
        self.verified_signer = None
        if not _is_address(self.from_address) or not _is_address(self.to):
            return "malformed address"
        if not _is_balance(self.amount):
            return f"amount {self.amount} out of range"
        if not _is_balance(self.fee) or not is_fee_amount_packable(self.fee):
            return f"fee {self.fee} is out of range or not packable"
        if not _is_token(self.token, max_token_id):
            return f"token {self.token} exceeds max token id {max_token_id}"
        if not _is_nonce(self.nonce):
            return f"nonce {self.nonce} out of range"
        return self._verify_native_signature()

    def get_fee_info(self) -> Optional[FeeInfo]:
        fee_type = TxFeeTypes.FAST_WITHDRAW if self.fast else TxFeeTypes.WITHDRAW
        return FeeInfo(fee_type, TokenLike.id(self.token), self.to, self.fee)

    def _fields_to_dict(self) -> dict:
        return {
            "from": format_address(self.from_address),
            "to": format_address(self.to),
            "token": self.token,
            "amount": str(self.amount),
            "fee": str(self.fee),
            "nonce": self.nonce,
            "fast": self.fast,
            "signature": self.signature.to_dict() if self.signature else None,
        }

    @classmethod
    def _from_fields(cls, data: dict) -> 'Withdraw':
        return cls(
            from_address=parse_address(data["from"]),
            to=parse_address(data["to"]),
            token=_int_field(data, "token"),
            amount=_int_field(data, "amount"),
            fee=_int_field(data, "fee"),
            nonce=_int_field(data, "nonce"),
            fast=_bool_field(data, "fast", False),
            signature=_signature_from_dict(data),
        )


class Close(TxVariant):
    """Closes a rollup account."""

    TX_TYPE = "Close"
    CHUNKS = CLOSE_CHUNKS

    def __init__(self, account: bytes, nonce: int, signature: Optional[TxSignature] = None):
        self._account = account
        self.nonce = nonce
        self.signature = signature
        self.verified_signer = None

    def get_bytes(self) -> bytes:
        return bytes([CLOSE_OPCODE]) + self._account + self.nonce.to_bytes(4, 'big')

    def account(self) -> bytes:
        return self._account

    def is_withdraw(self) -> bool:
        return False

    def is_close(self) -> bool:
        return True

    def correctness_error(self, max_token_id: int = MAX_TOKEN_ID) -> Optional[str]:
        self.verified_signer = None
        if not _is_address(self._account):
            return "malformed address"
        if not _is_nonce(self.nonce):
            return f"nonce {self.nonce} out of range"
        return self._verify_native_signature()

    def get_fee_info(self) -> Optional[FeeInfo]:
        return None

    def _fields_to_dict(self) -> dict:
        return {
            "account": format_address(self._account),
            "nonce": self.nonce,
            "signature": self.signature.to_dict() if self.signature else None,
        }

    @classmethod
    def _from_fields(cls, data: dict) -> 'Close':
        return cls(
            account=parse_address(data["account"]),
            nonce=_int_field(data, "nonce"),
            signature=_signature_from_dict(data),
        )


class ChangePubKey(TxVariant):
    """
    Rotates the native signing key of an account.

    Authorized either by an Ethereum signature from the account owner over
    ``get_eth_signed_message`` or, when no signature is attached, by an
    on-chain authorization fact checked by the state layer.
    """

    TX_TYPE = "ChangePubKey"
    CHUNKS = CHANGE_PUBKEY_CHUNKS

    def __init__(self,
                 account: bytes,
                 new_pk_hash: bytes,
                 nonce: int,
                 eth_signature: Optional[TxEthSignature] = None):
        self._account = account
        self.new_pk_hash = new_pk_hash
        self.nonce = nonce
        self.eth_signature = eth_signature

    @staticmethod
    def get_eth_signed_message(new_pk_hash: bytes, nonce: int) -> str:
        return (
            "Register rollup pubkey:\n\n"
            f"{new_pk_hash.hex()}\n"
            f"nonce: 0x{nonce:08x}\n\n"
            "Only sign this message for a trusted client!"
        )

    def get_bytes(self) -> bytes:
        return (
            bytes([CHANGE_PUBKEY_OPCODE])
            + self._account
            + self.new_pk_hash
            + self.nonce.to_bytes(4, 'big')
        )

    def account(self) -> bytes:
        return self._account

    def is_withdraw(self) -> bool:
        return False

    def is_close(self) -> bool:
        return False

    def correctness_error(self, max_token_id: int = MAX_TOKEN_ID) -> Optional[str]:
        if not _is_address(self._account) or self._account == ZERO_ADDRESS:
            return "malformed account address"
        if not isinstance(self.new_pk_hash, bytes) or len(self.new_pk_hash) != PUB_KEY_HASH_LEN:
            return "malformed public key hash"
        if not _is_nonce(self.nonce):
            return f"nonce {self.nonce} out of range"
        if self.eth_signature is None:
            return None
        message = self.get_eth_signed_message(self.new_pk_hash, self.nonce)
        signer = self.eth_signature.signer_address(message)
        if signer != self._account:
            return "eth signature does not match account"
        return None

    def get_fee_info(self) -> Optional[FeeInfo]:
        return None

    def _fields_to_dict(self) -> dict:
        return {
            "account": format_address(self._account),
            "newPkHash": format_address(self.new_pk_hash),
            "nonce": self.nonce,
            "ethSignature": self.eth_signature.to_dict() if self.eth_signature else None,
        }

    @classmethod
    def _from_fields(cls, data: dict) -> 'ChangePubKey':
        raw_signature = data.get("ethSignature")
        return cls(
            account=parse_address(data["account"]),
            new_pk_hash=parse_address(data["newPkHash"], PUB_KEY_HASH_LEN),
            nonce=_int_field(data, "nonce"),
            eth_signature=TxEthSignature.from_dict(raw_signature) if raw_signature else None,
        )
