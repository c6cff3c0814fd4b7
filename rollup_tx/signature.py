"""
Signature containers attached to transactions.
"""
from typing import Optional
from rollup_tx.crypto import (
    sign,
    verify_signature,
    pub_key_hash,
    eth_sign,
    eth_verify,
    serialize_eth_public_key,
    eth_public_key_to_address,
)


def _from_hex(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith('0x') else value)


class TxSignature:
    """Native rollup signature: signer's public key plus a detached signature."""

    def __init__(self, pub_key: bytes, signature: bytes):
        self.pub_key = pub_key
        self.signature = signature

    @classmethod
    def sign(cls, signing_key, message: bytes) -> 'TxSignature':
        return cls(pub_key=bytes(signing_key.verify_key), signature=sign(signing_key, message))

    def verify(self, message: bytes) -> Optional[bytes]:
        """Returns the signer's public key hash if the signature is valid."""
        if verify_signature(self.pub_key, self.signature, message):
            return pub_key_hash(self.pub_key)
        return None

    def to_dict(self) -> dict:
        return {
            "pubKey": self.pub_key.hex(),
            "signature": self.signature.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TxSignature':
        return cls(pub_key=_from_hex(data["pubKey"]), signature=_from_hex(data["signature"]))

    def __eq__(self, other):
        if not isinstance(other, TxSignature):
            return NotImplemented
        return self.pub_key == other.pub_key and self.signature == other.signature

    def __hash__(self):
        return hash((self.pub_key, self.signature))


class TxEthSignature:
    """
    Ethereum personal-message signature.

    The signer's uncompressed public key travels with the signature so the
    signer address can be derived without public key recovery.
    """

    def __init__(self, public_key: bytes, signature: bytes):
        self.public_key = public_key
        self.signature = signature

    @classmethod
    def sign(cls, private_key, message: str) -> 'TxEthSignature':
        return cls(
            public_key=serialize_eth_public_key(private_key.public_key()),
            signature=eth_sign(private_key, message),
        )

    def signer_address(self, message: str) -> Optional[bytes]:
        """Returns the signer's address if the signature is valid for the message."""
        if eth_verify(self.public_key, self.signature, message):
            return eth_public_key_to_address(self.public_key)
        return None

    def to_dict(self) -> dict:
        return {
            "publicKey": '0x' + self.public_key.hex(),
            "signature": '0x' + self.signature.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TxEthSignature':
        return cls(public_key=_from_hex(data["publicKey"]), signature=_from_hex(data["signature"]))

    def __eq__(self, other):
        if not isinstance(other, TxEthSignature):
            return NotImplemented
        return self.public_key == other.public_key and self.signature == other.signature

    def __hash__(self):
        return hash((self.public_key, self.signature))


class EthSignData:
    """An Ethereum signature together with the exact message that was signed."""

    def __init__(self, signature: TxEthSignature, message: str):
        self.signature = signature
        self.message = message

    def signer_address(self) -> Optional[bytes]:
        if not isinstance(self.message, str):
            return None
        return self.signature.signer_address(self.message)

    def to_dict(self) -> dict:
        return {
            "signature": self.signature.to_dict(),
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EthSignData':
        message = data["message"]
        if not isinstance(message, str):
            raise ValueError(f"Signed message must be a string, got {type(message).__name__}")
        return cls(signature=TxEthSignature.from_dict(data["signature"]), message=message)

    def __eq__(self, other):
        if not isinstance(other, EthSignData):
            return NotImplemented
        return self.signature == other.signature and self.message == other.message

    def __hash__(self):
        return hash((self.signature, self.message))
