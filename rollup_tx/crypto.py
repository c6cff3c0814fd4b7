"""
Core cryptographic functions for rollup transactions.

Native (rollup-level) keys are ed25519 keys from PyNaCl. Off-chain
authorization uses Ethereum-style secp256k1 keys over personal messages.
"""
import hashlib
from Crypto.Hash import keccak
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from cryptography.hazmat.primitives import serialization
from cryptography.exceptions import InvalidSignature
import nacl.signing
import nacl.exceptions

from rollup_tx.params import ADDRESS_LEN, PUB_KEY_HASH_LEN

ETH_MESSAGE_PREFIX = "\x19Ethereum Signed Message:\n"


def generate_hash(data: bytes) -> bytes:
    """Generates a SHA-256 hash."""
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """Generates a Keccak-256 hash."""
    return keccak.new(digest_bits=256, data=data).digest()


# --- Native rollup keys (ed25519) ---

def generate_key_pair() -> tuple[nacl.signing.SigningKey, nacl.signing.VerifyKey]:
    """Generates a native signing key and its verify key."""
    signing_key = nacl.signing.SigningKey.generate()
    return signing_key, signing_key.verify_key


def pub_key_hash(pub_key: bytes) -> bytes:
    """Derives the 20-byte public key hash identifying a native signer."""
    return generate_hash(pub_key)[:PUB_KEY_HASH_LEN]


def sign(signing_key: nacl.signing.SigningKey, data: bytes) -> bytes:
    """Signs byte data, returning the detached 64-byte signature."""
    return signing_key.sign(data).signature


def verify_signature(pub_key: bytes, signature: bytes, data: bytes) -> bool:
    """Verifies a detached ed25519 signature."""
    try:
        nacl.signing.VerifyKey(pub_key).verify(data, signature)
        return True
    except (nacl.exceptions.BadSignatureError, ValueError, TypeError):
        # Catch both cryptographic failures and format/length errors
        return False


# --- Ethereum-style keys (secp256k1) ---

def generate_eth_key_pair() -> tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """Generates an ECDSA private/public key pair (SECP256k1)."""
    private_key = ec.generate_private_key(ec.SECP256K1())
    return private_key, private_key.public_key()


def serialize_eth_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Serializes a public key as a 65-byte uncompressed point."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint
    )


def deserialize_eth_public_key(data: bytes) -> ec.EllipticCurvePublicKey:
    """Loads a public key from its uncompressed point encoding."""
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)


def eth_public_key_to_address(public_key: bytes) -> bytes:
    """Derives the Ethereum address from an uncompressed public key."""
    return keccak256(public_key[1:])[-ADDRESS_LEN:]


def eth_message_digest(message: str) -> bytes:
    """Keccak-256 of a personal message with the Ethereum prefix applied."""
    raw = message.encode('utf-8')
    prefixed = ETH_MESSAGE_PREFIX.encode('utf-8') + str(len(raw)).encode('ascii') + raw
    return keccak256(prefixed)


def eth_sign(private_key: ec.EllipticCurvePrivateKey, message: str) -> bytes:
    """Signs a personal message, returning a DER-encoded ECDSA signature."""
    return private_key.sign(eth_message_digest(message), ec.ECDSA(Prehashed(hashes.SHA256())))


def eth_verify(public_key: bytes, signature: bytes, message: str) -> bool:
    """Verifies a personal-message signature against an uncompressed public key."""
    try:
        key = deserialize_eth_public_key(public_key)
        key.verify(signature, eth_message_digest(message), ec.ECDSA(Prehashed(hashes.SHA256())))
        return True
    except (InvalidSignature, ValueError, TypeError, AttributeError):
        return False
