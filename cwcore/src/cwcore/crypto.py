"""
Cryptographic primitives for the wallet.

Keys are secp256k1 (coincurve). Every address of a wallet is derived
deterministically from the wallet seed and an address index:

    secret  = BLAKE2b-256(seed || uint64_le(index))   (reduced into the curve order)
    address = base58(ADDRESS_VERSION || BLAKE2b-256(compressed_pubkey))
"""

from __future__ import annotations

import hashlib
import secrets

import base58
from coincurve import PrivateKey, PublicKey

from cwcore.constants import (
    ADDRESS_DIGEST_LENGTH,
    ADDRESS_VERSION,
    BASE_COLOR,
    BASE_COLOR_BYTES,
    COLOR_LENGTH,
    NEW_COLOR,
    NEW_COLOR_BYTES,
    SEED_LENGTH,
)

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)


class CryptoError(Exception):
    pass


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def generate_seed() -> bytes:
    """Generate a fresh random wallet seed."""
    return secrets.token_bytes(SEED_LENGTH)


def encode_seed(seed: bytes) -> str:
    return base58.b58encode(seed).decode("ascii")


def decode_seed(seed_text: str) -> bytes:
    """Decode a base58 seed, checking its length."""
    try:
        seed = base58.b58decode(seed_text)
    except ValueError as e:
        raise CryptoError(f"Invalid seed encoding: {e}") from e

    if len(seed) != SEED_LENGTH:
        raise CryptoError(f"Invalid seed length: {len(seed)}, expected {SEED_LENGTH}")
    return seed


def generate_subscription_id() -> str:
    """Opaque random id, unrelated to any wallet address."""
    return encode_seed(generate_seed())


class KeyPair:
    """secp256k1 key pair used to sign transaction essences."""

    def __init__(self, private_key: PrivateKey | None = None):
        if private_key is None:
            private_key = PrivateKey()
        self._private_key = private_key
        self._public_key = private_key.public_key

    def sign(self, message: bytes) -> bytes:
        """Sign a message with SHA256 hashing."""
        return self._private_key.sign(message)

    def verify(self, message: bytes, signature: bytes) -> bool:
        try:
            return self._public_key.verify(signature, message)
        except Exception:
            return False

    def public_key_bytes(self) -> bytes:
        return self._public_key.format(compressed=True)

    def address(self) -> str:
        return public_key_to_address(self.public_key_bytes())


def verify_signature(public_key_bytes: bytes, message: bytes, signature: bytes) -> bool:
    try:
        return PublicKey(public_key_bytes).verify(signature, message)
    except Exception:
        return False


def derive_key_pair(seed: bytes, index: int) -> KeyPair:
    """Derive the key pair for address `index` of `seed`."""
    if index < 0:
        raise CryptoError(f"Address index must be non-negative, got {index}")

    digest = blake2b_256(seed + index.to_bytes(8, "little"))
    # Map into [1, n - 1] so every digest yields a valid secret
    secret_int = int.from_bytes(digest, "big") % (SECP256K1_N - 1) + 1

    return KeyPair(PrivateKey(secret_int.to_bytes(32, "big")))


def public_key_to_address(public_key_bytes: bytes) -> str:
    if len(public_key_bytes) != 33:
        raise CryptoError(f"Invalid compressed pubkey length: {len(public_key_bytes)}")

    payload = bytes([ADDRESS_VERSION]) + blake2b_256(public_key_bytes)
    return base58.b58encode(payload).decode("ascii")


def derive_address(seed: bytes, index: int) -> str:
    """Derive address `index` of `seed`. Same seed and index always give the same address."""
    return derive_key_pair(seed, index).address()


def address_to_bytes(address: str) -> bytes:
    """Binary form of an address as used in the transaction essence."""
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise CryptoError(f"Invalid address encoding: {address}") from e

    if len(raw) != 1 + ADDRESS_DIGEST_LENGTH or raw[0] != ADDRESS_VERSION:
        raise CryptoError(f"Invalid address: {address}")
    return raw


def color_to_bytes(color: str) -> bytes:
    """Binary form of a color: base color is all zeros, NEW is all 0xFF."""
    if color == BASE_COLOR:
        return BASE_COLOR_BYTES
    if color == NEW_COLOR:
        return NEW_COLOR_BYTES

    try:
        raw = base58.b58decode(color)
    except ValueError as e:
        raise CryptoError(f"Invalid color encoding: {color}") from e

    if len(raw) != COLOR_LENGTH:
        raise CryptoError(f"Invalid color length: {len(raw)}, expected {COLOR_LENGTH}")
    return raw
