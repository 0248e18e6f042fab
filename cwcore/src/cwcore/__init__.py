"""
cwcore - Core primitives for the colored-coin wallet

Provides shared constants, seed handling, key and address derivation.
"""

__version__ = "0.3.0"

from cwcore.constants import (
    ACTIVE_ADDRESS_MARGIN,
    ADDRESS_BLOCK_SIZE,
    BASE_COLOR,
    NEW_COLOR,
    REFRESH_INTERVAL,
    WALLET_STORAGE_KEY,
)
from cwcore.crypto import (
    CryptoError,
    KeyPair,
    address_to_bytes,
    color_to_bytes,
    decode_seed,
    derive_address,
    derive_key_pair,
    encode_seed,
    generate_seed,
    generate_subscription_id,
    verify_signature,
)

__all__ = [
    "ACTIVE_ADDRESS_MARGIN",
    "ADDRESS_BLOCK_SIZE",
    "BASE_COLOR",
    "NEW_COLOR",
    "REFRESH_INTERVAL",
    "WALLET_STORAGE_KEY",
    "CryptoError",
    "KeyPair",
    "address_to_bytes",
    "color_to_bytes",
    "decode_seed",
    "derive_address",
    "derive_key_pair",
    "encode_seed",
    "generate_seed",
    "generate_subscription_id",
    "verify_signature",
]
