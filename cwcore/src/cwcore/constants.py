"""
Ledger and wallet constants.

Colors identify the asset type of a balance. The base network currency has a
reserved textual color; freshly minted assets are requested with the NEW
sentinel and end up colored by the id of the transaction that minted them.
"""

from __future__ import annotations

import base58

# Reserved color of the base network currency
BASE_COLOR = "IOTA"
BASE_ASSET_NAME = "IOTA"
BASE_ASSET_SYMBOL = "I"

# Binary width of a color inside the transaction essence
COLOR_LENGTH = 32

BASE_COLOR_BYTES = bytes(COLOR_LENGTH)
NEW_COLOR_BYTES = b"\xff" * COLOR_LENGTH

# Pseudo-color for funds that should become a new colored asset
NEW_COLOR = base58.b58encode(NEW_COLOR_BYTES).decode("ascii")

SEED_LENGTH = 32

# Address layout: signature scheme version byte + 32-byte public key digest
ADDRESS_VERSION = 0x02
ADDRESS_DIGEST_LENGTH = 32

# Unspent-output pagination: addresses are probed in blocks, and the next
# block is requested while more than (block size - margin) were active.
ADDRESS_BLOCK_SIZE = 20
ACTIVE_ADDRESS_MARGIN = 2

# Seconds between periodic wallet refreshes
REFRESH_INTERVAL = 10.0

# Logical persistence key of the wallet record
WALLET_STORAGE_KEY = "wallet.json"
