"""
cwallet - Colored-coin wallet engine

Address tracking, output selection, transaction signing and ledger sync.
"""

__version__ = "0.3.0"
