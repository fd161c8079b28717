"""
Livestock NFT registry and LiveStake custody ledger.

Livestock animals are tracked as non-fungible tokens. Farmers mint and
maintain the animal records, investors hold the tokens and stake them with
the LiveStake ledger to gain access to the farm reports.
"""

__version__ = '1.0.0'
