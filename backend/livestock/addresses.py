"""
Account address helpers.
"""

import hashlib
import re

from .exceptions import InvalidAddress

ZERO_ADDRESS = '0x' + '0' * 40

_ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')


def normalize_address(address: str, allow_zero: bool = True) -> str:
    """
    Validate an address and return its canonical lower-case form.

    Raises:
        InvalidAddress: malformed address, or the zero address when
            ``allow_zero`` is False
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address.strip()):
        raise InvalidAddress(f"Invalid address: {address!r}")

    normalized = address.strip().lower()
    if not allow_zero and normalized == ZERO_ADDRESS:
        raise InvalidAddress("Zero address is not allowed here")
    return normalized


def derive_contract_address(deployer: str, nonce: int) -> str:
    """Derive a deterministic component address from its deployer and nonce."""
    data = f"{normalize_address(deployer)}:{nonce}".encode()
    return '0x' + hashlib.sha256(data).hexdigest()[-40:]
