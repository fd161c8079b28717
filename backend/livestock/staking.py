"""
LiveStake custody ledger.

Investors stake their livestock tokens with the ledger to unlock the farm
reports for those animals. While a token is staked the ledger holds it in
the registry and remembers who staked it; unstaking hands it back.
"""

import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .addresses import ZERO_ADDRESS, derive_contract_address, normalize_address
from .config import STAKE_LEDGER_DEPLOYMENT_NONCE
from .exceptions import AlreadyStaked, InvalidAddress, NotStaked, Unauthorized
from .logging_utils import (
    log_ledger_operation,
    log_stake_event,
    OperationType,
    create_operation_logger
)
from .registry import LivestockRegistry, RECEIVER_ACK

logger = create_operation_logger("livestake_ledger")


@dataclass
class StakeRecord:
    """Active stake of one token."""
    token_id: int
    staker: str
    staked_at: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


class LiveStakeLedger:
    """
    Custody ledger granting report access to staked livestock tokens.

    A token is in ``get_staked_tokens(a)`` exactly when its stake record
    names ``a`` as staker. Every staked token is held by the ledger in the
    registry.
    """

    def __init__(
        self,
        livestock_nft: LivestockRegistry,
        address: Optional[str] = None,
        lock: Optional[threading.RLock] = None
    ):
        """
        Initialize the ledger and register it as a token receiver.

        Args:
            livestock_nft: Registry whose tokens are staked
            address: Address of the ledger, derived from the registry's
                deployer when omitted
            lock: Sequencing lock, defaults to the registry's lock so that
                stake and unstake are serialized with registry writes
        """
        self.livestock_nft = livestock_nft
        self.address = (
            normalize_address(address, allow_zero=False)
            if address
            else derive_contract_address(livestock_nft.deployer, STAKE_LEDGER_DEPLOYMENT_NONCE)
        )
        self.lock = lock or livestock_nft.lock

        self._stakes: Dict[int, StakeRecord] = {}
        self._staked_tokens: Dict[str, List[int]] = {}

        livestock_nft.register_receiver(self.address, self)

        logger.info(
            "LiveStakeLedger initialized",
            address=self.address,
            livestock_nft=livestock_nft.address
        )

    @log_ledger_operation(OperationType.STAKING, "stake")
    def stake(self, caller: str, token_id: int) -> StakeRecord:
        """
        Take custody of ``token_id`` on behalf of its holder.

        The holder must first approve the ledger (or make it an operator)
        in the registry.

        Raises:
            AlreadyStaked: token already has a stake record
            NotFound: token was never minted
            Unauthorized: caller does not hold the token, or the ledger is
                not authorized to move it
        """
        with self.lock:
            caller = normalize_address(caller, allow_zero=False)
            if caller == self.address:
                raise Unauthorized("The ledger cannot stake on its own behalf")
            if token_id in self._stakes:
                raise AlreadyStaked(f"Livestock token {token_id} is already staked")

            holder = self.livestock_nft.owner_of(token_id)
            if holder != caller:
                raise Unauthorized(f"{caller} does not hold livestock token {token_id}")

            self.livestock_nft.safe_transfer_by_component(self, caller, self.address, token_id)

            record = StakeRecord(token_id=token_id, staker=caller, staked_at=int(time.time()))
            self._stakes[token_id] = record
            self._staked_tokens.setdefault(caller, []).append(token_id)

            log_stake_event(
                "staked",
                token_id,
                caller,
                self.address,
                {"staked_count": len(self._staked_tokens[caller])}
            )
            return record

    @log_ledger_operation(OperationType.UNSTAKING, "unstake")
    def unstake(self, caller: str, token_id: int) -> None:
        """
        Return ``token_id`` to its staker and revoke report access.

        Raises:
            NotStaked: token has no stake record
            Unauthorized: caller is not the staker
        """
        with self.lock:
            record = self._stakes.get(token_id)
            if record is None:
                raise NotStaked(f"Livestock token {token_id} is not staked")

            caller = normalize_address(caller, allow_zero=False)
            if caller != record.staker:
                raise Unauthorized(f"{caller} did not stake livestock token {token_id}")

            self.livestock_nft.safe_transfer_by_component(self, self.address, record.staker, token_id)

            del self._stakes[token_id]
            self._remove_staked_token(record.staker, token_id)

            log_stake_event(
                "unstaked",
                token_id,
                record.staker,
                self.address,
                {"staked_seconds": int(time.time()) - record.staked_at}
            )

    def has_report_access(self, token_id: int) -> bool:
        with self.lock:
            return token_id in self._stakes

    def get_staker(self, token_id: int) -> str:
        with self.lock:
            record = self._stakes.get(token_id)
            return record.staker if record else ZERO_ADDRESS

    def get_staked_tokens(self, staker: str) -> List[int]:
        """Tokens staked by ``staker``; empty for unknown or malformed addresses."""
        with self.lock:
            try:
                staker = normalize_address(staker)
            except InvalidAddress:
                return []
            return list(self._staked_tokens.get(staker, []))

    def get_stake_record(self, token_id: int) -> Optional[StakeRecord]:
        with self.lock:
            record = self._stakes.get(token_id)
            return StakeRecord(**record.to_dict()) if record else None

    def total_staked(self) -> int:
        with self.lock:
            return len(self._stakes)

    def on_token_received(self, operator: str, from_address: str, token_id: int, data: bytes = b"") -> bytes:
        """
        Receiving side of safe transfers. Stateless; always acknowledges.

        Tokens pushed to the ledger by anyone other than the ledger itself
        are accepted but get no stake record, so they grant no report access.
        """
        if not (isinstance(operator, str) and operator.lower() == self.address):
            logger.warning(
                "Livestock token received outside of staking",
                operator=operator,
                from_address=from_address,
                token_id=token_id
            )
        return RECEIVER_ACK

    def to_dict(self) -> Dict[str, Any]:
        """Serialize stake records and per-staker sets."""
        with self.lock:
            return {
                'address': self.address,
                'livestock_nft': self.livestock_nft.address,
                'stakes': [record.to_dict() for record in self._stakes.values()],
                'staked_tokens': {
                    staker: list(tokens) for staker, tokens in self._staked_tokens.items()
                },
            }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        livestock_nft: LivestockRegistry,
        lock: Optional[threading.RLock] = None
    ) -> 'LiveStakeLedger':
        """Rebuild a ledger from :meth:`to_dict` output."""
        ledger = cls(livestock_nft, address=data['address'], lock=lock)
        for record_data in data['stakes']:
            record = StakeRecord(**record_data)
            ledger._stakes[record.token_id] = record
        ledger._staked_tokens = {
            staker: list(tokens) for staker, tokens in data['staked_tokens'].items()
        }
        return ledger

    def _remove_staked_token(self, staker: str, token_id: int) -> None:
        # Swap with the last entry and pop; order of the rest is not kept
        tokens = self._staked_tokens[staker]
        index = tokens.index(token_id)
        tokens[index] = tokens[-1]
        tokens.pop()
        if not tokens:
            del self._staked_tokens[staker]
