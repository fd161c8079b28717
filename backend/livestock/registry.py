"""
Livestock NFT registry.

This module holds the canonical set of livestock records. Each animal is a
non-fungible token with a conventional single-owner ownership model
(approvals, operators, safe transfers) and role-gated lifecycle management:
admins manage farmers, farmers mint tokens and maintain animal metadata.
"""

import threading
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .addresses import ZERO_ADDRESS, derive_contract_address, normalize_address
from .config import (
    DEFAULT_COLLECTION_NAME,
    DEFAULT_COLLECTION_SYMBOL,
    REGISTRY_DEPLOYMENT_NONCE,
)
from .exceptions import InvalidAddress, InvalidMetadata, InvalidReceiver, NotFound, Unauthorized
from .logging_utils import (
    log_ledger_operation,
    log_mint_event,
    OperationType,
    create_operation_logger
)

logger = create_operation_logger("livestock_registry")

# Value a receiving component returns to accept a safe transfer (0x150b7a02)
RECEIVER_ACK = bytes.fromhex('150b7a02')


class Role(str, Enum):
    """Capabilities checked by guarded registry operations."""
    ADMIN = "admin"
    FARMER = "farmer"


@dataclass
class LivestockRecord:
    """Metadata of one livestock token."""
    id: int
    species: str
    birth_date: int
    weight: int
    health_status: str
    farm_id: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LivestockRecord':
        """Create from dictionary."""
        return cls(**data)


class RoleTable:
    """Mapping from account address to the roles it holds."""

    def __init__(self):
        self._roles: Dict[str, Set[Role]] = {}

    def has(self, account: str, role: Role) -> bool:
        return role in self._roles.get(account, ())

    def grant(self, account: str, role: Role) -> bool:
        """Grant ``role`` to ``account``. Returns False if already held."""
        roles = self._roles.setdefault(account, set())
        if role in roles:
            return False
        roles.add(role)
        return True

    def revoke(self, account: str, role: Role) -> bool:
        """Revoke ``role`` from ``account``. Returns False if not held."""
        roles = self._roles.get(account)
        if not roles or role not in roles:
            return False
        roles.discard(role)
        if not roles:
            del self._roles[account]
        return True

    def members(self, role: Role) -> List[str]:
        return [account for account, roles in self._roles.items() if role in roles]

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            account: sorted(role.value for role in roles)
            for account, roles in self._roles.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, List[str]]) -> 'RoleTable':
        table = cls()
        for account, roles in data.items():
            for role in roles:
                table.grant(account, Role(role))
        return table


def _validate_quantity(field_name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidMetadata(f"{field_name} must be a non-negative integer, got {value!r}")
    return value


def _validate_label(field_name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidMetadata(f"{field_name} must be a string, got {value!r}")
    return value


class LivestockRegistry:
    """
    Registry of livestock NFTs.

    Maintains the ownership relation, the role table and three append-only
    indexes (by farm, by species, global). Every public method runs under
    ``self.lock`` and validates all preconditions before changing state, so
    a failed call leaves the registry untouched.
    """

    def __init__(
        self,
        deployer: str,
        name: str = DEFAULT_COLLECTION_NAME,
        symbol: str = DEFAULT_COLLECTION_SYMBOL,
        address: Optional[str] = None,
        lock: Optional[threading.RLock] = None
    ):
        """
        Initialize an empty registry.

        Args:
            deployer: Account that deploys the registry; holds the admin
                role permanently
            name: Collection name
            symbol: Collection symbol
            address: Address of the registry, derived from the deployer
                when omitted
            lock: Sequencing lock shared with other components
        """
        self.deployer = normalize_address(deployer, allow_zero=False)
        self.address = (
            normalize_address(address, allow_zero=False)
            if address
            else derive_contract_address(self.deployer, REGISTRY_DEPLOYMENT_NONCE)
        )
        self.name = name
        self.symbol = symbol
        self.lock = lock or threading.RLock()

        self._roles = RoleTable()
        self._roles.grant(self.deployer, Role.ADMIN)

        self._records: Dict[int, LivestockRecord] = {}
        self._owners: Dict[int, str] = {}
        self._balances: Dict[str, int] = {}
        self._token_approvals: Dict[int, str] = {}
        self._operator_approvals: Dict[str, Set[str]] = {}

        self._farm_index: Dict[str, List[int]] = {}
        self._species_index: Dict[str, List[int]] = {}
        self._all_tokens: List[int] = []
        self._next_token_id = 0

        # Deployed components that must acknowledge safe transfers
        self._receivers: Dict[str, Any] = {}

        logger.info(
            "LivestockRegistry initialized",
            address=self.address,
            deployer=self.deployer,
            name=self.name,
            symbol=self.symbol
        )

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def has_role(self, role: Role, account: str) -> bool:
        with self.lock:
            return self._roles.has(normalize_address(account), Role(role))

    def role_members(self, role: Role) -> List[str]:
        with self.lock:
            return self._roles.members(Role(role))

    @log_ledger_operation(OperationType.ROLE_MANAGEMENT, "grant_role")
    def grant_role(self, caller: str, role: Role, account: str) -> None:
        """Grant a role. Caller must be an admin; redundant grants are no-ops."""
        with self.lock:
            self._require_role(caller, Role.ADMIN)
            role = Role(role)
            account = normalize_address(account, allow_zero=False)

            changed = self._roles.grant(account, role)
            logger.info("Role granted", role=role.value, account=account, changed=changed)

    @log_ledger_operation(OperationType.ROLE_MANAGEMENT, "revoke_role")
    def revoke_role(self, caller: str, role: Role, account: str) -> None:
        """Revoke a role. Caller must be an admin; redundant revokes are no-ops."""
        with self.lock:
            self._require_role(caller, Role.ADMIN)
            role = Role(role)
            account = normalize_address(account, allow_zero=False)

            if role is Role.ADMIN and account == self.deployer:
                raise Unauthorized("The deployer's admin role cannot be revoked")

            changed = self._roles.revoke(account, role)
            logger.info("Role revoked", role=role.value, account=account, changed=changed)

    def add_farmer(self, caller: str, account: str) -> None:
        self.grant_role(caller, Role.FARMER, account)

    def remove_farmer(self, caller: str, account: str) -> None:
        self.revoke_role(caller, Role.FARMER, account)

    # ------------------------------------------------------------------
    # Livestock lifecycle
    # ------------------------------------------------------------------

    @log_ledger_operation(OperationType.LIVESTOCK_MINTING, "mint_livestock")
    def mint_livestock(
        self,
        caller: str,
        to: str,
        species: str,
        birth_date: int,
        weight: int,
        health_status: str,
        farm_id: str
    ) -> int:
        """
        Mint a new livestock token.

        Args:
            caller: Farmer performing the mint
            to: Initial holder of the token
            species: Animal species label
            birth_date: Birth timestamp in seconds
            weight: Weight in grams
            health_status: Health status label
            farm_id: Farm the animal belongs to, fixed for the token's lifetime

        Returns:
            The new token id

        Raises:
            Unauthorized: caller lacks the farmer role
            InvalidAddress: ``to`` is malformed or the zero address
            InvalidMetadata: a metadata field has the wrong type or is negative
            InvalidReceiver: ``to`` is a component that rejects the token
        """
        with self.lock:
            caller = self._require_role(caller, Role.FARMER)
            to = normalize_address(to, allow_zero=False)
            record = LivestockRecord(
                id=self._next_token_id,
                species=_validate_label("species", species),
                birth_date=_validate_quantity("birth_date", birth_date),
                weight=_validate_quantity("weight", weight),
                health_status=_validate_label("health_status", health_status),
                farm_id=_validate_label("farm_id", farm_id),
            )
            token_id = record.id
            self._check_on_received(caller, ZERO_ADDRESS, to, token_id, b"")

            self._next_token_id += 1
            self._owners[token_id] = to
            self._balances[to] = self._balances.get(to, 0) + 1
            self._records[token_id] = record
            self._farm_index.setdefault(record.farm_id, []).append(token_id)
            self._species_index.setdefault(record.species, []).append(token_id)
            self._all_tokens.append(token_id)

            log_mint_event(token_id, to, record.farm_id, record.species, caller)
            return token_id

    @log_ledger_operation(OperationType.METADATA_UPDATE, "update_livestock_metadata")
    def update_livestock_metadata(
        self,
        caller: str,
        token_id: int,
        weight: int,
        health_status: str
    ) -> None:
        """
        Overwrite the mutable metadata of a token.

        Works whoever holds the token, including the staking ledger.
        """
        with self.lock:
            self._require_role(caller, Role.FARMER)
            self._require_minted(token_id)
            weight = _validate_quantity("weight", weight)
            health_status = _validate_label("health_status", health_status)

            record = self._records[token_id]
            previous_weight = record.weight
            record.weight = weight
            record.health_status = health_status

            logger.info(
                "Livestock metadata updated",
                token_id=token_id,
                weight=weight,
                previous_weight=previous_weight,
                health_status=health_status
            )

    def get_livestock_metadata(self, token_id: int) -> LivestockRecord:
        """Return a copy of the token's record. Raises NotFound if never minted."""
        with self.lock:
            self._require_minted(token_id)
            return replace(self._records[token_id])

    def find_livestock(self, token_id: int) -> Optional[LivestockRecord]:
        """Return a copy of the token's record, or None if never minted."""
        with self.lock:
            record = self._records.get(token_id) if self._is_token_id(token_id) else None
            return replace(record) if record else None

    def get_livestocks_by_farm(self, farm_id: str) -> List[int]:
        with self.lock:
            return list(self._farm_index.get(farm_id, []))

    def get_livestocks_by_species(self, species: str) -> List[int]:
        with self.lock:
            return list(self._species_index.get(species, []))

    def get_livestocks_by_owner(self, owner: str) -> List[int]:
        """Tokens currently held by ``owner``, in mint order; empty for malformed addresses."""
        with self.lock:
            try:
                owner = normalize_address(owner)
            except InvalidAddress:
                return []
            return [token_id for token_id in self._all_tokens if self._owners[token_id] == owner]

    def get_all_livestocks(self) -> List[int]:
        with self.lock:
            return list(self._all_tokens)

    # ------------------------------------------------------------------
    # Ownership substrate
    # ------------------------------------------------------------------

    def total_supply(self) -> int:
        with self.lock:
            return len(self._all_tokens)

    def balance_of(self, owner: str) -> int:
        with self.lock:
            return self._balances.get(normalize_address(owner, allow_zero=False), 0)

    def owner_of(self, token_id: int) -> str:
        with self.lock:
            return self._require_minted(token_id)

    def token_by_index(self, index: int) -> int:
        with self.lock:
            if not 0 <= index < len(self._all_tokens):
                raise IndexError(f"Global index {index} out of bounds")
            return self._all_tokens[index]

    def token_of_owner_by_index(self, owner: str, index: int) -> int:
        with self.lock:
            owned = self.get_livestocks_by_owner(owner)
            if not 0 <= index < len(owned):
                raise IndexError(f"Owner index {index} out of bounds")
            return owned[index]

    @log_ledger_operation(OperationType.APPROVAL, "approve")
    def approve(self, caller: str, delegate: str, token_id: int) -> None:
        """
        Authorize ``delegate`` to transfer ``token_id``.

        The zero address clears the authorization. Caller must be the holder
        or one of the holder's operators.
        """
        with self.lock:
            owner = self._require_minted(token_id)
            caller = self._require_external_caller(caller)
            delegate = normalize_address(delegate)

            if caller != owner and not self._is_operator(owner, caller):
                raise Unauthorized(f"{caller} may not approve livestock token {token_id}")

            if delegate == ZERO_ADDRESS:
                self._token_approvals.pop(token_id, None)
            else:
                self._token_approvals[token_id] = delegate

            logger.info("Livestock token approval set", token_id=token_id, owner=owner, delegate=delegate)

    def get_approved(self, token_id: int) -> str:
        with self.lock:
            self._require_minted(token_id)
            return self._token_approvals.get(token_id, ZERO_ADDRESS)

    @log_ledger_operation(OperationType.APPROVAL, "set_approval_for_all")
    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        """Authorize or deauthorize ``operator`` for every token the caller holds."""
        with self.lock:
            caller = self._require_external_caller(caller)
            operator = normalize_address(operator, allow_zero=False)
            if operator == caller:
                raise InvalidAddress("An account cannot be its own operator")

            operators = self._operator_approvals.setdefault(caller, set())
            if approved:
                operators.add(operator)
            else:
                operators.discard(operator)
            if not operators:
                del self._operator_approvals[caller]

            logger.info("Operator approval set", owner=caller, operator=operator, approved=approved)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        with self.lock:
            return self._is_operator(normalize_address(owner), normalize_address(operator))

    @log_ledger_operation(OperationType.TRANSFER, "transfer_from")
    def transfer_from(self, caller: str, from_address: str, to: str, token_id: int) -> None:
        """Move a token without consulting the receiving side."""
        with self.lock:
            self._transfer(caller, from_address, to, token_id, data=b"", safe=False)

    @log_ledger_operation(OperationType.TRANSFER, "safe_transfer_from")
    def safe_transfer_from(
        self,
        caller: str,
        from_address: str,
        to: str,
        token_id: int,
        data: bytes = b""
    ) -> None:
        """Move a token; a registered receiver at ``to`` must acknowledge it."""
        with self.lock:
            self._transfer(caller, from_address, to, token_id, data=data, safe=True)

    @log_ledger_operation(OperationType.TRANSFER, "safe_transfer_by_component")
    def safe_transfer_by_component(
        self,
        component: Any,
        from_address: str,
        to: str,
        token_id: int,
        data: bytes = b""
    ) -> None:
        """
        Safe transfer initiated by a registered component as the caller.

        ``component`` must be the object registered at ``component.address``;
        its address alone is refused as a caller by every other entry point.
        """
        with self.lock:
            address = getattr(component, 'address', None)
            if not isinstance(address, str) or self._receivers.get(address.lower()) is not component:
                raise Unauthorized("Caller is not a registered component")
            self._transfer(address, from_address, to, token_id, data=data, safe=True, component=True)

    def register_receiver(self, address: str, receiver: Any) -> None:
        """Record that a deployed component lives at ``address``."""
        with self.lock:
            address = normalize_address(address, allow_zero=False)
            self._receivers[address] = receiver
            logger.info("Token receiver registered", address=address, receiver=type(receiver).__name__)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the registry state. Indexes and balances are derived."""
        with self.lock:
            return {
                'name': self.name,
                'symbol': self.symbol,
                'address': self.address,
                'deployer': self.deployer,
                'next_token_id': self._next_token_id,
                'roles': self._roles.to_dict(),
                'records': [self._records[token_id].to_dict() for token_id in self._all_tokens],
                'owners': {str(token_id): owner for token_id, owner in self._owners.items()},
                'token_approvals': {
                    str(token_id): delegate for token_id, delegate in self._token_approvals.items()
                },
                'operator_approvals': {
                    owner: sorted(operators) for owner, operators in self._operator_approvals.items()
                },
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], lock: Optional[threading.RLock] = None) -> 'LivestockRegistry':
        """Rebuild a registry from :meth:`to_dict` output."""
        registry = cls(
            deployer=data['deployer'],
            name=data['name'],
            symbol=data['symbol'],
            address=data['address'],
            lock=lock
        )
        registry._roles = RoleTable.from_dict(data['roles'])
        registry._roles.grant(registry.deployer, Role.ADMIN)

        # Records are stored in mint order, so replaying them rebuilds the indexes
        for record_data in data['records']:
            record = LivestockRecord.from_dict(record_data)
            owner = data['owners'][str(record.id)]
            registry._records[record.id] = record
            registry._owners[record.id] = owner
            registry._balances[owner] = registry._balances.get(owner, 0) + 1
            registry._farm_index.setdefault(record.farm_id, []).append(record.id)
            registry._species_index.setdefault(record.species, []).append(record.id)
            registry._all_tokens.append(record.id)

        registry._next_token_id = data['next_token_id']
        registry._token_approvals = {
            int(token_id): delegate for token_id, delegate in data['token_approvals'].items()
        }
        registry._operator_approvals = {
            owner: set(operators) for owner, operators in data['operator_approvals'].items()
        }
        return registry

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_external_caller(self, caller: str) -> str:
        """Normalize ``caller``; registered components cannot start calls."""
        caller = normalize_address(caller, allow_zero=False)
        if caller in self._receivers:
            raise Unauthorized(f"{caller} is a deployed component and cannot initiate calls")
        return caller

    def _require_role(self, caller: str, role: Role) -> str:
        caller = self._require_external_caller(caller)
        if not self._roles.has(caller, role):
            raise Unauthorized(f"{caller} is missing role {role.value}")
        return caller

    @staticmethod
    def _is_token_id(token_id: Any) -> bool:
        return isinstance(token_id, int) and not isinstance(token_id, bool)

    def _require_minted(self, token_id: int) -> str:
        """Return the holder of ``token_id`` or raise NotFound."""
        if not self._is_token_id(token_id) or token_id not in self._owners:
            raise NotFound(f"Livestock token {token_id} does not exist")
        return self._owners[token_id]

    def _is_operator(self, owner: str, operator: str) -> bool:
        return operator in self._operator_approvals.get(owner, ())

    def _is_authorized(self, owner: str, spender: str, token_id: int) -> bool:
        return (
            spender == owner
            or self._is_operator(owner, spender)
            or self._token_approvals.get(token_id) == spender
        )

    def _check_on_received(
        self,
        operator: str,
        from_address: str,
        to: str,
        token_id: int,
        data: bytes
    ) -> None:
        receiver = self._receivers.get(to)
        if receiver is None:
            return

        hook = getattr(receiver, 'on_token_received', None)
        ack = hook(operator, from_address, token_id, data) if hook else None
        if ack != RECEIVER_ACK:
            raise InvalidReceiver(f"{to} did not accept livestock token {token_id}")

    def _transfer(
        self,
        caller: str,
        from_address: str,
        to: str,
        token_id: int,
        data: bytes,
        safe: bool,
        component: bool = False
    ) -> None:
        owner = self._require_minted(token_id)
        caller = (
            normalize_address(caller, allow_zero=False)
            if component
            else self._require_external_caller(caller)
        )
        from_address = normalize_address(from_address)
        to = normalize_address(to, allow_zero=False)

        if from_address != owner:
            raise Unauthorized(f"{from_address} does not hold livestock token {token_id}")
        if not self._is_authorized(owner, caller, token_id):
            raise Unauthorized(f"{caller} is not authorized to transfer livestock token {token_id}")
        if safe:
            self._check_on_received(caller, from_address, to, token_id, data)

        self._token_approvals.pop(token_id, None)
        self._balances[from_address] -= 1
        if not self._balances[from_address]:
            del self._balances[from_address]
        self._balances[to] = self._balances.get(to, 0) + 1
        self._owners[token_id] = to

        logger.info(
            "Livestock token transferred",
            token_id=token_id,
            from_address=from_address,
            to=to,
            operator=caller
        )
