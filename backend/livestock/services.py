"""
Livestock services.

This module deploys a livestock registry together with its LiveStake
ledger, shares one sequencing lock between them, and persists their state
as JSON snapshots.
"""

import json
import os
import tempfile
import threading
from typing import Optional, Dict, Any, Callable

import structlog

from .config import get_livestock_config
from .logging_utils import log_operation_context, OperationType
from .registry import LivestockRegistry
from .staking import LiveStakeLedger

logger = structlog.get_logger(__name__)

SNAPSHOT_VERSION = 1


class LivestockService:
    """
    One deployment of the livestock registry and the LiveStake ledger.

    Both components share ``self.lock`` so every operation, including a
    stake that calls back into the registry, runs to completion before the
    next one starts.
    """

    def __init__(
        self,
        deployer: Optional[str] = None,
        name: Optional[str] = None,
        symbol: Optional[str] = None,
        state_file: Optional[str] = None,
        registry: Optional[LivestockRegistry] = None,
        stake_ledger: Optional[LiveStakeLedger] = None
    ):
        """
        Deploy fresh components, or wrap already-built ones.

        Args:
            deployer: Deploying account, defaults to LIVESTOCK_DEPLOYER_ADDRESS
            name: Collection name, defaults to LIVESTOCK_COLLECTION_NAME
            symbol: Collection symbol, defaults to LIVESTOCK_COLLECTION_SYMBOL
            state_file: Snapshot path used by :meth:`commit`
            registry: Existing registry (used when restoring a snapshot)
            stake_ledger: Existing ledger bound to ``registry``
        """
        self.config = get_livestock_config()
        self.state_file = state_file if state_file is not None else self.config['state_file']

        if registry is None:
            self.lock = threading.RLock()
            self.registry = LivestockRegistry(
                deployer=deployer or self.config['deployer_address'],
                name=name or self.config['collection_name'],
                symbol=symbol or self.config['collection_symbol'],
                lock=self.lock
            )
            self.stake_ledger = LiveStakeLedger(self.registry, lock=self.lock)
        else:
            self.lock = registry.lock
            self.registry = registry
            self.stake_ledger = stake_ledger or LiveStakeLedger(registry, lock=self.lock)

        logger.info(
            "LivestockService initialized",
            registry=self.registry.address,
            stake_ledger=self.stake_ledger.address,
            deployer=self.registry.deployer,
            state_file=self.state_file or None
        )

    def get_status(self) -> Dict[str, Any]:
        """Summary of the deployment for health checks and dashboards."""
        with self.lock:
            return {
                "name": self.registry.name,
                "symbol": self.registry.symbol,
                "registry_address": self.registry.address,
                "stake_ledger_address": self.stake_ledger.address,
                "deployer": self.registry.deployer,
                "total_supply": self.registry.total_supply(),
                "total_staked": self.stake_ledger.total_staked(),
                "persistent": bool(self.state_file),
            }

    def snapshot(self) -> Dict[str, Any]:
        """Serialize both components under the lock."""
        with self.lock:
            return {
                "version": SNAPSHOT_VERSION,
                "registry": self.registry.to_dict(),
                "stake_ledger": self.stake_ledger.to_dict(),
            }

    @classmethod
    def restore(cls, snapshot: Dict[str, Any], state_file: Optional[str] = None) -> 'LivestockService':
        """Rebuild a service from :meth:`snapshot` output."""
        version = snapshot.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version}")

        lock = threading.RLock()
        registry = LivestockRegistry.from_dict(snapshot["registry"], lock=lock)
        stake_ledger = LiveStakeLedger.from_dict(snapshot["stake_ledger"], registry, lock=lock)
        return cls(registry=registry, stake_ledger=stake_ledger, state_file=state_file)

    def rollback(self, snapshot: Dict[str, Any]) -> None:
        """
        Replace both components with the state in ``snapshot``.

        The rebuilt components keep ``self.lock``, so callers may roll back
        while holding it.
        """
        with self.lock:
            self.registry = LivestockRegistry.from_dict(snapshot["registry"], lock=self.lock)
            self.stake_ledger = LiveStakeLedger.from_dict(
                snapshot["stake_ledger"], self.registry, lock=self.lock
            )
            logger.warning(
                "Livestock state rolled back",
                total_supply=self.registry.total_supply(),
                total_staked=self.stake_ledger.total_staked()
            )

    def apply(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run a mutating operation and persist its result.

        If the state file cannot be written the in-memory state is rolled
        back before the error propagates, so a failed call has no effect.
        """
        with self.lock:
            before = self.snapshot() if self.state_file else None
            result = operation(*args, **kwargs)
            try:
                self.commit()
            except Exception:
                self.rollback(before)
                raise
            return result

    def save_state_to_file(self, filepath: Optional[str] = None) -> None:
        """
        Write a snapshot to ``filepath`` atomically.

        The snapshot goes to a temporary file in the same directory which
        then replaces the target, so readers see either the old or the new
        state in full.
        """
        filepath = filepath or self.state_file
        if not filepath:
            raise ValueError("No state file configured")

        with log_operation_context(OperationType.SNAPSHOT, "save_state", {"filepath": filepath}):
            data = self.snapshot()
            directory = os.path.dirname(os.path.abspath(filepath))
            os.makedirs(directory, exist_ok=True)

            fd, tmp_path = tempfile.mkstemp(prefix=".livestock-", suffix=".json", dir=directory)
            try:
                with os.fdopen(fd, 'w') as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, filepath)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

            logger.info(
                "Livestock state saved to file",
                filepath=filepath,
                total_supply=len(data["registry"]["records"]),
                total_staked=len(data["stake_ledger"]["stakes"])
            )

    @classmethod
    def load_state_from_file(cls, filepath: str) -> 'LivestockService':
        """Load a service from a snapshot file written by :meth:`save_state_to_file`."""
        with log_operation_context(OperationType.SNAPSHOT, "load_state", {"filepath": filepath}):
            with open(filepath, 'r') as f:
                data = json.load(f)
            service = cls.restore(data, state_file=filepath)

        logger.info("Livestock state loaded from file", filepath=filepath)
        return service

    def commit(self) -> None:
        """Persist the current state when a state file is configured."""
        if self.state_file:
            self.save_state_to_file()


# Global service instance
_livestock_service: Optional[LivestockService] = None
_service_lock = threading.Lock()


def get_livestock_service() -> LivestockService:
    """Get the process-wide service, loading the state file if one exists."""
    global _livestock_service
    with _service_lock:
        if _livestock_service is None:
            state_file = get_livestock_config()['state_file']
            if state_file and os.path.exists(state_file):
                _livestock_service = LivestockService.load_state_from_file(state_file)
            else:
                _livestock_service = LivestockService(state_file=state_file)
        return _livestock_service


def set_livestock_service(service: Optional[LivestockService]) -> None:
    """Replace the process-wide service; ``None`` forces a fresh deployment."""
    global _livestock_service
    with _service_lock:
        _livestock_service = service
