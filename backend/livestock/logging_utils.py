"""
Structured logging utilities for livestock ledger operations.

This module provides structlog configuration plus helpers for tracking
registry and staking operations, their timing and the domain events
(mints, stakes, unstakes) they produce.
"""

import logging
import time
import functools
from typing import Dict, Any, Optional, Callable
from contextlib import contextmanager
from enum import Enum

import structlog

from .config import get_logging_config

logger = structlog.get_logger(__name__)


class OperationType(Enum):
    """Types of ledger operations for logging."""
    ROLE_MANAGEMENT = "role_management"
    LIVESTOCK_MINTING = "livestock_minting"
    METADATA_UPDATE = "metadata_update"
    APPROVAL = "approval"
    TRANSFER = "transfer"
    STAKING = "staking"
    UNSTAKING = "unstaking"
    SNAPSHOT = "snapshot"


class LogLevel(Enum):
    """Log levels for ledger operations."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum log level name, defaults to LIVESTOCK_LOG_LEVEL
        json_output: Render JSON lines instead of console output,
            defaults to LIVESTOCK_LOG_JSON
    """
    config = get_logging_config()
    level = level or config['level']
    json_output = config['json'] if json_output is None else json_output

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level)
        ),
        cache_logger_on_first_use=False,
    )


def log_ledger_operation(
    operation_type: OperationType,
    operation_name: str,
    level: LogLevel = LogLevel.INFO,
    include_performance: bool = True
):
    """
    Decorator for logging ledger operations with timing.

    Failures are logged and re-raised unchanged.

    Args:
        operation_type: Type of ledger operation
        operation_name: Name of the operation
        level: Log level for the start and completion entries
        include_performance: Whether to include timing metrics
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            operation_id = f"{operation_name}_{int(start_time)}"

            getattr(logger, level.value)(
                "Ledger operation started",
                operation_id=operation_id,
                operation_type=operation_type.value,
                operation_name=operation_name,
                status="started",
            )

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                error_data = {
                    "operation_id": operation_id,
                    "operation_type": operation_type.value,
                    "operation_name": operation_name,
                    "status": "failed",
                    "success": False,
                    "error_type": type(e).__name__,
                    "error_message": str(e)
                }
                if include_performance:
                    error_data.update(_performance_data(start_time))

                # Preconditions are checked first, so state is unchanged here
                logger.warning("Ledger operation rejected", **error_data)
                raise

            success_data = {
                "operation_id": operation_id,
                "operation_type": operation_type.value,
                "operation_name": operation_name,
                "status": "completed",
                "success": True
            }
            if include_performance:
                success_data.update(_performance_data(start_time))

            getattr(logger, level.value)("Ledger operation completed", **success_data)
            return result

        return wrapper

    return decorator


@contextmanager
def log_operation_context(
    operation_type: OperationType,
    operation_name: str,
    context_data: Optional[Dict[str, Any]] = None,
    level: LogLevel = LogLevel.INFO
):
    """
    Context manager for logging a block of ledger work.

    Args:
        operation_type: Type of ledger operation
        operation_name: Name of the operation
        context_data: Additional context data to log
        level: Log level for the operation
    """
    start_time = time.time()
    operation_id = f"{operation_name}_{int(start_time)}"
    context_data = context_data or {}

    getattr(logger, level.value)(
        "Ledger operation context started",
        operation_id=operation_id,
        operation_type=operation_type.value,
        operation_name=operation_name,
        status="started",
        **context_data
    )

    try:
        yield operation_id
    except Exception as e:
        logger.error(
            "Ledger operation context failed",
            operation_id=operation_id,
            operation_type=operation_type.value,
            operation_name=operation_name,
            status="failed",
            success=False,
            error_type=type(e).__name__,
            error_message=str(e),
            **_performance_data(start_time),
            **context_data
        )
        raise

    getattr(logger, level.value)(
        "Ledger operation context completed",
        operation_id=operation_id,
        operation_type=operation_type.value,
        operation_name=operation_name,
        status="completed",
        success=True,
        **_performance_data(start_time),
        **context_data
    )


def log_mint_event(
    token_id: int,
    recipient: str,
    farm_id: str,
    species: str,
    minter: str,
    level: LogLevel = LogLevel.INFO
):
    """
    Log a livestock mint.

    Args:
        token_id: Newly assigned token id
        recipient: Address receiving the token
        farm_id: Farm the animal belongs to
        species: Animal species
        minter: Farmer that minted the token
        level: Log level
    """
    getattr(logger, level.value)(
        "Livestock mint event",
        event_type="livestock_minted",
        token_id=token_id,
        recipient=recipient,
        farm_id=farm_id,
        species=species,
        minter=minter,
        timestamp=time.time()
    )


def log_stake_event(
    event_type: str,
    token_id: int,
    staker: str,
    custodian: str,
    additional_data: Optional[Dict[str, Any]] = None,
    level: LogLevel = LogLevel.INFO
):
    """
    Log a custody change on the staking ledger.

    Args:
        event_type: "staked" or "unstaked"
        token_id: Token moved in or out of custody
        staker: Address that owns the stake
        custodian: Address of the staking ledger
        additional_data: Additional event data
        level: Log level
    """
    log_data = {
        "event_type": "stake_event",
        "stake_event_type": event_type,
        "token_id": token_id,
        "staker": staker,
        "custodian": custodian,
        "timestamp": time.time()
    }

    if additional_data:
        log_data.update(additional_data)

    getattr(logger, level.value)("LiveStake event", **log_data)


def _performance_data(start_time: float) -> Dict[str, Any]:
    execution_time = time.time() - start_time
    return {
        "execution_time_seconds": execution_time,
        "performance_category": _categorize_performance(execution_time)
    }


def _categorize_performance(execution_time: float) -> str:
    """
    Categorize performance based on execution time.

    Args:
        execution_time: Execution time in seconds

    Returns:
        Performance category string
    """
    if execution_time < 0.001:
        return "excellent"
    elif execution_time < 0.01:
        return "good"
    elif execution_time < 0.1:
        return "acceptable"
    elif execution_time < 1.0:
        return "slow"
    else:
        return "very_slow"


def create_operation_logger(component_name: str) -> structlog.BoundLogger:
    """
    Create a logger bound to a specific component.

    Args:
        component_name: Name of the component

    Returns:
        Bound logger with component context
    """
    return logger.bind(component=component_name)
