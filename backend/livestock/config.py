"""
Livestock NFT configuration.
"""

import os
from typing import Dict, Any

# Collection identity of the livestock registry
DEFAULT_COLLECTION_NAME = 'DeLivX Livestock NFT'
DEFAULT_COLLECTION_SYMBOL = 'DLX-LSNFT'

# Account used when no deployer is configured (local development only)
DEFAULT_DEPLOYER_ADDRESS = '0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266'

# Deployment nonces used to derive component addresses from the deployer
REGISTRY_DEPLOYMENT_NONCE = 0
STAKE_LEDGER_DEPLOYMENT_NONCE = 1

# HTTP header carrying the caller identity for the REST API
CALLER_HEADER = 'HTTP_X_CALLER_ADDRESS'


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes')


def get_livestock_config() -> Dict[str, Any]:
    """Get livestock registry configuration from environment variables."""
    return {
        'collection_name': os.getenv('LIVESTOCK_COLLECTION_NAME', DEFAULT_COLLECTION_NAME),
        'collection_symbol': os.getenv('LIVESTOCK_COLLECTION_SYMBOL', DEFAULT_COLLECTION_SYMBOL),
        'deployer_address': os.getenv('LIVESTOCK_DEPLOYER_ADDRESS', DEFAULT_DEPLOYER_ADDRESS),
        # Empty means state lives in memory only
        'state_file': os.getenv('LIVESTOCK_STATE_FILE', ''),
    }


def get_logging_config() -> Dict[str, Any]:
    """Get structured logging configuration from environment variables."""
    return {
        'level': os.getenv('LIVESTOCK_LOG_LEVEL', 'INFO').upper(),
        'json': _env_flag('LIVESTOCK_LOG_JSON', 'false'),
    }
