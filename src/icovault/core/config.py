"""
icovault Configuration

Supports testnet, devnet and mainnet with separate timelock delays.

SECURITY NOTICE:
- The initialization key MUST be provided via environment on mainnet
- Never reuse a testnet initialization key on mainnet
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from icovault.core.constants import DEFAULT_PROGRAM_ID, TIMELOCK_DELAYS

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    DEVNET = "devnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# Identity accepted as initialization key on non-mainnet networks when none is set
TESTNET_INIT_KEY = "icovault-testnet-init-key"


def _get_network(value: Optional[str] = None) -> NetworkType:
    raw = (value if value is not None else os.getenv("ICOVAULT_NETWORK", "testnet")).strip().lower()
    try:
        return NetworkType(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"ICOVAULT_NETWORK must be one of {[n.value for n in NetworkType]}, got {raw!r}"
        ) from exc


def _get_init_key(network: NetworkType) -> str:
    """Get the initialization key, with mainnet enforcement.

    On mainnet, a missing key raises ConfigurationError.
    On other networks, the well-known test key is used with a warning.
    """
    value = os.getenv("ICOVAULT_INIT_KEY", "").strip()
    if value:
        return value

    if network is NetworkType.MAINNET:
        raise ConfigurationError(
            "CRITICAL: ICOVAULT_INIT_KEY environment variable required for mainnet."
        )

    logger.warning(
        "Security: ICOVAULT_INIT_KEY not set, using the well-known test key for %s. "
        "Set this environment variable for production.",
        network.value,
        extra={"event": "config.init_key_default", "network": network.value},
    )
    return TESTNET_INIT_KEY


def _get_timelock_delay(network: NetworkType) -> int:
    override = os.getenv("ICOVAULT_TIMELOCK_DELAY", "").strip()
    if not override:
        return TIMELOCK_DELAYS[network.value]
    try:
        delay = int(override)
    except ValueError as exc:
        raise ConfigurationError("ICOVAULT_TIMELOCK_DELAY must be an integer number of seconds") from exc
    if delay < 0:
        raise ConfigurationError("ICOVAULT_TIMELOCK_DELAY cannot be negative")
    if network is NetworkType.MAINNET and delay < TIMELOCK_DELAYS[network.value]:
        raise ConfigurationError(
            f"ICOVAULT_TIMELOCK_DELAY cannot be shorter than the mainnet delay "
            f"of {TIMELOCK_DELAYS[network.value]}s"
        )
    if delay != TIMELOCK_DELAYS[network.value]:
        logger.warning(
            "Timelock delay overridden to %ss on %s",
            delay,
            network.value,
            extra={"event": "config.timelock_override", "network": network.value, "delay": delay},
        )
    return delay


@dataclass(frozen=True)
class ProgramSettings:
    """Settings shared by the processor and the runtime."""

    network: NetworkType = NetworkType.TESTNET
    init_key: str = TESTNET_INIT_KEY
    program_id: str = DEFAULT_PROGRAM_ID
    timelock_delay: int = TIMELOCK_DELAYS[NetworkType.TESTNET.value]
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.init_key:
            raise ConfigurationError("init_key cannot be empty")
        if not self.program_id:
            raise ConfigurationError("program_id cannot be empty")
        if not isinstance(self.timelock_delay, int) or self.timelock_delay < 0:
            raise ConfigurationError("timelock_delay must be a non-negative integer")
        if self.network is NetworkType.MAINNET and self.timelock_delay < TIMELOCK_DELAYS[self.network.value]:
            raise ConfigurationError("mainnet timelock_delay cannot be shorter than the protocol delay")

    @classmethod
    def from_env(cls) -> "ProgramSettings":
        """Build settings from ICOVAULT_* environment variables."""
        network = _get_network()
        return cls(
            network=network,
            init_key=_get_init_key(network),
            program_id=os.getenv("ICOVAULT_PROGRAM_ID", DEFAULT_PROGRAM_ID).strip() or DEFAULT_PROGRAM_ID,
            timelock_delay=_get_timelock_delay(network),
            log_level=os.getenv("ICOVAULT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_file=os.getenv("ICOVAULT_LOG_FILE", "").strip() or None,
        )
