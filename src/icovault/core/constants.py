"""
icovault Constants

This module contains the protocol constants used throughout the codebase,
organized by category.

NOTE: Changes to ledger-critical constants (marked with [LEDGER]) change
the meaning of already stored records and of every vesting computation.
Coordinate a migration before modifying these values.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_HOUR: Final[int] = 3600
SECONDS_PER_WEEK: Final[int] = 604800  # 60 * 60 * 24 * 7

# =============================================================================
# VESTING CONSTANTS [LEDGER - DO NOT CHANGE]
# =============================================================================

# Fixed-point representation of 100% (x1000 factor on a percentage)
UNVESTING_SCALE: Final[int] = 100_000

MIN_SCHEDULE_START_WEEKS: Final[int] = 1
MAX_SCHEDULE_START_WEEKS: Final[int] = 52
MAX_SCHEDULE_DURATION_WEEKS: Final[int] = 157

# Number of official schedules fixed at initialization (one per kind)
OFFICIAL_SCHEDULE_COUNT: Final[int] = 6

# =============================================================================
# TOKEN SUPPLY CONSTANTS [LEDGER - DO NOT CHANGE]
# =============================================================================

TOKEN_DECIMALS: Final[int] = 6
TOKEN_UNIT: Final[int] = 10**TOKEN_DECIMALS

# 177M tokens, in base units
TOTAL_TOKEN_AMOUNT: Final[int] = 177_000_000 * TOKEN_UNIT

# Fixed allocation available to ICO investors (50M tokens)
ICO_ALLOCATION: Final[int] = 50_000_000 * TOKEN_UNIT

# Amounts are stored as unsigned 64-bit integers
U8_MAX: Final[int] = 2**8 - 1
U64_MAX: Final[int] = 2**64 - 1
I64_MAX: Final[int] = 2**63 - 1

# =============================================================================
# AUTHORIZATION CONSTANTS
# =============================================================================

THRESHOLD_KEY_COUNT: Final[int] = 5

ROUTINE_REQUIRED_SIGNERS: Final[int] = 1
SENSITIVE_REQUIRED_SIGNERS: Final[int] = 2
CRITICAL_REQUIRED_SIGNERS: Final[int] = 3

# =============================================================================
# TIMELOCK CONSTANTS
# =============================================================================

TIMELOCK_DELAY_TESTNET: Final[int] = 5  # 5 seconds
TIMELOCK_DELAY_DEVNET: Final[int] = SECONDS_PER_HOUR  # 1 hour
TIMELOCK_DELAY_MAINNET: Final[int] = 48 * SECONDS_PER_HOUR  # 48 hours

TIMELOCK_DELAYS: Final[dict[str, int]] = {
    "testnet": TIMELOCK_DELAY_TESTNET,
    "devnet": TIMELOCK_DELAY_DEVNET,
    "mainnet": TIMELOCK_DELAY_MAINNET,
}

# =============================================================================
# RECORD STORE CONSTANTS
# =============================================================================

RECORD_DOMAIN_TAG: Final[bytes] = b"icovault/record/v1"
WALLET_DOMAIN_TAG: Final[bytes] = b"icovault/wallet/v1"
CANONICAL_BUMP: Final[int] = 255

# Reserved balance charged per stored byte (rent-exemption style)
RESERVE_PER_BYTE: Final[int] = 6960
RECORD_OVERHEAD_BYTES: Final[int] = 128

# Well-known program identity used when none is configured
DEFAULT_PROGRAM_ID: Final[str] = "icovault-program"
