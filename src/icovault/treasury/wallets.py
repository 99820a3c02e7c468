"""Internal wallets and the initial token-supply distribution."""

from __future__ import annotations

from enum import Enum
from typing import Dict

from icovault.core.constants import CANONICAL_BUMP, TOKEN_UNIT, WALLET_DOMAIN_TAG
from icovault.core.storage import derive_key


class WalletKind(Enum):
    COMMUNITY = "Community"
    DEFI_INCENTIVES = "DeFiIncentives"
    FOUNDATION = "Foundation"
    ICO = "Ico"
    LIQUIDITY = "Liquidity"
    MARKETING = "Marketing"
    PARTNERS = "Partners"
    RESEARCH_DEVELOPMENT_FUND = "ResearchDevelopmentFund"
    RESERVE = "Reserve"
    TEAMS_ADVISERS = "TeamsAdvisers"


# Base units minted into each wallet by CreateTokenSupply
WALLET_INIT_AMOUNTS: Dict[WalletKind, int] = {
    WalletKind.COMMUNITY: 7_000_000 * TOKEN_UNIT,
    WalletKind.DEFI_INCENTIVES: 15_000_000 * TOKEN_UNIT,
    WalletKind.FOUNDATION: 14_000_000 * TOKEN_UNIT,
    WalletKind.ICO: 50_000_000 * TOKEN_UNIT,
    WalletKind.LIQUIDITY: 20_000_000 * TOKEN_UNIT,
    WalletKind.MARKETING: 16_000_000 * TOKEN_UNIT,
    WalletKind.PARTNERS: 8_000_000 * TOKEN_UNIT,
    WalletKind.RESEARCH_DEVELOPMENT_FUND: 7_000_000 * TOKEN_UNIT,
    WalletKind.RESERVE: 30_000_000 * TOKEN_UNIT,
    WalletKind.TEAMS_ADVISERS: 10_000_000 * TOKEN_UNIT,
}

INVESTED_POOL = "InvestedPool"


def wallet_account(kind: WalletKind, program_id: str) -> str:
    """Token account of an internal wallet, derived from the program identity."""
    return derive_key(WALLET_DOMAIN_TAG, program_id, kind.value, bump=CANONICAL_BUMP)


def invested_pool_account(program_id: str) -> str:
    """Account holding invested tokens between launch and release."""
    return derive_key(WALLET_DOMAIN_TAG, program_id, INVESTED_POOL, bump=CANONICAL_BUMP)
