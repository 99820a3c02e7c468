"""
Token ledger boundary.

The program only decides whether and how much should move; the actual
balances live in an external token service. :class:`TokenLedger` is the
interface the processor calls, :class:`InMemoryTokenLedger` the
implementation used by the runtime and the tests.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set, Tuple

from icovault.core.exceptions import (
    AccountFrozenError,
    InsufficientFundsError,
    InvalidAuthorityError,
)
from icovault.core.safe_math import checked_add, require_positive_amount

logger = logging.getLogger(__name__)


class TokenLedger(ABC):
    @abstractmethod
    def mint(self, account: str, amount: int) -> None:
        ...

    @abstractmethod
    def revoke_mint_authority(self) -> None:
        ...

    @abstractmethod
    def transfer(self, source: str, destination: str, amount: int) -> None:
        ...

    @abstractmethod
    def freeze(self, account: str) -> None:
        ...

    @abstractmethod
    def thaw(self, account: str) -> None:
        ...

    @abstractmethod
    def balance_of(self, account: str) -> int:
        ...

    def snapshot(self) -> object:
        """Opaque state used to roll back a failed operation."""
        return None

    def restore(self, snapshot: object) -> None:
        return None


LedgerSnapshot = Tuple[Dict[str, int], Set[str], bool, int]


class InMemoryTokenLedger(TokenLedger):
    """Balances kept in a dict; mint authority can be revoked once."""

    def __init__(self) -> None:
        self.balances: Dict[str, int] = {}
        self.frozen: Set[str] = set()
        self.mint_authority = True
        self.supply = 0
        self._lock = threading.RLock()

    def mint(self, account: str, amount: int) -> None:
        require_positive_amount(amount)
        with self._lock:
            if not self.mint_authority:
                raise InvalidAuthorityError("mint authority has been revoked")
            self.supply = checked_add(self.supply, amount)
            self.balances[account] = self.balances.get(account, 0) + amount
        logger.debug(
            "Tokens minted",
            extra={"event": "token.mint", "account_prefix": account[:16], "amount": amount},
        )

    def revoke_mint_authority(self) -> None:
        with self._lock:
            self.mint_authority = False
        logger.info("Mint authority revoked", extra={"event": "token.mint_authority_revoked"})

    def transfer(self, source: str, destination: str, amount: int) -> None:
        require_positive_amount(amount)
        with self._lock:
            for account in (source, destination):
                if account in self.frozen:
                    raise AccountFrozenError(
                        "account is frozen", details={"account_prefix": account[:16]}
                    )
            balance = self.balances.get(source, 0)
            if balance < amount:
                raise InsufficientFundsError(
                    "insufficient token balance",
                    details={"account_prefix": source[:16], "balance": balance, "amount": amount},
                )
            self.balances[source] = balance - amount
            self.balances[destination] = checked_add(self.balances.get(destination, 0), amount)
        logger.debug(
            "Tokens transferred",
            extra={
                "event": "token.transfer",
                "source_prefix": source[:16],
                "destination_prefix": destination[:16],
                "amount": amount,
            },
        )

    def freeze(self, account: str) -> None:
        with self._lock:
            self.frozen.add(account)
        logger.info("Account frozen", extra={"event": "token.freeze", "account_prefix": account[:16]})

    def thaw(self, account: str) -> None:
        with self._lock:
            self.frozen.discard(account)
        logger.info("Account thawed", extra={"event": "token.thaw", "account_prefix": account[:16]})

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self.balances.get(account, 0)

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return dict(self.balances), set(self.frozen), self.mint_authority, self.supply

    def restore(self, snapshot: Optional[object]) -> None:
        if snapshot is None:
            return
        balances, frozen, mint_authority, supply = snapshot  # type: ignore[misc]
        with self._lock:
            self.balances = dict(balances)
            self.frozen = set(frozen)
            self.mint_authority = mint_authority
            self.supply = supply
