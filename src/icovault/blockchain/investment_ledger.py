"""
Investment Ledger

Per-investor purchase entries and the program-wide ICO configuration.

Entries are never merged: every purchase appends a new entry, a
cancellation drops or shrinks entries of one kind in insertion order, and a
release moves each entry's ``amount_released`` up to what its schedule
allows at the current time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from icovault.blockchain.vesting_schedule import (
    VestingKind,
    VestingSchedule,
    is_valid_schedule,
)
from icovault.core.constants import ICO_ALLOCATION, UNVESTING_SCALE
from icovault.core.exceptions import (
    CancelAfterLaunchError,
    InvalidAmountError,
    InvalidUnvestingDefinitionError,
    InvestAfterLaunchError,
    InvestmentDoesNotExistError,
    UnvestBeforeLaunchError,
)
from icovault.core.safe_math import (
    checked_add,
    checked_sub,
    mul_div_down,
    require_positive_amount,
)

logger = logging.getLogger(__name__)


@dataclass
class PurchaseEntry:
    """One purchase of a given kind, with its release progress."""

    kind: VestingKind
    created_at: int
    amount_bought: int
    amount_released: int = 0
    custom_schedule: Optional[VestingSchedule] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "created_at": self.created_at,
            "amount_bought": self.amount_bought,
            "amount_released": self.amount_released,
            "custom_schedule": self.custom_schedule.to_dict() if self.custom_schedule else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PurchaseEntry":
        custom = data.get("custom_schedule")
        return cls(
            kind=VestingKind(data["kind"]),
            created_at=int(data["created_at"]),
            amount_bought=int(data["amount_bought"]),
            amount_released=int(data["amount_released"]),
            custom_schedule=VestingSchedule.from_dict(custom) if custom else None,
        )


@dataclass
class InvestorLedger:
    owner: str
    entries: List[PurchaseEntry] = field(default_factory=list)

    def total_bought(self, kind: Optional[VestingKind] = None) -> int:
        return sum(e.amount_bought for e in self.entries if kind is None or e.kind is kind)

    def total_released(self) -> int:
        return sum(e.amount_released for e in self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "entries": [e.to_dict() for e in self.entries]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InvestorLedger":
        return cls(
            owner=str(data["owner"]),
            entries=[PurchaseEntry.from_dict(e) for e in data["entries"]],
        )


@dataclass
class IcoConfiguration:
    """
    Program-wide ICO state.

    Attributes:
        schedules: official schedule per kind, fixed at initialization
        admin_key_set: record key of the admin ThresholdKeySet
        launch_date: launch timestamp, 0 while not set
        amount_invested: running invested total, capped by ICO_ALLOCATION
        supply_created: whether the token supply was minted
    """

    schedules: Dict[VestingKind, VestingSchedule]
    admin_key_set: str
    launch_date: int = 0
    amount_invested: int = 0
    supply_created: bool = False

    def schedule_for(self, kind: VestingKind) -> VestingSchedule:
        return self.schedules[kind]

    def launch_passed(self, now: int) -> bool:
        return self.launch_date != 0 and self.launch_date <= now

    def invested_after(self, amount: int) -> int:
        """Running total after adding ``amount``, checked against the allocation cap."""
        total = checked_add(self.amount_invested, amount)
        if total > ICO_ALLOCATION:
            raise InvalidAmountError(
                "investment exceeds the ICO allocation",
                details={"amount": amount, "invested": self.amount_invested, "cap": ICO_ALLOCATION},
            )
        return total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedules": {kind.value: s.to_dict() for kind, s in self.schedules.items()},
            "admin_key_set": self.admin_key_set,
            "launch_date": self.launch_date,
            "amount_invested": self.amount_invested,
            "supply_created": self.supply_created,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IcoConfiguration":
        return cls(
            schedules={
                VestingKind(kind): VestingSchedule.from_dict(s)
                for kind, s in data["schedules"].items()
            },
            admin_key_set=str(data["admin_key_set"]),
            launch_date=int(data["launch_date"]),
            amount_invested=int(data["amount_invested"]),
            supply_created=bool(data.get("supply_created", False)),
        )


def check_custom_schedule(kind: VestingKind, custom: Optional[VestingSchedule]) -> None:
    """A custom schedule must declare the purchase kind and be valid."""
    if custom is None:
        return
    if custom.kind is not kind:
        raise InvalidUnvestingDefinitionError(
            f"custom schedule kind {custom.kind.value} differs from purchase kind {kind.value}"
        )
    if not is_valid_schedule(custom):
        raise InvalidUnvestingDefinitionError("custom schedule is invalid", details=custom.to_dict())


def create_or_append(
    ledger: Optional[InvestorLedger],
    configuration: IcoConfiguration,
    owner: str,
    kind: VestingKind,
    amount: int,
    now: int,
    custom: Optional[VestingSchedule] = None,
    post_launch: bool = False,
) -> InvestorLedger:
    """
    Record a purchase, creating the ledger on first purchase.

    ``post_launch`` is only set by the timelocked advisers path, which is
    allowed to add entries after launch. The configuration's invested total
    is updated only when every check passed.
    """
    require_positive_amount(amount)
    if not post_launch and configuration.launch_passed(now):
        raise InvestAfterLaunchError(
            "investments are closed once launch has passed",
            details={"launch_date": configuration.launch_date, "now": now},
        )
    check_custom_schedule(kind, custom)
    invested = configuration.invested_after(amount)

    entry = PurchaseEntry(kind=kind, created_at=now, amount_bought=amount, custom_schedule=custom)
    if ledger is None:
        ledger = InvestorLedger(owner=owner, entries=[entry])
    else:
        ledger.entries.append(entry)
    configuration.amount_invested = invested

    logger.info(
        "Purchase recorded",
        extra={
            "event": "ledger.purchase",
            "owner_prefix": owner[:16],
            "kind": kind.value,
            "amount": amount,
            "entries": len(ledger.entries),
            "custom": custom is not None,
        },
    )
    return ledger


def cancel(
    ledger: Optional[InvestorLedger],
    configuration: IcoConfiguration,
    kind: VestingKind,
    amount: int,
) -> Optional[InvestorLedger]:
    """
    Remove ``amount`` of exposure to ``kind`` from a ledger.

    Matching entries are consumed in insertion order; the first entry larger
    than the outstanding amount is shrunk. Either the whole amount is
    removed or nothing changes.

    Returns:
        The updated ledger, or None when no entry is left and the ledger
        must be destroyed.
    """
    require_positive_amount(amount)
    if configuration.launch_date != 0:
        raise CancelAfterLaunchError(
            "investments cannot be cancelled once a launch date is set",
            details={"launch_date": configuration.launch_date},
        )
    if ledger is None:
        raise InvestmentDoesNotExistError("no investment recorded for this investor")
    held = ledger.total_bought(kind)
    if amount > held:
        raise InvalidAmountError(
            "cancel amount exceeds the investor's holdings of this kind",
            details={"kind": kind.value, "amount": amount, "held": held},
        )

    remaining = amount
    kept: List[PurchaseEntry] = []
    for entry in ledger.entries:
        if entry.kind is not kind or remaining == 0:
            kept.append(entry)
        elif entry.amount_bought <= remaining:
            remaining -= entry.amount_bought
        else:
            kept.append(replace(entry, amount_bought=entry.amount_bought - remaining))
            remaining = 0

    configuration.amount_invested = checked_sub(configuration.amount_invested, amount)
    logger.info(
        "Investment cancelled",
        extra={
            "event": "ledger.cancel",
            "owner_prefix": ledger.owner[:16],
            "kind": kind.value,
            "amount": amount,
            "entries_left": len(kept),
        },
    )
    if not kept:
        return None
    ledger.entries = kept
    return ledger


def release(ledger: InvestorLedger, configuration: IcoConfiguration, now: int) -> int:
    """
    Move every entry's released amount up to its unvested target.

    Returns the total amount to disburse; 0 means nothing changed.

    Raises:
        UnvestBeforeLaunchError: if launch is not set or still in the future
    """
    launch = configuration.launch_date
    if not configuration.launch_passed(now):
        raise UnvestBeforeLaunchError(
            "cannot release before launch",
            details={"launch_date": launch, "now": now},
        )

    targets: List[int] = []
    total = 0
    for entry in ledger.entries:
        schedule = entry.custom_schedule or configuration.schedule_for(entry.kind)
        fraction = schedule.unvested_fraction(launch, now)
        target = mul_div_down(fraction, entry.amount_bought, UNVESTING_SCALE)
        total = checked_add(total, checked_sub(target, entry.amount_released))
        targets.append(target)

    if total == 0:
        return 0

    for entry, target in zip(ledger.entries, targets):
        entry.amount_released = target
    logger.info(
        "Vested tokens released",
        extra={
            "event": "ledger.release",
            "owner_prefix": ledger.owner[:16],
            "amount": total,
            "total_released": ledger.total_released(),
        },
    )
    return total
