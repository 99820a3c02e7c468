"""
Timelock Queue

Privileged fund movements are pre-approved by queueing them, then executed
once a protocol-wide delay has elapsed. Each queued entry is consumed by
exactly one matching execution; entries are otherwise kept in queue order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from icovault.blockchain.vesting_schedule import VestingSchedule
from icovault.core.exceptions import (
    InvalidRecordTypeError,
    NoMatchingQueuedInstructionError,
    QueuedInstructionNotReadyError,
)
from icovault.core.logging_config import log_security_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReserveTransfer:
    """Move ``amount`` from an internal wallet to ``target``."""

    source: str
    target: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "ReserveTransfer",
            "source": self.source,
            "target": self.target,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class PostLaunchInvestment:
    """Add an advisers/partners purchase for ``investor`` after launch."""

    investor: str
    amount: int
    custom_schedule: Optional[VestingSchedule] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "PostLaunchInvestment",
            "investor": self.investor,
            "amount": self.amount,
            "custom_schedule": self.custom_schedule.to_dict() if self.custom_schedule else None,
        }


TimelockOperation = Union[ReserveTransfer, PostLaunchInvestment]


def operation_from_dict(data: Dict[str, Any]) -> TimelockOperation:
    op_type = data.get("type")
    if op_type == "ReserveTransfer":
        return ReserveTransfer(str(data["source"]), str(data["target"]), int(data["amount"]))
    if op_type == "PostLaunchInvestment":
        custom = data.get("custom_schedule")
        return PostLaunchInvestment(
            str(data["investor"]),
            int(data["amount"]),
            VestingSchedule.from_dict(custom) if custom else None,
        )
    raise InvalidRecordTypeError(f"unknown timelock operation type {op_type!r}")


@dataclass(frozen=True)
class TimelockEntry:
    creation_time: int
    operation: TimelockOperation

    def is_ready(self, now: int, delay: int) -> bool:
        return now >= self.creation_time + delay

    def to_dict(self) -> Dict[str, Any]:
        return {"creation_time": self.creation_time, "operation": self.operation.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelockEntry":
        return cls(int(data["creation_time"]), operation_from_dict(data["operation"]))


@dataclass
class TimelockQueue:
    entries: List[TimelockEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def enqueue(self, operation: TimelockOperation, now: int) -> TimelockEntry:
        entry = TimelockEntry(creation_time=now, operation=operation)
        self.entries.append(entry)
        logger.info(
            "Operation queued behind timelock",
            extra={
                "event": "timelock.enqueue",
                "operation": type(operation).__name__,
                "amount": operation.amount,
                "queue_depth": len(self.entries),
            },
        )
        log_security_event(
            "timelock_queued",
            {"creation_time": now, "queue_depth": len(self.entries), **operation.to_dict()},
            severity="INFO",
        )
        return entry

    def consume_matching(
        self,
        predicate: Callable[[TimelockOperation], bool],
        now: int,
        delay: int,
    ) -> TimelockEntry:
        """
        Remove and return the first entry whose operation satisfies ``predicate``.

        Raises:
            NoMatchingQueuedInstructionError: if no entry matches
            QueuedInstructionNotReadyError: if the first match has not matured;
                it stays queued
        """
        for index, entry in enumerate(self.entries):
            if not predicate(entry.operation):
                continue
            if not entry.is_ready(now, delay):
                raise QueuedInstructionNotReadyError(
                    "queued operation has not matured yet",
                    details={
                        "creation_time": entry.creation_time,
                        "ready_at": entry.creation_time + delay,
                        "now": now,
                    },
                )
            del self.entries[index]
            logger.info(
                "Timelocked operation consumed",
                extra={
                    "event": "timelock.consume",
                    "operation": type(entry.operation).__name__,
                    "waited": now - entry.creation_time,
                    "queue_depth": len(self.entries),
                },
            )
            log_security_event(
                "timelock_consumed",
                {"creation_time": entry.creation_time, "now": now, **entry.operation.to_dict()},
                severity="INFO",
            )
            return entry

        raise NoMatchingQueuedInstructionError("no queued operation matches this request")

    def consume(self, operation: TimelockOperation, now: int, delay: int) -> TimelockEntry:
        """Consume the first entry structurally equal to ``operation``."""
        return self.consume_matching(lambda queued: queued == operation, now, delay)

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": [e.to_dict() for e in self.entries]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelockQueue":
        return cls([TimelockEntry.from_dict(e) for e in data["entries"]])
