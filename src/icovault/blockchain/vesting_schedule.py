from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from icovault.core.constants import (
    MAX_SCHEDULE_DURATION_WEEKS,
    MAX_SCHEDULE_START_WEEKS,
    MIN_SCHEDULE_START_WEEKS,
    OFFICIAL_SCHEDULE_COUNT,
    SECONDS_PER_WEEK,
    UNVESTING_SCALE,
)
from icovault.core.exceptions import ArithmeticFault, InvalidUnvestingDefinitionError

logger = logging.getLogger(__name__)


class VestingKind(Enum):
    """The six fixed purchase categories, each with its own official schedule."""

    TEAM_FOUNDERS = "TeamFounders"
    ADVISERS_PARTNERS = "AdvisersPartners"
    PRIVATE_SELLS = "PrivateSells"
    PUBLIC_SELLS_1 = "PublicSells1"  # weeks 1-11
    PUBLIC_SELLS_2 = "PublicSells2"  # weeks 12-19
    PUBLIC_SELLS_3 = "PublicSells3"  # weeks 20-26


@dataclass(frozen=True)
class VestingSchedule:
    """
    Definition of an unvesting curve.

    ``start`` and ``duration`` are in weeks after launch. The three unvesting
    amounts are fixed-point values on a 0-100000 scale.
    """

    kind: VestingKind
    start: int
    duration: int
    initial_unvesting: int
    weekly_unvesting: int
    final_unvesting: int

    def is_valid(self) -> Optional[bool]:
        """
        Check ranges and that the curve sums to exactly 100%.

        Returns None when an intermediate value does not fit the stored
        widths (u8 weeks, u16 amounts); callers treat that as invalid.
        """
        for weeks in (self.start, self.duration):
            if not isinstance(weeks, int) or not 0 <= weeks <= 0xFF:
                return None
        for amount in (self.initial_unvesting, self.weekly_unvesting, self.final_unvesting):
            if not isinstance(amount, int) or not 0 <= amount <= 0xFFFF:
                return None
        if self.start + 1 > 0xFF:
            return None

        if self.duration < self.start + 1:
            return False

        unvest_weeks = self.duration - (self.start + 1)
        total = self.initial_unvesting + self.weekly_unvesting * unvest_weeks + self.final_unvesting
        if (
            self.start < MIN_SCHEDULE_START_WEEKS
            or self.start > MAX_SCHEDULE_START_WEEKS
            or self.duration == 0
            or self.duration > MAX_SCHEDULE_DURATION_WEEKS
            or total != UNVESTING_SCALE
        ):
            logger.info(
                "unvesting definition invalid: %s (total unvested: %s)",
                self,
                total,
            )
            return False
        return True

    def unvested_fraction(self, launch: int, now: int) -> int:
        """
        Fraction (0-100000) of a purchase that may be released at ``now``.

        The final unvesting amount only matters to :meth:`is_valid`; the
        curve reaches 100% through the hard cutoff at ``duration``.

        Raises:
            ArithmeticFault: if ``now`` is before ``launch``
        """
        if now < launch:
            raise ArithmeticFault(
                "current time is before the launch date",
                details={"launch": launch, "now": now},
            )
        weeks = (now - launch) // SECONDS_PER_WEEK
        if weeks < self.start:
            return 0
        if weeks >= self.duration:
            return UNVESTING_SCALE
        return self.initial_unvesting + (weeks - self.start) * self.weekly_unvesting

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "start": self.start,
            "duration": self.duration,
            "initial_unvesting": self.initial_unvesting,
            "weekly_unvesting": self.weekly_unvesting,
            "final_unvesting": self.final_unvesting,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VestingSchedule":
        return cls(
            kind=VestingKind(data["kind"]),
            start=int(data["start"]),
            duration=int(data["duration"]),
            initial_unvesting=int(data["initial_unvesting"]),
            weekly_unvesting=int(data["weekly_unvesting"]),
            final_unvesting=int(data["final_unvesting"]),
        )


def is_valid_schedule(schedule: VestingSchedule) -> bool:
    """Overflow counts as invalid."""
    return schedule.is_valid() is True


def unvested_fraction(schedule: VestingSchedule, launch: int, now: int) -> int:
    return schedule.unvested_fraction(launch, now)


def validate_official_schedules(schedules: Sequence[VestingSchedule]) -> Dict[VestingKind, VestingSchedule]:
    """
    Check the set of official schedules given at initialization.

    Exactly one valid schedule per kind is required.

    Raises:
        InvalidUnvestingDefinitionError: on a missing, duplicated or invalid schedule
    """
    if len(schedules) != OFFICIAL_SCHEDULE_COUNT:
        raise InvalidUnvestingDefinitionError(
            f"expected {OFFICIAL_SCHEDULE_COUNT} official schedules, got {len(schedules)}"
        )
    by_kind: Dict[VestingKind, VestingSchedule] = {}
    for schedule in schedules:
        if schedule.kind in by_kind:
            raise InvalidUnvestingDefinitionError(
                f"duplicate official schedule for {schedule.kind.value}"
            )
        if not is_valid_schedule(schedule):
            raise InvalidUnvestingDefinitionError(
                f"official schedule for {schedule.kind.value} is invalid",
                details=schedule.to_dict(),
            )
        by_kind[schedule.kind] = schedule
    return by_kind
