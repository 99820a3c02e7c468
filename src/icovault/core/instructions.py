"""
Instruction types.

Each operation has its own frozen argument dataclass. An :class:`Instruction`
pairs an :class:`InstructionKind` with those arguments and the record keys
the caller claims it touches. On the wire an instruction is one
discriminant byte followed by canonical JSON.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple, Type

from icovault.blockchain.vesting_schedule import VestingKind, VestingSchedule
from icovault.core.exceptions import InvalidInstructionError
from icovault.core.records import canonical_json
from icovault.treasury.wallets import WalletKind


class InstructionKind(IntEnum):
    INITIALIZE = 0
    UPDATE_ADMIN_THRESHOLD_SET = 1
    CREATE_TOKEN_SUPPLY = 2
    INVEST = 3
    CANCEL_INVESTMENT = 4
    SET_LAUNCH = 5
    RELEASE_VESTED = 6
    QUEUE_RESERVE_TRANSFER = 7
    EXECUTE_RESERVE_TRANSFER = 8
    QUEUE_POST_LAUNCH_INVESTMENT = 9
    PROCESS_POST_LAUNCH_INVESTMENT = 10


def _schedule_or_none(data: Optional[Dict[str, Any]]) -> Optional[VestingSchedule]:
    return VestingSchedule.from_dict(data) if data else None


@dataclass(frozen=True)
class InitializeArgs:
    """Official schedules and the five admin keys (API key first)."""

    schedules: Tuple[VestingSchedule, ...]
    api_key: str
    admins: Tuple[str, str, str, str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedules": [s.to_dict() for s in self.schedules],
            "api_key": self.api_key,
            "admins": list(self.admins),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InitializeArgs":
        return cls(
            tuple(VestingSchedule.from_dict(s) for s in data["schedules"]),
            str(data["api_key"]),
            tuple(str(a) for a in data["admins"]),
        )


@dataclass(frozen=True)
class UpdateAdminThresholdSetArgs:
    api_key: str
    admins: Tuple[str, str, str, str]

    def to_dict(self) -> Dict[str, Any]:
        return {"api_key": self.api_key, "admins": list(self.admins)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UpdateAdminThresholdSetArgs":
        return cls(str(data["api_key"]), tuple(str(a) for a in data["admins"]))


@dataclass(frozen=True)
class CreateTokenSupplyArgs:
    def to_dict(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreateTokenSupplyArgs":
        return cls()


@dataclass(frozen=True)
class InvestArgs:
    user: str
    kind: VestingKind
    amount: int
    custom_schedule: Optional[VestingSchedule] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "kind": self.kind.value,
            "amount": self.amount,
            "custom_schedule": self.custom_schedule.to_dict() if self.custom_schedule else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InvestArgs":
        return cls(
            str(data["user"]),
            VestingKind(data["kind"]),
            int(data["amount"]),
            _schedule_or_none(data.get("custom_schedule")),
        )


@dataclass(frozen=True)
class CancelInvestmentArgs:
    user: str
    kind: VestingKind
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {"user": self.user, "kind": self.kind.value, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CancelInvestmentArgs":
        return cls(str(data["user"]), VestingKind(data["kind"]), int(data["amount"]))


@dataclass(frozen=True)
class SetLaunchArgs:
    timestamp: int
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SetLaunchArgs":
        return cls(int(data["timestamp"]), int(data["amount"]))


@dataclass(frozen=True)
class ReleaseVestedArgs:
    user: str

    def to_dict(self) -> Dict[str, Any]:
        return {"user": self.user}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReleaseVestedArgs":
        return cls(str(data["user"]))


@dataclass(frozen=True)
class ReserveTransferArgs:
    """Arguments shared by QueueReserveTransfer and ExecuteReserveTransfer."""

    target: str
    amount: int
    source: WalletKind = WalletKind.RESERVE

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target, "amount": self.amount, "source": self.source.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReserveTransferArgs":
        return cls(
            str(data["target"]),
            int(data["amount"]),
            WalletKind(data.get("source", WalletKind.RESERVE.value)),
        )


@dataclass(frozen=True)
class PostLaunchInvestmentArgs:
    """
    Arguments shared by QueuePostLaunchInvestment and ProcessPostLaunchInvestment.

    ``kind`` must be AdvisersPartners; it is carried so that a request for
    any other kind is rejected rather than silently rewritten.
    """

    user: str
    amount: int
    custom_schedule: Optional[VestingSchedule] = None
    kind: VestingKind = VestingKind.ADVISERS_PARTNERS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "amount": self.amount,
            "custom_schedule": self.custom_schedule.to_dict() if self.custom_schedule else None,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PostLaunchInvestmentArgs":
        return cls(
            str(data["user"]),
            int(data["amount"]),
            _schedule_or_none(data.get("custom_schedule")),
            VestingKind(data.get("kind", VestingKind.ADVISERS_PARTNERS.value)),
        )


ARGS_TYPES: Dict[InstructionKind, Type[Any]] = {
    InstructionKind.INITIALIZE: InitializeArgs,
    InstructionKind.UPDATE_ADMIN_THRESHOLD_SET: UpdateAdminThresholdSetArgs,
    InstructionKind.CREATE_TOKEN_SUPPLY: CreateTokenSupplyArgs,
    InstructionKind.INVEST: InvestArgs,
    InstructionKind.CANCEL_INVESTMENT: CancelInvestmentArgs,
    InstructionKind.SET_LAUNCH: SetLaunchArgs,
    InstructionKind.RELEASE_VESTED: ReleaseVestedArgs,
    InstructionKind.QUEUE_RESERVE_TRANSFER: ReserveTransferArgs,
    InstructionKind.EXECUTE_RESERVE_TRANSFER: ReserveTransferArgs,
    InstructionKind.QUEUE_POST_LAUNCH_INVESTMENT: PostLaunchInvestmentArgs,
    InstructionKind.PROCESS_POST_LAUNCH_INVESTMENT: PostLaunchInvestmentArgs,
}

# Names of the record keys an instruction may claim
ACCOUNT_NAMES = ("config", "admin", "investment", "timelock")


@dataclass(frozen=True)
class Instruction:
    kind: InstructionKind
    args: Any
    accounts: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        expected = ARGS_TYPES[self.kind]
        if not isinstance(self.args, expected):
            raise InvalidInstructionError(
                f"{self.kind.name} expects {expected.__name__}, got {type(self.args).__name__}"
            )
        unknown = set(self.accounts) - set(ACCOUNT_NAMES)
        if unknown:
            raise InvalidInstructionError(f"unknown account names: {sorted(unknown)}")

    @property
    def name(self) -> str:
        return self.kind.name.lower()

    def encode(self) -> bytes:
        body = {"args": self.args.to_dict(), "accounts": dict(self.accounts)}
        return bytes([int(self.kind)]) + canonical_json(body)

    @classmethod
    def decode(cls, data: bytes) -> "Instruction":
        """
        Raises:
            InvalidInstructionError: if the data is not a well-formed instruction
        """
        if not data:
            raise InvalidInstructionError("empty instruction data")
        try:
            kind = InstructionKind(data[0])
        except ValueError as exc:
            raise InvalidInstructionError(f"unknown instruction discriminant {data[0]}") from exc
        try:
            body = json.loads(data[1:].decode("utf-8"))
            args = ARGS_TYPES[kind].from_dict(body["args"])
            accounts = {str(k): str(v) for k, v in body.get("accounts", {}).items()}
        except (UnicodeDecodeError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise InvalidInstructionError(f"malformed {kind.name} instruction: {exc}") from exc
        return cls(kind, args, accounts)


def initialize(
    schedules: Tuple[VestingSchedule, ...], api_key: str, admins: Tuple[str, str, str, str]
) -> Instruction:
    return Instruction(InstructionKind.INITIALIZE, InitializeArgs(tuple(schedules), api_key, tuple(admins)))


def update_admin_threshold_set(api_key: str, admins: Tuple[str, str, str, str]) -> Instruction:
    return Instruction(
        InstructionKind.UPDATE_ADMIN_THRESHOLD_SET, UpdateAdminThresholdSetArgs(api_key, tuple(admins))
    )


def create_token_supply() -> Instruction:
    return Instruction(InstructionKind.CREATE_TOKEN_SUPPLY, CreateTokenSupplyArgs())


def invest(
    user: str, kind: VestingKind, amount: int, custom_schedule: Optional[VestingSchedule] = None
) -> Instruction:
    return Instruction(InstructionKind.INVEST, InvestArgs(user, kind, amount, custom_schedule))


def cancel_investment(user: str, kind: VestingKind, amount: int) -> Instruction:
    return Instruction(InstructionKind.CANCEL_INVESTMENT, CancelInvestmentArgs(user, kind, amount))


def set_launch(timestamp: int, amount: int) -> Instruction:
    return Instruction(InstructionKind.SET_LAUNCH, SetLaunchArgs(timestamp, amount))


def release_vested(user: str) -> Instruction:
    return Instruction(InstructionKind.RELEASE_VESTED, ReleaseVestedArgs(user))


def queue_reserve_transfer(
    target: str, amount: int, source: WalletKind = WalletKind.RESERVE
) -> Instruction:
    return Instruction(
        InstructionKind.QUEUE_RESERVE_TRANSFER, ReserveTransferArgs(target, amount, source)
    )


def execute_reserve_transfer(
    target: str, amount: int, source: WalletKind = WalletKind.RESERVE
) -> Instruction:
    return Instruction(
        InstructionKind.EXECUTE_RESERVE_TRANSFER, ReserveTransferArgs(target, amount, source)
    )


def queue_post_launch_investment(
    user: str,
    amount: int,
    custom_schedule: Optional[VestingSchedule] = None,
    kind: VestingKind = VestingKind.ADVISERS_PARTNERS,
) -> Instruction:
    return Instruction(
        InstructionKind.QUEUE_POST_LAUNCH_INVESTMENT,
        PostLaunchInvestmentArgs(user, amount, custom_schedule, kind),
    )


def process_post_launch_investment(
    user: str,
    amount: int,
    custom_schedule: Optional[VestingSchedule] = None,
    kind: VestingKind = VestingKind.ADVISERS_PARTNERS,
) -> Instruction:
    return Instruction(
        InstructionKind.PROCESS_POST_LAUNCH_INVESTMENT,
        PostLaunchInvestmentArgs(user, amount, custom_schedule, kind),
    )
