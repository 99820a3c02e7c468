"""
Unit tests for instruction encoding.
"""

import pytest

from icovault.blockchain.vesting_schedule import VestingKind, VestingSchedule
from icovault.core import instructions
from icovault.core.exceptions import InvalidInstructionError
from icovault.core.instructions import (
    Instruction,
    InstructionKind,
    InvestArgs,
    SetLaunchArgs,
)
from icovault.treasury.wallets import WalletKind


class TestEncoding:
    def test_invest_with_custom_schedule_survives_wire_format(self):
        custom = VestingSchedule(VestingKind.TEAM_FOUNDERS, 1, 2, 50000, 0, 50000)
        instruction = Instruction(
            InstructionKind.INVEST,
            InvestArgs("user", VestingKind.TEAM_FOUNDERS, 10, custom),
            accounts={"investment": "abc"},
        )
        data = instruction.encode()
        assert data[0] == InstructionKind.INVEST
        assert Instruction.decode(data) == instruction

    def test_initialize_survives_wire_format(self, official_schedules):
        instruction = instructions.initialize(official_schedules, "api", ("a1", "a2", "a3", "a4"))
        assert Instruction.decode(instruction.encode()) == instruction

    def test_reserve_transfer_default_source(self):
        instruction = instructions.queue_reserve_transfer("target", 100)
        assert instruction.args.source is WalletKind.RESERVE

    def test_name(self):
        assert instructions.release_vested("u").name == "release_vested"


class TestMalformedInstructions:
    def test_empty(self):
        with pytest.raises(InvalidInstructionError):
            Instruction.decode(b"")

    def test_unknown_discriminant(self):
        with pytest.raises(InvalidInstructionError):
            Instruction.decode(bytes([99]) + b"{}")

    def test_bad_json(self):
        with pytest.raises(InvalidInstructionError):
            Instruction.decode(bytes([InstructionKind.SET_LAUNCH]) + b"{")

    def test_missing_field(self):
        with pytest.raises(InvalidInstructionError):
            Instruction.decode(bytes([InstructionKind.SET_LAUNCH]) + b'{"args":{"amount":1}}')

    def test_unknown_kind_value(self):
        body = b'{"args":{"user":"u","kind":"Nope","amount":1}}'
        with pytest.raises(InvalidInstructionError):
            Instruction.decode(bytes([InstructionKind.CANCEL_INVESTMENT]) + body)

    def test_args_type_must_match_kind(self):
        with pytest.raises(InvalidInstructionError):
            Instruction(InstructionKind.INVEST, SetLaunchArgs(1, 1))

    def test_unknown_account_name(self):
        with pytest.raises(InvalidInstructionError):
            Instruction(InstructionKind.SET_LAUNCH, SetLaunchArgs(1, 1), accounts={"mint": "x"})
