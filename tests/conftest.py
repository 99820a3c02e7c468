"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add project root and src to Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(project_root))
sys.path.insert(0, str(src_path))

import pytest

from icovault.blockchain.vesting_schedule import VestingKind, VestingSchedule
from icovault.core import instructions
from icovault.core.config import NetworkType, ProgramSettings
from icovault.core.runtime import IcoRuntime
from icovault.security.threshold_authorizer import Signer

INIT_KEY = "init-key"
ADMIN_KEYS = ("api-key", "admin-1", "admin-2", "admin-3", "admin-4")
START_TIME = 1_700_000_000
TIMELOCK_DELAY = 5


class FakeClock:
    """Deterministic time provider for runtime tests."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


def official_schedule_set():
    return (
        VestingSchedule(VestingKind.TEAM_FOUNDERS, 52, 157, 10000, 800, 6800),
        VestingSchedule(VestingKind.ADVISERS_PARTNERS, 26, 52, 10000, 3500, 2500),
        VestingSchedule(VestingKind.PRIVATE_SELLS, 2, 41, 10000, 2300, 2600),
        VestingSchedule(VestingKind.PUBLIC_SELLS_1, 2, 41, 10000, 2300, 2600),
        VestingSchedule(VestingKind.PUBLIC_SELLS_2, 2, 28, 10000, 3500, 2500),
        VestingSchedule(VestingKind.PUBLIC_SELLS_3, 2, 15, 10000, 7000, 6000),
    )


def signers_for(*identities):
    return [Signer(identity) for identity in identities]


ROUTINE = signers_for(ADMIN_KEYS[0])
SENSITIVE = signers_for(*ADMIN_KEYS[:2])
CRITICAL = signers_for(*ADMIN_KEYS[1:4])


@pytest.fixture
def official_schedules():
    return official_schedule_set()


@pytest.fixture
def settings():
    return ProgramSettings(
        network=NetworkType.TESTNET,
        init_key=INIT_KEY,
        program_id="icovault-test-program",
        timelock_delay=TIMELOCK_DELAY,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runtime(settings, clock):
    return IcoRuntime(settings=settings, time_provider=clock)


@pytest.fixture
def initialized_runtime(runtime):
    """Runtime with the program initialized and the token supply minted."""
    runtime.execute(
        instructions.initialize(official_schedule_set(), ADMIN_KEYS[0], ADMIN_KEYS[1:]),
        signers_for(INIT_KEY),
    )
    runtime.execute(instructions.create_token_supply(), CRITICAL)
    return runtime
