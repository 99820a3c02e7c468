"""
Instruction processor.

:class:`IcoProcessor` dispatches each :class:`Instruction` to one handler.
Handlers re-derive every record key they touch, authorize the supplied
signers, check the operation's invariants against freshly loaded state and
only then mutate records and move tokens. Handlers raise on any failure;
rolling back partial writes is the runtime's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from icovault.blockchain.investment_ledger import (
    IcoConfiguration,
    InvestorLedger,
    cancel,
    check_custom_schedule,
    create_or_append,
    release,
)
from icovault.blockchain.vesting_schedule import VestingKind, validate_official_schedules
from icovault.core.config import ProgramSettings
from icovault.core.constants import I64_MAX
from icovault.core.exceptions import (
    AlreadyInitializedError,
    InvalidAmountError,
    InvalidInvestedAmountError,
    InvalidOperationError,
    InvalidRecordAddressError,
    InvalidSignerError,
    InvestmentDoesNotExistError,
    LaunchAlreadySetError,
    PostLaunchBeforeLaunchError,
    RecordNotCreatedError,
)
from icovault.core.instructions import (
    CancelInvestmentArgs,
    CreateTokenSupplyArgs,
    InitializeArgs,
    Instruction,
    InstructionKind,
    InvestArgs,
    PostLaunchInvestmentArgs,
    ReleaseVestedArgs,
    ReserveTransferArgs,
    SetLaunchArgs,
    UpdateAdminThresholdSetArgs,
)
from icovault.core.logging_config import log_security_event
from icovault.core.safe_math import require_positive_amount
from icovault.core.state import ProgramState
from icovault.core.storage import RecordKind, RecordStore, verify_record_key
from icovault.security.threshold_authorizer import (
    KeySetTag,
    SecurityLevel,
    Signer,
    ThresholdKeySet,
)
from icovault.treasury.token_ledger import TokenLedger
from icovault.treasury.wallets import (
    WALLET_INIT_AMOUNTS,
    WalletKind,
    invested_pool_account,
    wallet_account,
)
from icovault.wallet.timelock_queue import (
    PostLaunchInvestment,
    ReserveTransfer,
    TimelockQueue,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """
    What a handler decided to move.

    ``amount`` is the number of base units transferred (0 when nothing
    moved); ``source`` names the internal wallet for reserve transfers.
    """

    amount: int = 0
    source: Optional[str] = None


class IcoProcessor:
    def __init__(self, store: RecordStore, token_ledger: TokenLedger, settings: ProgramSettings):
        self.state = ProgramState(store, settings.program_id)
        self.token_ledger = token_ledger
        self.settings = settings
        self._handlers: Dict[InstructionKind, Callable[..., ProcessResult]] = {
            InstructionKind.INITIALIZE: self._initialize,
            InstructionKind.UPDATE_ADMIN_THRESHOLD_SET: self._update_admin_threshold_set,
            InstructionKind.CREATE_TOKEN_SUPPLY: self._create_token_supply,
            InstructionKind.INVEST: self._invest,
            InstructionKind.CANCEL_INVESTMENT: self._cancel_investment,
            InstructionKind.SET_LAUNCH: self._set_launch,
            InstructionKind.RELEASE_VESTED: self._release_vested,
            InstructionKind.QUEUE_RESERVE_TRANSFER: self._queue_reserve_transfer,
            InstructionKind.EXECUTE_RESERVE_TRANSFER: self._execute_reserve_transfer,
            InstructionKind.QUEUE_POST_LAUNCH_INVESTMENT: self._queue_post_launch_investment,
            InstructionKind.PROCESS_POST_LAUNCH_INVESTMENT: self._process_post_launch_investment,
        }

    def process(self, instruction: Instruction, signers: Sequence[Signer], now: int) -> ProcessResult:
        handler = self._handlers[instruction.kind]
        logger.debug(
            "Processing instruction",
            extra={"event": "processor.dispatch", "instruction": instruction.name, "now": now},
        )
        return handler(instruction.args, instruction.accounts, list(signers), now)

    # ----- shared checks -----

    def _verify_accounts(self, accounts: Dict[str, str], user: Optional[str] = None) -> None:
        """Compare every claimed record key with its re-derived value."""
        program_id = self.settings.program_id
        verify_record_key(accounts.get("config"), RecordKind.CONFIGURATION, program_id)
        verify_record_key(
            accounts.get("admin"), RecordKind.THRESHOLD_KEY_SET, program_id, KeySetTag.ADMIN.value
        )
        verify_record_key(accounts.get("timelock"), RecordKind.TIMELOCK_QUEUE, program_id)
        if user is not None:
            verify_record_key(accounts.get("investment"), RecordKind.INVESTOR_LEDGER, program_id, user)
        elif "investment" in accounts:
            raise InvalidRecordAddressError("this instruction does not take an investment record")

    def _configuration(self) -> IcoConfiguration:
        configuration = self.state.load_configuration()
        if configuration is None:
            raise RecordNotCreatedError("program is not initialized")
        return configuration

    def _authorize(
        self, configuration: IcoConfiguration, signers: Sequence[Signer], level: SecurityLevel
    ) -> ThresholdKeySet:
        if configuration.admin_key_set != self.state.key_set_key(KeySetTag.ADMIN):
            raise InvalidRecordAddressError("configuration references an unexpected admin key set")
        key_set = self.state.load_key_set(KeySetTag.ADMIN)
        if key_set is None:
            raise RecordNotCreatedError("admin key set is missing")
        key_set.validate(signers, level)
        return key_set

    def _timelock(self) -> TimelockQueue:
        queue = self.state.load_timelock()
        if queue is None:
            raise RecordNotCreatedError("timelock queue is missing")
        return queue

    @staticmethod
    def _require_identity(value: str, what: str) -> None:
        if not isinstance(value, str) or not value:
            raise InvalidOperationError(f"{what} cannot be empty")

    def _fund_invested_pool(self, amount: int) -> None:
        self.token_ledger.transfer(
            wallet_account(WalletKind.ICO, self.settings.program_id),
            invested_pool_account(self.settings.program_id),
            amount,
        )

    # ----- handlers -----

    def _initialize(
        self, args: InitializeArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._verify_accounts(accounts)
        first = signers[0] if signers else None
        if first is None or not first.is_signed or first.identity != self.settings.init_key:
            log_security_event(
                "authorization_failure",
                {"instruction": "initialize", "reason": "not_init_key"},
                severity="WARNING",
            )
            raise InvalidSignerError("initialization must be signed by the initialization key")
        if (
            self.state.is_initialized()
            or self.state.store.exists(self.state.key_set_key(KeySetTag.ADMIN))
            or self.state.store.exists(self.state.timelock_key())
        ):
            raise AlreadyInitializedError("program is already initialized")

        schedules = validate_official_schedules(args.schedules)
        key_set = ThresholdKeySet(KeySetTag.ADMIN, (args.api_key, *args.admins))

        configuration = IcoConfiguration(
            schedules=schedules,
            admin_key_set=self.state.key_set_key(KeySetTag.ADMIN),
        )
        self.state.save_configuration(configuration)
        self.state.save_key_set(key_set)
        self.state.save_timelock(TimelockQueue())

        logger.info(
            "Program initialized",
            extra={"event": "processor.initialized", "program_id": self.settings.program_id},
        )
        log_security_event(
            "program_initialized",
            {
                "program_id": self.settings.program_id,
                "admin_key_prefixes": [key[:16] for key in key_set.keys],
            },
            severity="WARNING",
        )
        return ProcessResult()

    def _update_admin_threshold_set(
        self, args: UpdateAdminThresholdSetArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._verify_accounts(accounts)
        configuration = self._configuration()
        key_set = self._authorize(configuration, signers, SecurityLevel.CRITICAL)
        self.state.save_key_set(key_set.replaced((args.api_key, *args.admins), signers))
        return ProcessResult()

    def _create_token_supply(
        self, args: CreateTokenSupplyArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._verify_accounts(accounts)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.CRITICAL)
        if configuration.supply_created:
            raise AlreadyInitializedError("token supply was already created")

        minted = 0
        for kind, amount in WALLET_INIT_AMOUNTS.items():
            self.token_ledger.mint(wallet_account(kind, self.settings.program_id), amount)
            minted += amount
        self.token_ledger.revoke_mint_authority()

        configuration.supply_created = True
        self.state.save_configuration(configuration)
        log_security_event(
            "token_supply_created",
            {"program_id": self.settings.program_id, "minted": minted},
            severity="WARNING",
        )
        return ProcessResult(amount=minted)

    def _invest(
        self, args: InvestArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._require_identity(args.user, "investor")
        self._verify_accounts(accounts, user=args.user)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.ROUTINE)

        ledger = self.state.load_ledger(args.user)
        ledger = create_or_append(
            ledger, configuration, args.user, args.kind, args.amount, now, args.custom_schedule
        )
        if configuration.launch_date != 0:
            # Launch is scheduled but not reached: the pool was already
            # funded with the earlier total, top it up with this purchase
            self._fund_invested_pool(args.amount)

        self.state.save_ledger(ledger)
        self.state.save_configuration(configuration)
        return ProcessResult()

    def _cancel_investment(
        self, args: CancelInvestmentArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._require_identity(args.user, "investor")
        self._verify_accounts(accounts, user=args.user)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.SENSITIVE)

        ledger = self.state.load_ledger(args.user)
        updated = cancel(ledger, configuration, args.kind, args.amount)
        if updated is None:
            self.state.delete_ledger(args.user)
        else:
            self.state.save_ledger(updated)
        self.state.save_configuration(configuration)
        return ProcessResult()

    def _set_launch(
        self, args: SetLaunchArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._verify_accounts(accounts)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.CRITICAL)

        if configuration.launch_date != 0:
            raise LaunchAlreadySetError(
                "launch date is already set", details={"launch_date": configuration.launch_date}
            )
        if not isinstance(args.timestamp, int) or not 0 < args.timestamp <= I64_MAX:
            raise InvalidAmountError("launch timestamp must be a positive i64")
        if args.amount != configuration.amount_invested:
            raise InvalidInvestedAmountError(
                "launch amount differs from the invested total",
                details={"amount": args.amount, "amount_invested": configuration.amount_invested},
            )

        configuration.launch_date = args.timestamp
        if args.amount > 0:
            self._fund_invested_pool(args.amount)
        self.state.save_configuration(configuration)

        log_security_event(
            "launch_set",
            {"launch_date": args.timestamp, "amount_invested": args.amount},
            severity="WARNING",
        )
        return ProcessResult(amount=args.amount)

    def _release_vested(
        self, args: ReleaseVestedArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._require_identity(args.user, "investor")
        self._verify_accounts(accounts, user=args.user)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.ROUTINE)

        ledger: Optional[InvestorLedger] = self.state.load_ledger(args.user)
        if ledger is None:
            raise InvestmentDoesNotExistError("no investment recorded for this investor")

        total = release(ledger, configuration, now)
        if total == 0:
            return ProcessResult()

        self.state.save_ledger(ledger)
        self.token_ledger.transfer(invested_pool_account(self.settings.program_id), args.user, total)
        return ProcessResult(amount=total)

    def _queue_reserve_transfer(
        self, args: ReserveTransferArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._require_identity(args.target, "transfer target")
        require_positive_amount(args.amount)
        self._verify_accounts(accounts)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.CRITICAL)

        queue = self._timelock()
        queue.enqueue(ReserveTransfer(args.source.value, args.target, args.amount), now)
        self.state.save_timelock(queue)
        return ProcessResult()

    def _execute_reserve_transfer(
        self, args: ReserveTransferArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        require_positive_amount(args.amount)
        self._verify_accounts(accounts)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.ROUTINE)

        queue = self._timelock()
        queue.consume(
            ReserveTransfer(args.source.value, args.target, args.amount),
            now,
            self.settings.timelock_delay,
        )
        self.state.save_timelock(queue)
        self.token_ledger.transfer(
            wallet_account(args.source, self.settings.program_id), args.target, args.amount
        )
        return ProcessResult(amount=args.amount, source=args.source.value)

    def _check_post_launch(
        self, args: PostLaunchInvestmentArgs, configuration: IcoConfiguration, now: int
    ) -> None:
        if not configuration.launch_passed(now):
            raise PostLaunchBeforeLaunchError(
                "post-launch investments require a launch in the past",
                details={"launch_date": configuration.launch_date, "now": now},
            )
        if args.kind is not VestingKind.ADVISERS_PARTNERS:
            raise InvalidOperationError(
                "only advisers/partners can invest after launch", details={"kind": args.kind.value}
            )
        require_positive_amount(args.amount)
        check_custom_schedule(VestingKind.ADVISERS_PARTNERS, args.custom_schedule)
        configuration.invested_after(args.amount)

    def _queue_post_launch_investment(
        self, args: PostLaunchInvestmentArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._require_identity(args.user, "investor")
        self._verify_accounts(accounts)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.CRITICAL)
        self._check_post_launch(args, configuration, now)

        queue = self._timelock()
        queue.enqueue(PostLaunchInvestment(args.user, args.amount, args.custom_schedule), now)
        self.state.save_timelock(queue)
        return ProcessResult()

    def _process_post_launch_investment(
        self, args: PostLaunchInvestmentArgs, accounts: Dict[str, str], signers: Sequence[Signer], now: int
    ) -> ProcessResult:
        self._require_identity(args.user, "investor")
        self._verify_accounts(accounts, user=args.user)
        configuration = self._configuration()
        self._authorize(configuration, signers, SecurityLevel.ROUTINE)
        self._check_post_launch(args, configuration, now)

        queue = self._timelock()
        queue.consume(
            PostLaunchInvestment(args.user, args.amount, args.custom_schedule),
            now,
            self.settings.timelock_delay,
        )

        ledger = self.state.load_ledger(args.user)
        ledger = create_or_append(
            ledger,
            configuration,
            args.user,
            VestingKind.ADVISERS_PARTNERS,
            args.amount,
            now,
            args.custom_schedule,
            post_launch=True,
        )
        self._fund_invested_pool(args.amount)

        self.state.save_timelock(queue)
        self.state.save_ledger(ledger)
        self.state.save_configuration(configuration)
        return ProcessResult(amount=args.amount)
