"""
Atomic instruction runtime.

:class:`IcoRuntime` owns the record store, the token ledger and the clock.
Each call to :meth:`IcoRuntime.execute` runs one instruction as a single
unit of work: both the store and the token ledger are snapshotted first
and restored if the instruction raises, so a failed instruction leaves no
observable change.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from icovault.core import metrics
from icovault.core.config import ProgramSettings
from icovault.core.exceptions import IcoError, get_error_context
from icovault.core.instructions import Instruction, InstructionKind
from icovault.core.logging_config import setup_logging
from icovault.core.processor import IcoProcessor
from icovault.core.state import ProgramState
from icovault.core.storage import RecordStore
from icovault.security.threshold_authorizer import Signer
from icovault.treasury.token_ledger import InMemoryTokenLedger, TokenLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    instruction: str
    timestamp: int
    amount: int = 0


class IcoRuntime:
    def __init__(
        self,
        settings: Optional[ProgramSettings] = None,
        store: Optional[RecordStore] = None,
        token_ledger: Optional[TokenLedger] = None,
        time_provider: Callable[[], int] | None = None,
    ):
        self.settings = settings or ProgramSettings.from_env()
        self.store = store if store is not None else RecordStore()
        self.token_ledger = token_ledger if token_ledger is not None else InMemoryTokenLedger()
        self.processor = IcoProcessor(self.store, self.token_ledger, self.settings)
        self._time_provider = time_provider or (lambda: int(time.time()))
        self._lock = threading.RLock()
        logger.info(
            "IcoRuntime initialized",
            extra={
                "event": "runtime.init",
                "network": self.settings.network.value,
                "program_id": self.settings.program_id,
                "timelock_delay": self.settings.timelock_delay,
            },
        )

    @classmethod
    def from_env(cls, time_provider: Callable[[], int] | None = None) -> "IcoRuntime":
        """Build a runtime from ICOVAULT_* environment variables, with JSON logging."""
        settings = ProgramSettings.from_env()
        setup_logging(
            name="icovault",
            log_file=settings.log_file,
            level=settings.log_level,
            environment=settings.network.value,
        )
        return cls(settings=settings, time_provider=time_provider)

    @property
    def state(self) -> ProgramState:
        return self.processor.state

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def execute(self, instruction: Instruction, signers: Sequence[Signer]) -> ExecutionResult:
        """
        Run one instruction atomically.

        Raises:
            IcoError: the handler's typed error, after every change was rolled back
        """
        with self._lock:
            now = self._current_time()
            store_snapshot = self.store.snapshot()
            ledger_snapshot = self.token_ledger.snapshot()
            try:
                result = self.processor.process(instruction, signers, now)
            except Exception as exc:
                self.store.restore(store_snapshot)
                self.token_ledger.restore(ledger_snapshot)
                outcome = exc.code.value if isinstance(exc, IcoError) else type(exc).__name__
                metrics.record_instruction(instruction.name, outcome)
                logger.warning(
                    "Instruction failed and was rolled back",
                    extra={
                        "event": "runtime.rollback",
                        "instruction": instruction.name,
                        **get_error_context(exc),
                    },
                )
                raise

            metrics.record_instruction(instruction.name, "ok")
            if instruction.kind is InstructionKind.RELEASE_VESTED:
                metrics.record_release(result.amount)
            elif instruction.kind is InstructionKind.EXECUTE_RESERVE_TRANSFER and result.source:
                metrics.record_reserve_transfer(result.source, result.amount)
            self._refresh_gauges()

        logger.info(
            "Instruction executed",
            extra={
                "event": "runtime.executed",
                "instruction": instruction.name,
                "timestamp": now,
                "amount": result.amount,
            },
        )
        return ExecutionResult(instruction=instruction.name, timestamp=now, amount=result.amount)

    def execute_encoded(self, data: bytes, signers: Sequence[Signer]) -> ExecutionResult:
        """Decode wire-format instruction data and execute it."""
        return self.execute(Instruction.decode(data), signers)

    def _refresh_gauges(self) -> None:
        configuration = self.state.load_configuration()
        if configuration is not None:
            metrics.update_amount_invested(configuration.amount_invested)
        queue = self.state.load_timelock()
        if queue is not None:
            metrics.update_timelock_depth(len(queue))
