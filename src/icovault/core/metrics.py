"""
Instruction and treasury instrumentation for icovault.

Provides Prometheus metrics that track processed instructions, released
vested tokens and timelocked treasury movements, with helper functions
that are safe to call from the execution path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

instructions_counter = Counter(
    "icovault_instructions_total",
    "Total instructions executed by the runtime",
    ["instruction", "outcome"],
)

tokens_released_counter = Counter(
    "icovault_tokens_released_total", "Total vested base units released to investors"
)

reserve_transfer_counter = Counter(
    "icovault_reserve_transfers_total",
    "Total base units moved out of internal wallets after a timelock",
    ["source"],
)

timelock_queue_gauge = Gauge(
    "icovault_timelock_queue_depth", "Number of entries waiting in the timelock queue"
)

amount_invested_gauge = Gauge(
    "icovault_amount_invested", "Running total of base units invested in the ICO"
)


def record_instruction(instruction: str, outcome: str) -> None:
    instructions_counter.labels(instruction=instruction, outcome=outcome).inc()


def record_release(amount: int) -> None:
    """Increment the release counter; zero releases are not recorded."""
    if amount <= 0:
        return
    tokens_released_counter.inc(amount)


def record_reserve_transfer(source: str, amount: int) -> None:
    if amount <= 0:
        return
    reserve_transfer_counter.labels(source=source).inc(amount)


def update_timelock_depth(depth: int) -> None:
    timelock_queue_gauge.set(depth)


def update_amount_invested(amount: int) -> None:
    amount_invested_gauge.set(amount)
