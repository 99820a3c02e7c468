"""
Keyed record store for icovault.

Records live under deterministically derived keys. A key is the SHA-256 of
a fixed domain tag plus structured components (record kind discriminant,
owner identity, ...) and a disambiguating bump byte. Callers never trust a
supplied key: they re-derive it from the components they control and
compare.

The store itself is a plain in-memory arena keyed by derived key. It
implements the create/write/read/delete contract the program relies on,
including the reserved balance that is released to a beneficiary when a
record is deleted.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional, Tuple, Union

from icovault.core.constants import (
    CANONICAL_BUMP,
    RECORD_DOMAIN_TAG,
    RECORD_OVERHEAD_BYTES,
    RESERVE_PER_BYTE,
    U8_MAX,
)
from icovault.core.exceptions import (
    InvalidRecordAddressError,
    RecordAlreadyExistsError,
    RecordNotCreatedError,
)

logger = logging.getLogger(__name__)

KeyComponent = Union[str, int, bytes]


class RecordKind(IntEnum):
    """Type discriminant stored as the first byte of every record."""

    CONFIGURATION = 0
    THRESHOLD_KEY_SET = 1
    INVESTOR_LEDGER = 2
    TIMELOCK_QUEUE = 3


def _component_bytes(component: KeyComponent) -> bytes:
    if isinstance(component, bytes):
        return component
    if isinstance(component, str):
        return component.encode("utf-8")
    if isinstance(component, bool) or not isinstance(component, int):
        raise TypeError(f"Unsupported key component type: {type(component).__name__}")
    if 0 <= component <= U8_MAX:
        return bytes([component])
    return component.to_bytes(8, "big", signed=True)


def derive_key(tag: bytes, *components: KeyComponent, bump: int) -> str:
    """
    Derive a record key from a domain tag, components and a bump byte.

    Components are length-prefixed so that no two component lists share a
    pre-image.
    """
    if not 0 <= bump <= U8_MAX:
        raise InvalidRecordAddressError(f"bump {bump} is not a byte")
    hasher = hashlib.sha256()
    hasher.update(len(tag).to_bytes(4, "big"))
    hasher.update(tag)
    for component in components:
        data = _component_bytes(component)
        hasher.update(len(data).to_bytes(4, "big"))
        hasher.update(data)
    hasher.update(bytes([bump]))
    return hasher.hexdigest()


def derive_record_key(kind: RecordKind, *components: KeyComponent, bump: int) -> str:
    return derive_key(RECORD_DOMAIN_TAG, int(kind), *components, bump=bump)

def verify_record_key(
    claimed: Optional[str], kind: RecordKind, *components: KeyComponent, bump: int = CANONICAL_BUMP
) -> str:
    """
    Re-derive a record key and compare it with a caller supplied one.

    Returns the derived key. A missing claim is accepted (the derived key is
    used); a mismatching claim is a hard failure.
    """
    expected = derive_record_key(kind, *components, bump=bump)
    if claimed is not None and claimed != expected:
        logger.warning(
            "Record address mismatch",
            extra={
                "event": "store.address_mismatch",
                "record_kind": kind.name,
                "claimed_prefix": str(claimed)[:16],
                "expected_prefix": expected[:16],
            },
        )
        raise InvalidRecordAddressError(
            f"{kind.name} record key does not match its derivation",
            details={"claimed": claimed, "expected": expected},
        )
    return expected


def minimum_balance(size: int) -> int:
    """Reserved balance required to keep a record of ``size`` bytes."""
    return (size + RECORD_OVERHEAD_BYTES) * RESERVE_PER_BYTE


@dataclass(frozen=True)
class StoredRecord:
    data: bytes
    reserved_balance: int
    owner: str


class RecordStore:
    """In-memory keyed record store with snapshot/restore support."""

    def __init__(self) -> None:
        self._records: Dict[str, StoredRecord] = {}
        # Reserved balances released by deletions, per beneficiary
        self.released_balances: Dict[str, int] = {}

    def exists(self, key: str) -> bool:
        return key in self._records

    def get(self, key: str) -> Optional[StoredRecord]:
        return self._records.get(key)

    def read(self, key: str) -> StoredRecord:
        record = self._records.get(key)
        if record is None:
            raise RecordNotCreatedError(f"no record stored under {key[:16]}...")
        return record

    def create(self, key: str, data: bytes, reserved_balance: int, owner: str) -> None:
        if key in self._records:
            raise RecordAlreadyExistsError(f"a record already exists under {key[:16]}...")
        self._records[key] = StoredRecord(bytes(data), reserved_balance, owner)
        logger.debug(
            "Record created",
            extra={"event": "store.create", "key_prefix": key[:16], "size": len(data)},
        )

    def write(self, key: str, data: bytes) -> None:
        record = self._records.get(key)
        if record is None:
            raise RecordNotCreatedError(f"cannot write {key[:16]}...: record was never created")
        # Grow the reserve if the record grew beyond what it covers
        reserved = max(record.reserved_balance, minimum_balance(len(data)))
        self._records[key] = StoredRecord(bytes(data), reserved, record.owner)

    def delete(self, key: str, beneficiary: str) -> int:
        """
        Delete a record and release its reserved balance to ``beneficiary``.

        Returns the released amount. Deleting a missing record is a no-op.
        """
        record = self._records.pop(key, None)
        if record is None:
            return 0
        self.released_balances[beneficiary] = (
            self.released_balances.get(beneficiary, 0) + record.reserved_balance
        )
        logger.debug(
            "Record deleted",
            extra={
                "event": "store.delete",
                "key_prefix": key[:16],
                "released": record.reserved_balance,
            },
        )
        return record.reserved_balance

    def __len__(self) -> int:
        return len(self._records)

    def snapshot(self) -> Tuple[Dict[str, StoredRecord], Dict[str, int]]:
        return dict(self._records), dict(self.released_balances)

    def restore(self, snapshot: Tuple[Dict[str, StoredRecord], Dict[str, int]]) -> None:
        records, released = snapshot
        self._records = dict(records)
        self.released_balances = dict(released)
