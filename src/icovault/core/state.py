"""
Typed access to the program's records.

Every load checks the record's owner and discriminant and re-derives its
key from the components stored in the record itself. Nothing loaded here
is cached between operations.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from icovault.blockchain.investment_ledger import IcoConfiguration, InvestorLedger
from icovault.core.constants import CANONICAL_BUMP
from icovault.core.exceptions import InvalidOwnerError, InvalidRecordAddressError, OwnerMismatchError
from icovault.core.records import decode_record, encode_record
from icovault.core.storage import (
    KeyComponent,
    RecordKind,
    RecordStore,
    derive_record_key,
    minimum_balance,
)
from icovault.security.threshold_authorizer import KeySetTag, ThresholdKeySet
from icovault.wallet.timelock_queue import TimelockQueue

logger = logging.getLogger(__name__)


class ProgramState:
    """Loads and saves the program's typed records in a :class:`RecordStore`."""

    def __init__(self, store: RecordStore, program_id: str):
        self.store = store
        self.program_id = program_id

    # ----- key derivation -----

    def configuration_key(self) -> str:
        return derive_record_key(RecordKind.CONFIGURATION, self.program_id, bump=CANONICAL_BUMP)

    def key_set_key(self, tag: KeySetTag = KeySetTag.ADMIN) -> str:
        return derive_record_key(
            RecordKind.THRESHOLD_KEY_SET, self.program_id, tag.value, bump=CANONICAL_BUMP
        )

    def ledger_key(self, owner: str) -> str:
        return derive_record_key(RecordKind.INVESTOR_LEDGER, self.program_id, owner, bump=CANONICAL_BUMP)

    def timelock_key(self) -> str:
        return derive_record_key(RecordKind.TIMELOCK_QUEUE, self.program_id, bump=CANONICAL_BUMP)

    # ----- generic load/save -----

    def _load(
        self,
        key: str,
        kind: RecordKind,
        components: Sequence[KeyComponent],
    ) -> Optional[Dict[str, Any]]:
        """Load a record body, checking owner, discriminant and key derivation."""
        record = self.store.get(key)
        if record is None:
            return None
        if record.owner != self.program_id:
            raise InvalidOwnerError(
                f"{kind.name} record is not owned by this program",
                details={"owner": record.owner, "program_id": self.program_id},
            )
        bump, body = decode_record(record.data, kind)
        if derive_record_key(kind, *components, bump=bump) != key:
            raise InvalidRecordAddressError(
                f"{kind.name} record content does not match its key",
                details={"key": key},
            )
        return body

    def _save(self, key: str, kind: RecordKind, body: Dict[str, Any]) -> None:
        data = encode_record(kind, CANONICAL_BUMP, body)
        if self.store.exists(key):
            self.store.write(key, data)
        else:
            self.store.create(key, data, minimum_balance(len(data)), self.program_id)

    # ----- typed records -----

    def is_initialized(self) -> bool:
        return self.store.exists(self.configuration_key())

    def load_configuration(self) -> Optional[IcoConfiguration]:
        body = self._load(self.configuration_key(), RecordKind.CONFIGURATION, (self.program_id,))
        return IcoConfiguration.from_dict(body) if body is not None else None

    def save_configuration(self, configuration: IcoConfiguration) -> None:
        self._save(self.configuration_key(), RecordKind.CONFIGURATION, configuration.to_dict())

    def load_key_set(self, tag: KeySetTag = KeySetTag.ADMIN) -> Optional[ThresholdKeySet]:
        body = self._load(
            self.key_set_key(tag), RecordKind.THRESHOLD_KEY_SET, (self.program_id, tag.value)
        )
        return ThresholdKeySet.from_dict(body) if body is not None else None

    def save_key_set(self, key_set: ThresholdKeySet) -> None:
        self._save(self.key_set_key(key_set.tag), RecordKind.THRESHOLD_KEY_SET, key_set.to_dict())

    def load_ledger(self, owner: str) -> Optional[InvestorLedger]:
        """
        Load the ledger stored under ``owner``'s key.

        Raises:
            OwnerMismatchError: if the stored ledger records a different owner
        """
        # A ledger copied under another investor's key still derives to that
        # key, so the recorded owner is the only thing that exposes it
        body = self._load(self.ledger_key(owner), RecordKind.INVESTOR_LEDGER, (self.program_id, owner))
        if body is None:
            return None
        ledger = InvestorLedger.from_dict(body)
        if ledger.owner != owner:
            raise OwnerMismatchError(
                "ledger owner differs from the requested investor",
                details={"owner_prefix": ledger.owner[:16], "user_prefix": owner[:16]},
            )
        return ledger

    def save_ledger(self, ledger: InvestorLedger) -> None:
        self._save(self.ledger_key(ledger.owner), RecordKind.INVESTOR_LEDGER, ledger.to_dict())

    def delete_ledger(self, owner: str) -> int:
        """Destroy an empty ledger, releasing its reserve to the investor."""
        released = self.store.delete(self.ledger_key(owner), beneficiary=owner)
        logger.info(
            "Investor ledger closed",
            extra={"event": "state.ledger_closed", "owner_prefix": owner[:16], "released": released},
        )
        return released

    def load_timelock(self) -> Optional[TimelockQueue]:
        body = self._load(self.timelock_key(), RecordKind.TIMELOCK_QUEUE, (self.program_id,))
        return TimelockQueue.from_dict(body) if body is not None else None

    def save_timelock(self, queue: TimelockQueue) -> None:
        self._save(self.timelock_key(), RecordKind.TIMELOCK_QUEUE, queue.to_dict())
