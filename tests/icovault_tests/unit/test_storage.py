"""
Unit tests for key derivation, the record store and the record codec.
"""

import pytest

from icovault.core.constants import CANONICAL_BUMP
from icovault.core.exceptions import (
    InvalidRecordAddressError,
    InvalidRecordTypeError,
    RecordAlreadyExistsError,
    RecordNotCreatedError,
)
from icovault.core.records import decode_record, encode_record
from icovault.core.storage import (
    RecordKind,
    RecordStore,
    derive_record_key,
    minimum_balance,
    verify_record_key,
)


class TestKeyDerivation:
    def test_deterministic(self):
        assert derive_record_key(RecordKind.INVESTOR_LEDGER, "p", "u", bump=7) == derive_record_key(
            RecordKind.INVESTOR_LEDGER, "p", "u", bump=7
        )

    def test_components_change_key(self):
        a = derive_record_key(RecordKind.INVESTOR_LEDGER, "p", "u1", bump=7)
        b = derive_record_key(RecordKind.INVESTOR_LEDGER, "p", "u2", bump=7)
        c = derive_record_key(RecordKind.TIMELOCK_QUEUE, "p", "u1", bump=7)
        d = derive_record_key(RecordKind.INVESTOR_LEDGER, "p", "u1", bump=8)
        assert len({a, b, c, d}) == 4

    def test_length_prefix_prevents_concatenation_collision(self):
        a = derive_record_key(RecordKind.INVESTOR_LEDGER, "ab", "c", bump=1)
        b = derive_record_key(RecordKind.INVESTOR_LEDGER, "a", "bc", bump=1)
        assert a != b

    def test_verify_defaults_to_canonical_bump(self):
        key = derive_record_key(RecordKind.CONFIGURATION, "p", bump=CANONICAL_BUMP)
        assert verify_record_key(None, RecordKind.CONFIGURATION, "p") == key

    def test_bump_must_be_a_byte(self):
        with pytest.raises(InvalidRecordAddressError):
            derive_record_key(RecordKind.CONFIGURATION, "p", bump=256)

    def test_verify_accepts_matching_or_missing_claim(self):
        key = derive_record_key(RecordKind.CONFIGURATION, "p", bump=CANONICAL_BUMP)
        assert verify_record_key(key, RecordKind.CONFIGURATION, "p") == key
        assert verify_record_key(None, RecordKind.CONFIGURATION, "p") == key

    def test_verify_rejects_mismatch(self):
        other = derive_record_key(RecordKind.CONFIGURATION, "q", bump=CANONICAL_BUMP)
        with pytest.raises(InvalidRecordAddressError):
            verify_record_key(other, RecordKind.CONFIGURATION, "p")


class TestRecordStore:
    def test_create_twice_fails(self):
        store = RecordStore()
        store.create("k", b"a", 10, "owner")
        with pytest.raises(RecordAlreadyExistsError):
            store.create("k", b"b", 10, "owner")

    def test_write_requires_create(self):
        store = RecordStore()
        with pytest.raises(RecordNotCreatedError):
            store.write("k", b"a")

    def test_write_grows_reserve(self):
        store = RecordStore()
        store.create("k", b"a", minimum_balance(1), "owner")
        store.write("k", b"a" * 100)
        assert store.read("k").reserved_balance == minimum_balance(100)
        assert store.read("k").owner == "owner"

    def test_delete_releases_reserve_to_beneficiary(self):
        store = RecordStore()
        store.create("k", b"a", 500, "owner")
        assert store.delete("k", beneficiary="user") == 500
        assert store.released_balances == {"user": 500}
        assert not store.exists("k")
        with pytest.raises(RecordNotCreatedError):
            store.read("k")

    def test_snapshot_restore(self):
        store = RecordStore()
        store.create("k", b"a", 1, "owner")
        snapshot = store.snapshot()
        store.write("k", b"b")
        store.create("k2", b"c", 1, "owner")
        store.restore(snapshot)
        assert store.read("k").data == b"a"
        assert len(store) == 1


class TestRecordCodec:
    def test_layout(self):
        data = encode_record(RecordKind.TIMELOCK_QUEUE, 255, {"entries": []})
        assert data[0] == int(RecordKind.TIMELOCK_QUEUE)
        assert data[1] == 255
        assert decode_record(data, RecordKind.TIMELOCK_QUEUE) == (255, {"entries": []})

    def test_wrong_discriminant(self):
        data = encode_record(RecordKind.TIMELOCK_QUEUE, 255, {})
        with pytest.raises(InvalidRecordTypeError):
            decode_record(data, RecordKind.CONFIGURATION)

    def test_corrupt_body(self):
        with pytest.raises(InvalidRecordTypeError):
            decode_record(bytes([0, 255]) + b"{not json", RecordKind.CONFIGURATION)

    def test_too_short(self):
        with pytest.raises(InvalidRecordTypeError):
            decode_record(b"\x00", RecordKind.CONFIGURATION)
