"""
Binary record codec.

Layout of every stored record:

- byte 0: :class:`RecordKind` discriminant
- byte 1: bump used to derive the record's key
- rest:   canonical JSON (sorted keys, compact separators) of the body
"""

from __future__ import annotations

import json
from typing import Any, Dict, Tuple

from icovault.core.exceptions import InvalidRecordTypeError
from icovault.core.storage import RecordKind


def canonical_json(body: Dict[str, Any]) -> bytes:
    return json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")


def encode_record(kind: RecordKind, bump: int, body: Dict[str, Any]) -> bytes:
    return bytes([int(kind), bump]) + canonical_json(body)


def decode_record(data: bytes, expected: RecordKind) -> Tuple[int, Dict[str, Any]]:
    """
    Decode a record, checking its discriminant.

    Returns:
        (bump, body)

    Raises:
        InvalidRecordTypeError: if the discriminant does not match or the body is corrupt
    """
    if len(data) < 2:
        raise InvalidRecordTypeError("record is too short to carry a discriminant")
    if data[0] != int(expected):
        try:
            found = RecordKind(data[0]).name
        except ValueError:
            found = str(data[0])
        raise InvalidRecordTypeError(
            f"expected a {expected.name} record, found {found}",
            details={"expected": expected.name, "found": found},
        )
    try:
        body = json.loads(data[2:].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidRecordTypeError(f"{expected.name} record body is corrupt: {exc}") from exc
    if not isinstance(body, dict):
        raise InvalidRecordTypeError(f"{expected.name} record body is not an object")
    return data[1], body
