"""
Threshold (N-of-M) signer authorization.

A :class:`ThresholdKeySet` stores exactly five distinct identities. An
operation declares a :class:`SecurityLevel`; the level maps to the number
N of co-signers required. The caller supplies an ordered list of
:class:`Signer` entries and only the first N positions are considered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_pem_public_key,
)

from icovault.core.constants import (
    CRITICAL_REQUIRED_SIGNERS,
    ROUTINE_REQUIRED_SIGNERS,
    SENSITIVE_REQUIRED_SIGNERS,
    THRESHOLD_KEY_COUNT,
)
from icovault.core.exceptions import (
    DuplicatedKeyError,
    InvalidOperationError,
    InvalidSignerError,
)
from icovault.core.logging_config import log_security_event

logger = logging.getLogger(__name__)


class SecurityLevel(IntEnum):
    """Security levels attached to operations."""

    ROUTINE = 1
    SENSITIVE = 2
    CRITICAL = 3

    @property
    def required_signers(self) -> int:
        return _REQUIRED_SIGNERS[self]


_REQUIRED_SIGNERS = {
    SecurityLevel.ROUTINE: ROUTINE_REQUIRED_SIGNERS,
    SecurityLevel.SENSITIVE: SENSITIVE_REQUIRED_SIGNERS,
    SecurityLevel.CRITICAL: CRITICAL_REQUIRED_SIGNERS,
}


class KeySetTag(Enum):
    ADMIN = "Admin"
    FREEZE = "Freeze"


@dataclass(frozen=True)
class Signer:
    """One positional signer supplied with an operation."""

    identity: str
    is_signed: bool = True


@dataclass(frozen=True)
class ThresholdKeySet:
    """Five distinct identities allowed to co-sign operations."""

    tag: KeySetTag
    keys: Tuple[str, ...]

    def __post_init__(self) -> None:
        keys = tuple(self.keys)
        object.__setattr__(self, "keys", keys)
        if len(keys) != THRESHOLD_KEY_COUNT:
            raise InvalidOperationError(
                f"{self.tag.value} key set must hold exactly {THRESHOLD_KEY_COUNT} keys, got {len(keys)}"
            )
        if any(not key for key in keys):
            raise InvalidOperationError(f"{self.tag.value} key set contains an empty identity")
        if len(set(keys)) != len(keys):
            raise DuplicatedKeyError("duplicated key in multisig definition")

    def __contains__(self, identity: object) -> bool:
        return identity in self.keys

    def validate(self, signers: Sequence[Signer], level: SecurityLevel) -> None:
        """
        Check that the first N signers satisfy this key set at ``level``.

        The first N entries are deduplicated by (signed flag, identity); every
        remaining entry must be signed and a member of the key set.

        Raises:
            InvalidSignerError: if the positional signers do not satisfy the level
        """
        required = level.required_signers
        window = list(signers)[:required]
        distinct = {(signer.is_signed, signer.identity) for signer in window}

        if len(distinct) < required:
            logger.info(
                "Not enough distinct signers for operation",
                extra={
                    "event": "threshold.insufficient_signers",
                    "level": level.name,
                    "signers_provided": len(distinct),
                    "threshold_required": required,
                },
            )
            log_security_event(
                "authorization_failure",
                {"key_set": self.tag.value, "level": level.name, "reason": "insufficient_signers"},
                severity="WARNING",
            )
            raise InvalidSignerError(
                f"{level.name.lower()} operation requires {required} distinct signers",
                details={"required": required, "provided": len(distinct)},
            )

        for is_signed, identity in distinct:
            if not is_signed or identity not in self.keys:
                logger.warning(
                    "Unauthorized signer in threshold validation",
                    extra={
                        "event": "threshold.unauthorized_signer",
                        "level": level.name,
                        "key_prefix": identity[:16],
                        "signed": is_signed,
                    },
                )
                log_security_event(
                    "authorization_failure",
                    {
                        "key_set": self.tag.value,
                        "level": level.name,
                        "reason": "unsigned" if not is_signed else "not_a_member",
                        "key_prefix": identity[:16],
                    },
                    severity="WARNING",
                )
                raise InvalidSignerError("signer is not authorized for this operation")

        logger.debug(
            "Threshold met",
            extra={"event": "threshold.met", "level": level.name, "key_set": self.tag.value},
        )

    def replaced(self, new_keys: Iterable[str], signers: Sequence[Signer]) -> "ThresholdKeySet":
        """
        Return a new key set holding ``new_keys``.

        Requires Critical-level validation against the current keys.
        """
        self.validate(signers, SecurityLevel.CRITICAL)
        updated = ThresholdKeySet(self.tag, tuple(new_keys))
        log_security_event(
            "threshold_key_set_rotated",
            {"key_set": self.tag.value, "key_prefixes": [key[:16] for key in updated.keys]},
            severity="WARNING",
        )
        return updated

    def to_dict(self) -> Dict[str, Any]:
        return {"tag": self.tag.value, "keys": list(self.keys)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThresholdKeySet":
        return cls(KeySetTag(data["tag"]), tuple(data["keys"]))


def public_key_identity(public_key: ec.EllipticCurvePublicKey) -> str:
    """Identity of a public key: hex of its PEM encoding."""
    pem = public_key.public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo)
    return pem.hex()


def signers_from_signatures(message: bytes, signatures: Sequence[Tuple[str, str]]) -> List[Signer]:
    """
    Build positional signers from (public_key_hex, signature_hex) pairs.

    Order is preserved. An entry whose signature does not verify against
    ``message`` is kept but marked unsigned, so that it still occupies its
    position in the authorizer's window.
    """
    signers: List[Signer] = []
    for pub_key_hex, signature_hex in signatures:
        try:
            public_key = load_pem_public_key(bytes.fromhex(pub_key_hex))
            if not isinstance(public_key, ec.EllipticCurvePublicKey):
                raise TypeError("only EC public keys are supported")
            public_key.verify(bytes.fromhex(signature_hex), message, ec.ECDSA(hashes.SHA256()))
            signers.append(Signer(pub_key_hex, True))
        except (InvalidSignature, ValueError, TypeError) as e:
            logger.debug(
                "Invalid signature in signer list",
                extra={
                    "event": "threshold.invalid_signature",
                    "key_prefix": pub_key_hex[:16],
                    "error_type": type(e).__name__,
                },
            )
            signers.append(Signer(pub_key_hex, False))
    return signers
