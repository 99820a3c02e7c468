"""
Exception hierarchy for icovault.

Every failure of an operation surfaces as one of these typed exceptions,
each carrying a distinguishable :class:`ErrorCode`. The runtime aborts the
whole operation on any of them, so none is ever swallowed by a handler.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Authorization
    INVALID_SIGNER = "InvalidSigner"
    DUPLICATED_KEY_IN_MULTISIG_DEFINITION = "DuplicatedKeyInMultisigDefinition"
    # Integrity
    INVALID_RECORD_ADDRESS = "InvalidRecordAddress"
    INVALID_RECORD_TYPE = "InvalidRecordType"
    INVALID_OWNER = "InvalidOwner"
    OWNER_MISMATCH = "OwnerMismatch"
    RECORD_ALREADY_EXISTS = "RecordAlreadyExists"
    RECORD_NOT_CREATED = "RecordNotCreated"
    # Schedule validity
    INVALID_UNVESTING_DEFINITION = "InvalidUnvestingDefinition"
    # Lifecycle
    ALREADY_INITIALIZED = "AlreadyInitialized"
    LAUNCH_ALREADY_SET = "LaunchAlreadySet"
    INVEST_AFTER_LAUNCH = "InvestAfterLaunch"
    UNVEST_BEFORE_LAUNCH = "UnvestBeforeLaunch"
    CANCEL_AFTER_LAUNCH = "CancelAfterLaunch"
    INVESTMENT_DOES_NOT_EXIST = "InvestmentDoesNotExist"
    POST_LAUNCH_BEFORE_LAUNCH = "PostLaunchBeforeLaunch"
    INVALID_INVESTED_AMOUNT = "InvalidInvestedAmount"
    INVALID_OPERATION = "InvalidOperation"
    # Timelock
    QUEUED_INSTRUCTION_NOT_READY = "QueuedInstructionNotReady"
    NO_MATCHING_QUEUED_INSTRUCTION = "NoMatchingQueuedInstruction"
    # Arithmetic
    INTEGER_OVERFLOW = "IntegerOverflow"
    ARITHMETIC_ERROR = "ArithmeticError"
    INVALID_AMOUNT = "InvalidAmount"
    # Instruction decoding
    INVALID_INSTRUCTION = "InvalidInstruction"
    # Token ledger
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    ACCOUNT_FROZEN = "AccountFrozen"
    INVALID_AUTHORITY = "InvalidAuthority"


class IcoError(Exception):
    """Base exception for all icovault errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether resubmitting the same operation later may succeed
    """

    code: ErrorCode = ErrorCode.INVALID_OPERATION
    recoverable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        message = message or self.code.value
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ==================== Authorization Errors ====================


class AuthorizationError(IcoError):
    """Raised when the supplied signers do not satisfy a key set."""
    pass


class InvalidSignerError(AuthorizationError):
    """Not enough distinct, signed, authorized signers for the operation."""
    code = ErrorCode.INVALID_SIGNER


class DuplicatedKeyError(AuthorizationError):
    """A threshold key set definition contains the same identity twice."""
    code = ErrorCode.DUPLICATED_KEY_IN_MULTISIG_DEFINITION


# ==================== Integrity Errors ====================


class IntegrityError(IcoError):
    """Raised when a stored record fails an identity or type check."""
    pass


class InvalidRecordAddressError(IntegrityError):
    """A claimed record key does not match its re-derived key."""
    code = ErrorCode.INVALID_RECORD_ADDRESS


class InvalidRecordTypeError(IntegrityError):
    """A record's discriminant byte does not match the expected kind."""
    code = ErrorCode.INVALID_RECORD_TYPE


class InvalidOwnerError(IntegrityError):
    """A record is not owned by this program."""
    code = ErrorCode.INVALID_OWNER


class OwnerMismatchError(IntegrityError):
    """Two related records disagree about their owner."""
    code = ErrorCode.OWNER_MISMATCH


class RecordAlreadyExistsError(IntegrityError):
    """Tried to create a record under a key that already holds one."""
    code = ErrorCode.RECORD_ALREADY_EXISTS


class RecordNotCreatedError(IntegrityError):
    """Tried to write or read a record that was never created."""
    code = ErrorCode.RECORD_NOT_CREATED


# ==================== Schedule Errors ====================


class ScheduleError(IcoError):
    """Raised when a vesting schedule definition is rejected."""
    pass


class InvalidUnvestingDefinitionError(ScheduleError):
    code = ErrorCode.INVALID_UNVESTING_DEFINITION


# ==================== Lifecycle Errors ====================


class LifecycleError(IcoError):
    """Raised when an operation is not allowed in the current program phase."""
    pass


class AlreadyInitializedError(LifecycleError):
    code = ErrorCode.ALREADY_INITIALIZED


class LaunchAlreadySetError(LifecycleError):
    code = ErrorCode.LAUNCH_ALREADY_SET


class InvestAfterLaunchError(LifecycleError):
    code = ErrorCode.INVEST_AFTER_LAUNCH


class UnvestBeforeLaunchError(LifecycleError):
    code = ErrorCode.UNVEST_BEFORE_LAUNCH


class CancelAfterLaunchError(LifecycleError):
    code = ErrorCode.CANCEL_AFTER_LAUNCH


class InvestmentDoesNotExistError(LifecycleError):
    code = ErrorCode.INVESTMENT_DOES_NOT_EXIST


class PostLaunchBeforeLaunchError(LifecycleError):
    code = ErrorCode.POST_LAUNCH_BEFORE_LAUNCH


class InvalidInvestedAmountError(LifecycleError):
    """The launch amount differs from the running invested total."""
    code = ErrorCode.INVALID_INVESTED_AMOUNT


class InvalidOperationError(LifecycleError):
    code = ErrorCode.INVALID_OPERATION


# ==================== Timelock Errors ====================


class TimelockError(IcoError):
    """Raised when a timelocked operation cannot be consumed."""
    pass


class QueuedInstructionNotReadyError(TimelockError):
    """The matching entry exists but its delay has not elapsed yet."""
    code = ErrorCode.QUEUED_INSTRUCTION_NOT_READY
    recoverable = True  # Can resubmit once the entry matures


class NoMatchingQueuedInstructionError(TimelockError):
    code = ErrorCode.NO_MATCHING_QUEUED_INSTRUCTION


# ==================== Arithmetic Errors ====================


class ArithmeticFault(IcoError):
    """Raised when an amount or time computation cannot be performed."""
    code = ErrorCode.ARITHMETIC_ERROR


class IntegerOverflowError(ArithmeticFault):
    code = ErrorCode.INTEGER_OVERFLOW


class InvalidAmountError(ArithmeticFault):
    code = ErrorCode.INVALID_AMOUNT


# ==================== Instruction Errors ====================


class InvalidInstructionError(IcoError):
    """Raised when instruction data cannot be decoded."""
    code = ErrorCode.INVALID_INSTRUCTION


# ==================== Token Ledger Errors ====================


class TokenLedgerError(IcoError):
    """Raised by the token ledger collaborator."""
    pass


class InsufficientFundsError(TokenLedgerError):
    code = ErrorCode.INSUFFICIENT_FUNDS


class AccountFrozenError(TokenLedgerError):
    code = ErrorCode.ACCOUNT_FROZEN


class InvalidAuthorityError(TokenLedgerError):
    """Mint authority was revoked or never granted."""
    code = ErrorCode.INVALID_AUTHORITY


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, IcoError):
        context["error_code"] = exc.code.value
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context
