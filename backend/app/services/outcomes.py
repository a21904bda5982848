"""
Tagged outcome type shared by the admission ledger and the retry wrapper.

Every data-access operation reports through an Outcome, whether it ended in
a business result (code claimed, already on waitlist, ...) or a failure.
Failures carry their classification so the retry wrapper can decide from
the returned value alone.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class OutcomeKind(str, Enum):
    OK = "ok"
    CLAIMED = "claimed"
    ALREADY_CLAIMED_OR_INVALID = "already_claimed_or_invalid"
    JOINED_WAITLIST = "joined_waitlist"
    ALREADY_ON_WAITLIST = "already_on_waitlist"
    ALREADY_REGISTERED = "already_registered"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


FAILURE_KINDS = frozenset({OutcomeKind.TRANSIENT_FAILURE, OutcomeKind.PERMANENT_FAILURE})


@dataclass(frozen=True)
class FailureCause:
    message: str
    error_type: str
    transient: bool


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    value: Any = None
    cause: Optional[FailureCause] = None
    attempts: int = 1

    @property
    def is_failure(self) -> bool:
        return self.kind in FAILURE_KINDS

    @property
    def is_transient_failure(self) -> bool:
        return self.kind is OutcomeKind.TRANSIENT_FAILURE

    def with_attempts(self, attempts: int) -> "Outcome":
        return replace(self, attempts=attempts)

    @classmethod
    def ok(cls, value: Any = None) -> "Outcome":
        return cls(OutcomeKind.OK, value=value)

    @classmethod
    def claimed(cls) -> "Outcome":
        return cls(OutcomeKind.CLAIMED)

    @classmethod
    def already_claimed_or_invalid(cls) -> "Outcome":
        return cls(OutcomeKind.ALREADY_CLAIMED_OR_INVALID)

    @classmethod
    def joined_waitlist(cls) -> "Outcome":
        return cls(OutcomeKind.JOINED_WAITLIST)

    @classmethod
    def already_on_waitlist(cls) -> "Outcome":
        return cls(OutcomeKind.ALREADY_ON_WAITLIST)

    @classmethod
    def already_registered(cls) -> "Outcome":
        return cls(OutcomeKind.ALREADY_REGISTERED)

    @classmethod
    def failure(cls, cause: FailureCause) -> "Outcome":
        kind = OutcomeKind.TRANSIENT_FAILURE if cause.transient else OutcomeKind.PERMANENT_FAILURE
        return cls(kind, cause=cause)

    @classmethod
    def transient(cls, message: str, error_type: str = "TransientError") -> "Outcome":
        return cls.failure(FailureCause(message=message, error_type=error_type, transient=True))

    @classmethod
    def permanent(cls, message: str, error_type: str = "PermanentError") -> "Outcome":
        return cls.failure(FailureCause(message=message, error_type=error_type, transient=False))
