# Error taxonomy and verification outcomes.
# Created: 2026-10-18
#
# ConfigurationError is raised at construction time. Everything that can go
# wrong with a single request is folded into a Verdict instead of raised.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "ConfigurationError",
    "MalformedTokenError",
    "Outcome",
    "RejectReason",
    "Verdict",
]


class ConfigurationError(Exception):
    """Contradictory or invalid options passed when building the engine."""


class MalformedTokenError(Exception):
    """A masked token could not be decoded into a secret."""


class Outcome(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    ERROR = "error"


class RejectReason(str, Enum):
    """Why a protected request was refused."""

    ORIGIN_MISMATCH = "origin_mismatch"
    TOKEN_MISSING = "token_missing"
    SESSION_MISSING = "session_missing"
    SECRET_MISSING = "secret_missing"
    TOKEN_MALFORMED = "token_malformed"
    LENGTH_MISMATCH = "length_mismatch"
    VALUE_MISMATCH = "value_mismatch"
    TOKEN_INVALID = "token_invalid"  # Stateless signature failure
    TOKEN_EXPIRED = "token_expired"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    RejectReason.ORIGIN_MISMATCH: "CSRF: origin/referrer mismatch.",
    RejectReason.TOKEN_MISSING: "CSRF token missing.",
    RejectReason.SESSION_MISSING: "CSRF session missing.",
    RejectReason.SECRET_MISSING: "CSRF secret missing.",
    RejectReason.TOKEN_MALFORMED: "CSRF token malformed.",
    RejectReason.LENGTH_MISMATCH: "CSRF token length mismatch.",
    RejectReason.VALUE_MISMATCH: "CSRF token mismatch.",
    RejectReason.TOKEN_INVALID: "CSRF token invalid.",
    RejectReason.TOKEN_EXPIRED: "CSRF token expired.",
}

INTERNAL_ERROR_DETAIL = "CSRF verification error."


@dataclass(frozen=True)
class Verdict:
    """Decision for one protected request."""

    outcome: Outcome
    reason: RejectReason | None = None
    detail: str = ""

    @classmethod
    def accept(cls) -> Verdict:
        return cls(Outcome.ACCEPT)

    @classmethod
    def reject(cls, reason: RejectReason) -> Verdict:
        return cls(Outcome.REJECT, reason, reason.message)

    @classmethod
    def internal_error(cls) -> Verdict:
        return cls(Outcome.ERROR, None, INTERNAL_ERROR_DETAIL)

    @property
    def accepted(self) -> bool:
        return self.outcome is Outcome.ACCEPT

    @property
    def status_code(self) -> int:
        if self.outcome is Outcome.ACCEPT:
            return 200
        if self.outcome is Outcome.REJECT:
            return 403
        return 500
