# canvas_auth/errors.py
#
# Failure kinds for signed-request verification. Every kind is fail-closed and
# reported to the caller as-is so routes and tests can branch on *why* a
# request was rejected.

from enum import Enum


class VerificationErrorKind(str, Enum):
    MISSING_INPUT = "missing_input"
    MALFORMED_ENVELOPE = "malformed_envelope"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    SIGNATURE_MISMATCH = "signature_mismatch"


class SignedRequestError(ValueError):
    """A signed request was rejected. `kind` says which check failed."""

    def __init__(self, kind: VerificationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class VerifierNotConfigured(RuntimeError):
    """Raised when a verifier is built without a client secret."""
