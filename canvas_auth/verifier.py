# canvas_auth/verifier.py
#
# -----------------------------------------------------------------------------
# Architectural notes
# -----------------------------------------------------------------------------
# Accept/reject gate for Canvas signed requests.
#
#   1. bound the input length
#   2. split at the first '.'
#   3. decode the envelope (Base64 -> UTF-8 -> JSON object)
#   4. resolve the algorithm against a closed allow-list
#   5. HMAC the still-encoded envelope segment with the client secret
#   6. decode the claimed signature
#   7. constant-time compare (HMAC.verify)
#
# The secret is injected at construction; there is no global lookup here.
# The verifier holds no mutable state, so one instance can serve every
# request thread concurrently.
# -----------------------------------------------------------------------------

import logging
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature

from .errors import SignedRequestError, VerificationErrorKind, VerifierNotConfigured
from .signed_request import (
    Envelope,
    SigningAlgorithm,
    decode_envelope,
    decode_signature,
    mac_context,
    split_signed_request,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIGNED_REQUEST_LENGTH = 128 * 1024


@dataclass(frozen=True)
class VerificationResult:
    envelope: Optional[Envelope] = None
    error: Optional[VerificationErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, envelope: Envelope) -> "VerificationResult":
        return cls(envelope=envelope)

    @classmethod
    def failure(cls, err: SignedRequestError) -> "VerificationResult":
        return cls(error=err.kind, message=err.message)

    def unwrap(self) -> Envelope:
        """Return the verified envelope or raise the failure it carries."""
        if self.error is not None:
            raise SignedRequestError(self.error, self.message)
        return self.envelope


class SignedRequestVerifier:
    def __init__(
        self,
        secret: Union[str, bytes, None],
        *,
        max_length: int = DEFAULT_MAX_SIGNED_REQUEST_LENGTH,
    ):
        # fail closed: never HMAC with an empty key
        if not secret:
            raise VerifierNotConfigured("client_secret is not configured")
        if max_length <= 0:
            raise ValueError("max_length must be positive")

        self._secret = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        self.max_length = max_length

    @classmethod
    def from_settings(cls, settings) -> "SignedRequestVerifier":
        return cls(settings.CLIENT_SECRET, max_length=settings.MAX_SIGNED_REQUEST_LENGTH)

    def __repr__(self) -> str:
        return f"SignedRequestVerifier(max_length={self.max_length})"

    def verify(self, signed_request: Optional[str]) -> VerificationResult:
        """
        Verify a signed request and return the decoded envelope or the reason
        it was rejected. Never raises SignedRequestError.
        """
        try:
            envelope = self._verify_and_decode(signed_request)
        except SignedRequestError as e:
            logger.debug("signed request rejected: %s (%s)", e.kind.value, e.message)
            return VerificationResult.failure(e)
        return VerificationResult.success(envelope)

    def _verify_and_decode(self, signed_request: Optional[str]) -> Envelope:
        if signed_request is None:
            raise SignedRequestError(
                VerificationErrorKind.MISSING_INPUT, "signed_request is required"
            )

        if len(signed_request) > self.max_length:
            raise SignedRequestError(
                VerificationErrorKind.MALFORMED_ENVELOPE,
                f"signed_request exceeds {self.max_length} characters",
            )

        encoded_signature, encoded_envelope = split_signed_request(signed_request)
        envelope = decode_envelope(encoded_envelope)
        algorithm = SigningAlgorithm.resolve(envelope.get("algorithm"))

        self._check_signature(algorithm, encoded_envelope, encoded_signature)
        return envelope

    def _check_signature(
        self,
        algorithm: SigningAlgorithm,
        encoded_envelope: str,
        encoded_signature: str,
    ) -> None:
        with mac_context(self._secret, algorithm) as mac:
            mac.update(encoded_envelope.encode("utf-8"))
            signature = decode_signature(encoded_signature)
            try:
                mac.verify(signature)
            except InvalidSignature:
                raise SignedRequestError(
                    VerificationErrorKind.SIGNATURE_MISMATCH,
                    "Digest and signature did not match",
                )


def verify(signed_request: Optional[str], secret: Union[str, bytes]) -> VerificationResult:
    """One-shot helper: build a verifier for `secret` and verify."""
    return SignedRequestVerifier(secret).verify(signed_request)
