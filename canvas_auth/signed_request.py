# canvas_auth/signed_request.py
#
# -----------------------------------------------------------------------------
# Architectural notes
# -----------------------------------------------------------------------------
# This module defines the *wire format* of a Canvas signed request.
#
# Responsibilities:
#   - Split and decode the `signature.payload` string
#   - Map the envelope's `algorithm` field onto a closed set of digests
#   - Compute the keyed digest the host signs with
#
# What this module is NOT:
#   - Not the accept/reject decision (see verifier.py)
#   - Not an OAuth client
#
# Wire format (produced by the host platform):
#
#     <signature_b64>.<payload_b64>
#
# Where:
#   - both segments use STANDARD Base64 (+/ alphabet, '=' padding)
#   - payload is UTF-8 JSON (an object)
#   - signature = HMAC(client_secret, payload_b64 as UTF-8 bytes)
#
# The digest is computed over the *encoded* payload segment, never over
# re-serialized JSON. The standard Base64 alphabet has no '.', so splitting at
# the first separator is unambiguous.
# -----------------------------------------------------------------------------

import base64
import binascii
import json
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from cryptography.exceptions import AlreadyFinalized
from cryptography.hazmat.primitives import hashes, hmac

from .errors import SignedRequestError, VerificationErrorKind

SEPARATOR = "."

Envelope = Dict[str, Any]


# -----------------------------------------------------------------------------
# Algorithms
# -----------------------------------------------------------------------------
class SigningAlgorithm(str, Enum):
    HMACSHA256 = "HMACSHA256"

    @classmethod
    def resolve(cls, value: Any) -> "SigningAlgorithm":
        """
        Map an envelope's `algorithm` value onto the allow-list.

        Absent / null falls back to HMACSHA256. Anything else must match a
        member exactly; nothing is inferred from the value beyond that lookup.
        """
        if value is None:
            return DEFAULT_ALGORITHM
        if not isinstance(value, str):
            raise SignedRequestError(
                VerificationErrorKind.UNSUPPORTED_ALGORITHM,
                f"Unsupported algorithm: {value!r}",
            )
        try:
            return cls(value)
        except ValueError:
            raise SignedRequestError(
                VerificationErrorKind.UNSUPPORTED_ALGORITHM,
                f"Unsupported algorithm: {value[:40]!r}",
            )

    def digest(self) -> hashes.HashAlgorithm:
        return _DIGESTS[self]()


DEFAULT_ALGORITHM = SigningAlgorithm.HMACSHA256

_DIGESTS = {
    SigningAlgorithm.HMACSHA256: hashes.SHA256,
}


# -----------------------------------------------------------------------------
# Base64 helpers
# -----------------------------------------------------------------------------
def b64_encode(b: bytes) -> str:
    """Standard Base64 WITH padding, as the host emits it."""
    return base64.b64encode(b).decode("ascii")


def b64decode_loose(s: str) -> bytes:
    """
    Standard Base64 decode with optional missing padding.

    Characters are still validated so garbage is rejected instead of being
    silently skipped.
    """
    s = str(s).strip()
    s += "=" * (-len(s) % 4)
    return base64.b64decode(s, validate=True)


def _to_key(secret: Union[str, bytes]) -> bytes:
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------
def _malformed(message: str) -> SignedRequestError:
    return SignedRequestError(VerificationErrorKind.MALFORMED_ENVELOPE, message)


def split_signed_request(signed_request: str) -> Tuple[str, str]:
    """
    Split into (encoded_signature, encoded_envelope) at the FIRST separator.

    Format validation only; nothing is decoded here.
    """
    if SEPARATOR not in signed_request:
        raise _malformed("The signed request doesn't appear to be a real signed request.")

    encoded_signature, encoded_envelope = signed_request.split(SEPARATOR, 1)
    if not encoded_signature or not encoded_envelope:
        raise _malformed("The signed request has an empty segment.")
    return encoded_signature, encoded_envelope


def decode_envelope(encoded_envelope: str) -> Envelope:
    try:
        raw = b64decode_loose(encoded_envelope)
        envelope = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise _malformed("The envelope is not valid Base64-encoded JSON.")
    except RecursionError:
        raise _malformed("The envelope is nested too deeply.")

    if not isinstance(envelope, dict):
        raise _malformed("The envelope must be a JSON object.")
    return envelope


def decode_signature(encoded_signature: str) -> bytes:
    try:
        return b64decode_loose(encoded_signature)
    except (binascii.Error, ValueError):
        raise _malformed("The signature is not valid Base64.")


# -----------------------------------------------------------------------------
# Keyed digest
# -----------------------------------------------------------------------------
@contextmanager
def mac_context(secret: Union[str, bytes], algorithm: SigningAlgorithm) -> Iterator[hmac.HMAC]:
    """
    Yield a fresh HMAC context and finalize it on every exit path.

    Each call gets its own context, so concurrent verifications share nothing.
    """
    mac = hmac.HMAC(_to_key(secret), algorithm.digest())
    try:
        yield mac
    finally:
        try:
            mac.finalize()
        except AlreadyFinalized:
            pass


def compute_signature(
    encoded_envelope: str,
    secret: Union[str, bytes],
    algorithm: SigningAlgorithm = DEFAULT_ALGORITHM,
) -> bytes:
    with mac_context(secret, algorithm) as mac:
        mac.update(encoded_envelope.encode("utf-8"))
        return mac.finalize()


# -----------------------------------------------------------------------------
# Signing (host side; used by canvas_tool.py and tests)
# -----------------------------------------------------------------------------
def sign_envelope(
    envelope: Envelope,
    secret: Union[str, bytes],
    algorithm: Optional[SigningAlgorithm] = None,
) -> str:
    """
    Produce `signature.payload` for an envelope the same way the host does.

    The envelope is serialized once; the signature covers exactly those
    encoded bytes.
    """
    algorithm = algorithm or SigningAlgorithm.resolve(envelope.get("algorithm"))
    encoded_envelope = b64_encode(
        json.dumps(envelope, separators=(",", ":")).encode("utf-8")
    )
    signature = compute_signature(encoded_envelope, secret, algorithm)
    return b64_encode(signature) + SEPARATOR + encoded_envelope
