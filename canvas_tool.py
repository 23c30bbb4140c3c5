#!/usr/bin/env python3
"""
canvas_tool.py: operator helpers for the Canvas signed request server.

Subcommands:
- sign          Mint a signed request for a JSON payload (local testing).
- verify        Verify a signed request and print its claims.
- verify-audit  Check the hash chain of the verification audit log.

Exit codes:
- 0: OK
- 1: Verification failed
- 2: Bad input (invalid JSON payload, unsupported algorithm, empty secret)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from canvas_auth.audit import AuditLog
from canvas_auth.errors import SignedRequestError, VerifierNotConfigured
from canvas_auth.logging_config import configure_logging
from canvas_auth.signed_request import sign_envelope
from canvas_auth.verifier import verify

logger = logging.getLogger("canvas_tool")


def _cmd_sign(args: argparse.Namespace) -> int:
    try:
        payload = json.loads(args.payload)
    except ValueError as e:
        print(f"FAIL: payload is not JSON: {e}", file=sys.stderr)
        return 2
    if not isinstance(payload, dict):
        print("FAIL: payload must be a JSON object", file=sys.stderr)
        return 2

    try:
        print(sign_envelope(payload, args.secret))
    except SignedRequestError as e:
        print(f"FAIL: {e.message}", file=sys.stderr)
        return 2
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    try:
        res = verify(args.signed_request, args.secret)
    except VerifierNotConfigured as e:
        print(f"FAIL: {e}", file=sys.stderr)
        return 2
    if not res.ok:
        print("FAIL", file=sys.stderr)
        print(f"{res.error.value}: {res.message}", file=sys.stderr)
        return 1

    print(json.dumps(res.envelope, indent=2, sort_keys=True))
    return 0


def _cmd_verify_audit(args: argparse.Namespace) -> int:
    log = AuditLog(args.dir)
    if not log.log_path.exists():
        logger.info("no audit log at %s", log.log_path)

    if log.verify_chain():
        print("OK")
        return 0

    print("FAIL", file=sys.stderr)
    print(f"hash chain broken in {log.log_path}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Mint/verify Canvas signed requests and check the audit log."
    )
    sub = p.add_subparsers(dest="command", required=True)

    sign = sub.add_parser("sign", help="Mint a signed request")
    sign.add_argument("--secret", required=True, help="Client secret (Consumer Secret)")
    sign.add_argument(
        "--payload",
        required=True,
        help='Envelope JSON, e.g. \'{"algorithm":"HMACSHA256","user_id":"42"}\'',
    )
    sign.set_defaults(func=_cmd_sign)

    ver = sub.add_parser("verify", help="Verify a signed request")
    ver.add_argument("--secret", required=True, help="Client secret (Consumer Secret)")
    ver.add_argument("signed_request", help="signature.payload string")
    ver.set_defaults(func=_cmd_verify)

    aud = sub.add_parser("verify-audit", help="Check the audit log hash chain")
    aud.add_argument(
        "--dir",
        type=Path,
        default=Path("audit"),
        help="Audit directory (default: ./audit)",
    )
    aud.set_defaults(func=_cmd_verify_audit)

    p.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper())
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
