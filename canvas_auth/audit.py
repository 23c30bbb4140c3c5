"""
canvas_auth/audit.py

Tamper-evident audit log of signed-request verification outcomes.

We append one JSON object per line (JSONL). Each event is hash-chained:

  H_0 = "0"*64
  H_n = SHA3-256( bytes.fromhex(H_{n-1}) || canonical_json(event_without_hash_fields) )

Each line stores:
  - prev_hash: hex string (64 chars)
  - hash:      hex string (64 chars)

Properties:
- Any modification, deletion, or reordering of log lines breaks the chain.
- Chain state is persisted in <dir>/verification_audit.state
- Uses file locking (flock) to keep the chain consistent across workers.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

# Linux file lock (works in Docker/Linux)
import fcntl

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64  # 32 bytes hex

LOG_NAME = "verification_audit.jsonl"
STATE_NAME = "verification_audit.state"
LOCK_NAME = "verification_audit.lock"


def _canonical_json_bytes(obj: Dict[str, Any]) -> bytes:
    """
    Deterministic JSON bytes for hashing and logging:
    - sorted keys
    - no whitespace
    - UTF-8
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _sha3_256_hex(data: bytes) -> str:
    return hashlib.sha3_256(data).hexdigest()


def build_common(
    *,
    signed_request: Optional[str] = None,
    user_id: Optional[str] = None,
    org_id: Optional[str] = None,
    request_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build common audit fields. Keep this "boring" and stable.

    The signed request carries an OAuth token, so only its length and hash are
    recorded, never the value.
    """
    out: Dict[str, Any] = {"ts": int(time.time())}

    if user_id:
        out["user_id"] = user_id
    if org_id:
        out["org_id"] = org_id
    if request_ip:
        out["request_ip"] = request_ip
    if user_agent:
        out["user_agent"] = user_agent[:200]

    if signed_request is not None:
        raw = signed_request.encode("utf-8", errors="replace")
        out["signed_request_len"] = len(raw)
        out["signed_request_sha3_256"] = _sha3_256_hex(raw)

    return out


class AuditLog:
    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.log_path = self.directory / LOG_NAME
        self.state_path = self.directory / STATE_NAME
        self.lock_path = self.directory / LOCK_NAME

    def _read_last_hash_unlocked(self) -> str:
        """
        Read last hash from the state file. Caller must hold lock.
        Returns GENESIS_HASH if state missing or unreadable.
        """
        try:
            if not self.state_path.exists():
                return GENESIS_HASH
            s = self.state_path.read_text(encoding="utf-8").strip()
            if len(s) != 64:
                return GENESIS_HASH
            bytes.fromhex(s)
            return s.lower()
        except (OSError, ValueError):
            logger.warning("audit state unreadable, restarting chain from genesis")
            return GENESIS_HASH

    def append(self, event: Dict[str, Any]) -> str:
        """
        Append one event with hash chaining and return its hash.

        - locks the dedicated lock file
        - reads prev hash
        - hashes the canonical event (excluding chain fields)
        - writes the JSONL line and updates the state file
        """
        self.directory.mkdir(parents=True, exist_ok=True)

        with open(self.lock_path, "a+", encoding="utf-8") as lockf:
            fcntl.flock(lockf.fileno(), fcntl.LOCK_EX)
            try:
                prev_hash = self._read_last_hash_unlocked()

                # callers never supply their own chain fields
                e = dict(event)
                e.pop("prev_hash", None)
                e.pop("hash", None)

                next_hash = _sha3_256_hex(bytes.fromhex(prev_hash) + _canonical_json_bytes(e))

                stored = dict(e)
                stored["prev_hash"] = prev_hash
                stored["hash"] = next_hash

                with open(self.log_path, "ab") as f:
                    f.write(_canonical_json_bytes(stored) + b"\n")
                    f.flush()
                    os.fsync(f.fileno())

                self.state_path.write_text(next_hash + "\n", encoding="utf-8")
            finally:
                fcntl.flock(lockf.fileno(), fcntl.LOCK_UN)

        return next_hash

    def verify_chain(self) -> bool:
        """True if every line links to its predecessor and hashes correctly."""
        if not self.log_path.exists():
            return True

        prev = GENESIS_HASH
        try:
            with open(self.log_path, "rb") as f:
                for raw_line in f:
                    raw_line = raw_line.strip()
                    if not raw_line:
                        continue
                    obj = json.loads(raw_line.decode("utf-8"))

                    if obj.get("prev_hash") != prev:
                        return False

                    body = dict(obj)
                    body.pop("prev_hash", None)
                    line_hash = body.pop("hash", None)

                    expect = _sha3_256_hex(bytes.fromhex(prev) + _canonical_json_bytes(body))
                    if expect != line_hash:
                        return False

                    prev = line_hash
        except (OSError, ValueError):
            return False

        return True
