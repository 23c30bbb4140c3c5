import json

from canvas_auth.audit import GENESIS_HASH, AuditLog, build_common


def test_append_chains_hashes(tmp_path):
    log = AuditLog(tmp_path)
    h1 = log.append({"result": "approved", "reason": "signature_valid"})
    h2 = log.append({"result": "denied", "reason": "signature_mismatch"})

    lines = [json.loads(x) for x in log.log_path.read_text(encoding="utf-8").splitlines()]
    assert lines[0]["prev_hash"] == GENESIS_HASH
    assert lines[0]["hash"] == h1
    assert lines[1]["prev_hash"] == h1
    assert lines[1]["hash"] == h2
    assert log.state_path.read_text(encoding="utf-8").strip() == h2
    assert log.verify_chain()


def test_callers_cannot_inject_chain_fields(tmp_path):
    log = AuditLog(tmp_path)
    log.append({"result": "approved", "prev_hash": "f" * 64, "hash": "e" * 64})

    line = json.loads(log.log_path.read_text(encoding="utf-8"))
    assert line["prev_hash"] == GENESIS_HASH
    assert line["hash"] != "e" * 64


def test_modified_line_breaks_chain(tmp_path):
    log = AuditLog(tmp_path)
    log.append({"result": "denied", "reason": "signature_mismatch"})
    log.append({"result": "approved", "reason": "signature_valid"})

    text = log.log_path.read_text(encoding="utf-8")
    log.log_path.write_text(text.replace("denied", "approved", 1), encoding="utf-8")
    assert not log.verify_chain()


def test_deleted_line_breaks_chain(tmp_path):
    log = AuditLog(tmp_path)
    for i in range(3):
        log.append({"n": i})

    lines = log.log_path.read_text(encoding="utf-8").splitlines()
    log.log_path.write_text("\n".join([lines[0], lines[2]]) + "\n", encoding="utf-8")
    assert not log.verify_chain()


def test_empty_log_is_valid(tmp_path):
    assert AuditLog(tmp_path / "nothing-here").verify_chain()


def test_build_common_hashes_signed_request():
    out = build_common(
        signed_request="sig.payload",
        user_id="005",
        request_ip="10.0.0.1",
        user_agent="x" * 500,
    )

    assert out["signed_request_len"] == len("sig.payload")
    assert len(out["signed_request_sha3_256"]) == 64
    assert "sig.payload" not in json.dumps(out)
    assert len(out["user_agent"]) == 200
    assert "org_id" not in out
