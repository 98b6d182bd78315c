"""
Test the fair-referral command-line interface.
"""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from fair_referral_network.cli import main
from fair_referral_network.semaphore.hashing import Sha256FieldHash
from fair_referral_network.semaphore.identity import Identity


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def state(tmp_path):
    return str(tmp_path / "network.cbor")


def _hex(name: str) -> str:
    return f"{Identity.from_seed(name).commitment(Sha256FieldHash()):#x}"


def _run(runner, state, *args):
    return runner.invoke(main, ["--state", state, *args])


@pytest.fixture
def populated(runner, state, tmp_path):
    """alice (genesis) <- bob <- carol, identity files on disk."""
    result = _run(runner, state, "init", "--fee", "3000", "--fee", "1000", "--depth", "4")
    assert result.exit_code == 0, result.output
    for name in ("alice", "bob", "carol"):
        out = tmp_path / f"{name}.json"
        result = _run(runner, state, "identity", "new", "--out", str(out), "--seed", name)
        assert result.exit_code == 0, result.output
    assert _run(runner, state, "join", _hex("alice")).exit_code == 0
    assert _run(runner, state, "join", _hex("bob"), "--referrer", _hex("alice")).exit_code == 0
    assert _run(runner, state, "join", _hex("carol"), "--referrer", _hex("bob")).exit_code == 0
    return tmp_path


def test_init_creates_state(runner, state):
    result = _run(runner, state, "init", "--fee", "3000", "--depth", "4")
    assert result.exit_code == 0, result.output
    assert "Initialized network" in result.output
    assert "[3000]" in result.output


def test_init_refuses_to_overwrite(runner, state):
    assert _run(runner, state, "init", "--fee", "3000").exit_code == 0
    result = _run(runner, state, "init", "--fee", "1000")
    assert result.exit_code == 1
    assert "already exists" in result.output
    assert _run(runner, state, "init", "--fee", "1000", "--force").exit_code == 0


def test_init_rejects_overpaying_schedule(runner, state):
    result = _run(runner, state, "init", "--fee", "6000", "--fee", "5000")
    assert result.exit_code == 1
    assert "more than the claim" in result.output


def test_init_from_yaml_config(runner, state, tmp_path):
    config = tmp_path / "network.yaml"
    config.write_text("depth: 3\nfees: [2500]\nroot_history_size: 5\n")
    result = _run(runner, state, "init", "--config", str(config))
    assert result.exit_code == 0, result.output
    assert "Root history: 5" in result.output
    assert "[2500]" in result.output


def test_commands_require_init(runner, state):
    result = _run(runner, state, "root")
    assert result.exit_code == 1
    assert "Run 'init' first" in result.output


def test_identity_new_prints_commitment(runner, state, tmp_path):
    out = tmp_path / "alice.json"
    result = _run(runner, state, "identity", "new", "--out", str(out), "--seed", "alice")
    assert result.exit_code == 0, result.output
    assert _hex("alice") in result.output
    assert Identity.from_string(out.read_text()) == Identity.from_seed("alice")

    shown = _run(runner, state, "identity", "show", str(out))
    assert shown.output.strip() == _hex("alice")


def test_join_and_chain(runner, state, populated):
    result = _run(runner, state, "chain", _hex("carol"))
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert _hex("bob") in lines[0] and "fee=3000/10000" in lines[0]
    assert _hex("alice") in lines[1] and "fee=1000/10000" in lines[1]

    genesis = _run(runner, state, "chain", _hex("alice"))
    assert "(genesis member)" in genesis.output


def test_join_unknown_referrer_fails(runner, state, populated):
    result = _run(runner, state, "join", _hex("dave"), "--referrer", _hex("erin"))
    assert result.exit_code == 1
    assert "Join rejected" in result.output


def test_join_rejects_malformed_commitment(runner, state, populated):
    result = _run(runner, state, "join", "not-a-number")
    assert result.exit_code == 2


def test_claim_distributes_and_rejects_replay(runner, state, populated):
    identity_file = str(populated / "carol.json")
    args = (
        "claim", "--identity", identity_file, "--member", _hex("carol"),
        "--value", "10000", "--event", "order-1",
    )

    result = _run(runner, state, *args)
    assert result.exit_code == 0, result.output
    assert "Claim accepted" in result.output
    assert f"{_hex('bob')} <- 3000" in result.output
    assert f"{_hex('alice')} <- 1000" in result.output
    assert "treasury <- 6000" in result.output

    replay = _run(runner, state, *args)
    assert replay.exit_code == 1
    assert "NullifierReusedError" in replay.output

    balances = _run(runner, state, "balances")
    assert f"{_hex('bob')}: 3000" in balances.output
    assert "treasury: 6000" in balances.output


def test_claim_by_non_member_fails(runner, state, populated, tmp_path):
    outsider = tmp_path / "mallory.json"
    _run(runner, state, "identity", "new", "--out", str(outsider), "--seed", "mallory")
    result = _run(
        runner, state, "claim", "--identity", str(outsider), "--member", _hex("carol"),
        "--value", "100", "--event", "order-1",
    )
    assert result.exit_code == 1
    assert "ProofGenerationError" in result.output


def test_root_and_info(runner, state, populated):
    root = _run(runner, state, "root")
    assert root.exit_code == 0
    assert root.output.strip().startswith("0x")

    info = _run(runner, state, "info")
    assert info.exit_code == 0, info.output
    assert "3/16" in info.output
    assert root.output.strip() in info.output
    assert "sha256-field:v1" in info.output


@pytest.mark.parametrize("event", ["", "e" * 1100])
def test_claim_with_invalid_event_fails_cleanly(runner, state, populated, event):
    result = _run(
        runner, state, "claim", "--identity", str(populated / "carol.json"),
        "--member", _hex("carol"), "--value", "100", "--event", event,
    )
    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "ProofGenerationError" in result.output
    assert "ProofInvalidError" not in result.output


def test_identity_new_unknown_hash_writes_nothing(runner, state, tmp_path):
    out = tmp_path / "alice.json"
    result = _run(
        runner, state, "identity", "new", "--out", str(out), "--hash", "md5:v1"
    )
    assert result.exit_code == 1
    assert "Unknown hash primitive" in result.output
    assert not out.exists()
