"""Shared fixtures for network-level tests."""

from __future__ import annotations

import pytest

from fair_referral_network.fees import FeeSchedule
from fair_referral_network.ledger import InMemorySubmitter
from fair_referral_network.network import ReferralNetwork
from fair_referral_network.semaphore.adapters.mock_adapter import MockProofBackend
from fair_referral_network.semaphore.factory import set_backend_type
from fair_referral_network.semaphore.hashing import Sha256FieldHash
from fair_referral_network.semaphore.identity import Identity
from fair_referral_network.settings import NetworkConfig


@pytest.fixture(autouse=True)
def default_backend(monkeypatch):
    set_backend_type(None)
    monkeypatch.delenv("FAIR_REFERRAL_PROOF_BACKEND", raising=False)
    yield
    set_backend_type(None)


@pytest.fixture
def hasher():
    return Sha256FieldHash()


@pytest.fixture
def people():
    """Deterministic identities by name."""
    return {
        name: Identity.from_seed(name)
        for name in ("alice", "bob", "carol", "dave", "erin", "frank")
    }


@pytest.fixture
def make_network(hasher):
    def _make(fees=(3000, 1000), depth=4, root_history_size=30, submitter=None, **kwargs):
        config = NetworkConfig(
            fee_schedule=FeeSchedule(tuple(fees)),
            depth=depth,
            root_history_size=root_history_size,
            **kwargs,
        )
        return ReferralNetwork(
            config,
            backend=MockProofBackend(hasher),
            submitter=submitter or InMemorySubmitter(),
            hasher=hasher,
        )

    return _make


@pytest.fixture
def chain_network(make_network, people, hasher):
    """alice (genesis) <- bob <- carol"""
    network = make_network()
    alice, bob, carol = (people[n].commitment(hasher) for n in ("alice", "bob", "carol"))
    network.join(alice)
    network.join(bob, referrer=alice, address="addr-bob")
    network.join(carol, referrer=bob)
    return network
