"""
Fair Referral Network

Anonymous membership with cascading referral fees. Members join under a
referrer by publishing an identity commitment; later they prove membership in
zero knowledge and claim referral payouts once per event, without revealing
which member they are.

WARNING: the default proof backend is a simulation. See
``fair_referral_network.semaphore.factory``.
"""

__version__ = "0.1.0"

from .fees import Distribution, FeeSchedule, Payout, compute_distribution
from .ledger import (
    InMemorySubmitter,
    LedgerEntry,
    PayoutLedger,
    TransactionReceipt,
    TransactionSubmitter,
)
from .network import ClaimReceipt, NetworkSnapshot, ReferralNetwork
from .persistence import StateStore, dump_state, restore_state
from .registry import GENESIS, NetworkRegistry, ReferralEdge
from .settings import NetworkConfig, load_network_config

__all__ = [
    "__version__",
    "Distribution",
    "FeeSchedule",
    "Payout",
    "compute_distribution",
    "InMemorySubmitter",
    "LedgerEntry",
    "PayoutLedger",
    "TransactionReceipt",
    "TransactionSubmitter",
    "ClaimReceipt",
    "NetworkSnapshot",
    "ReferralNetwork",
    "StateStore",
    "dump_state",
    "restore_state",
    "GENESIS",
    "NetworkRegistry",
    "ReferralEdge",
    "NetworkConfig",
    "load_network_config",
]
