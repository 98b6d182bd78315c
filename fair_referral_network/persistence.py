"""
Durable network state.

The state file is a single CBOR document. Loading rebuilds the network by
replaying joins in their original order, which reconstructs the tree and the
root window; the replayed root must equal the stored one, otherwise the hash
primitive (or the file) differs from the one that produced it.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import cbor2

from .fees import FeeSchedule
from .ledger import PayoutLedger, TransactionSubmitter
from .network import ReferralNetwork
from .semaphore.config import STATE_VERSION
from .semaphore.exceptions import HashMismatchError, ReferralNetworkError, StateError
from .semaphore.hashing import HashPrimitive, get_hash
from .semaphore.interfaces import ProofBackend
from .semaphore.nullifiers import NullifierRecord
from .settings import NetworkConfig

logger = logging.getLogger(__name__)


def dump_state(network: ReferralNetwork) -> Dict[str, Any]:
    """Capture everything needed to rebuild ``network`` (under its lock)."""
    config = network.config
    with network.lock:
        tree = network.registry.tree
        return {
            "v": STATE_VERSION,
            "hash": network.hasher.identifier,
            "depth": config.depth,
            "zero_value": tree.zero_value,
            "fees": config.fee_schedule.to_list(),
            "root_history_size": config.root_history_size,
            "genesis_referrers": list(config.genesis_referrers),
            "next_leaf_index": tree.next_leaf_index,
            "leaves": list(tree.leaves),
            "root": tree.root,
            "edges": [
                [e.member, e.referrer, e.ordinal, e.address]
                for e in network.registry.edges()
            ],
            "nullifiers": [[scope, n] for scope, n in network.nullifiers],
            "ledger": network.ledger.to_records(),
            "joins_closed": network.joins_closed,
        }


def restore_state(
    data: Dict[str, Any],
    backend: Optional[ProofBackend] = None,
    submitter: Optional[TransactionSubmitter] = None,
    hasher: Optional[HashPrimitive] = None,
) -> ReferralNetwork:
    """
    Rebuild a network from ``dump_state`` output.

    Raises:
        StateError: If the document is malformed or inconsistent
        HashMismatchError: If the hash primitive differs or the replayed
            root does not match the stored root
        ValueError: If FAIR_REFERRAL_PROOF_BACKEND names an unknown backend
    """
    if not isinstance(data, dict) or data.get("v") != STATE_VERSION:
        raise StateError("unsupported state format")

    try:
        hash_id = data["hash"]
        if hasher is None:
            hasher = get_hash(hash_id)
        hasher.check_identifier(hash_id)

        config = NetworkConfig(
            fee_schedule=FeeSchedule(tuple(data["fees"])),
            depth=data["depth"],
            root_history_size=data["root_history_size"],
            genesis_referrers=tuple(data["genesis_referrers"]),
            hash_id=hash_id,
            zero_value=data["zero_value"],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise StateError(f"corrupt state: {exc}") from exc

    network = ReferralNetwork(config, backend=backend, submitter=submitter, hasher=hasher)

    try:
        leaves = data["leaves"]
        edges = sorted(data["edges"], key=lambda e: e[2])
        if len(leaves) != data["next_leaf_index"] or len(edges) != len(leaves):
            raise StateError("leaf count does not match edges")

        for (member, referrer, ordinal, address), leaf in zip(edges, leaves):
            if member != leaf:
                raise StateError(f"edge {ordinal} does not match its leaf")
            network.join(member, referrer, address)

        if network.current_root() != data["root"]:
            raise HashMismatchError(
                "replayed root does not match the stored root; "
                "the hash primitive differs from the one that built this state"
            )

        network.load_records(
            NullifierRecord.from_items((scope, n) for scope, n in data["nullifiers"]),
            PayoutLedger.from_records(data["ledger"]),
            bool(data.get("joins_closed", False)),
        )
    except (StateError, HashMismatchError):
        raise
    except ReferralNetworkError as exc:
        raise StateError(f"state replay failed ({type(exc).__name__}): {exc}") from exc
    except (KeyError, TypeError, ValueError) as exc:
        raise StateError(f"corrupt state: {exc}") from exc

    logger.info(
        "Restored network: %d members, %d spent nullifiers",
        len(network.registry),
        len(network.nullifiers),
    )
    return network


class StateStore:
    """CBOR file holding one network's state."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, network: ReferralNetwork) -> None:
        """Write atomically: temp file in the same directory, then rename."""
        payload = cbor2.dumps(dump_state(network))
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".state-", dir=directory)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Saved state to %s (%d bytes)", self.path, len(payload))

    def load(
        self,
        backend: Optional[ProofBackend] = None,
        submitter: Optional[TransactionSubmitter] = None,
        hasher: Optional[HashPrimitive] = None,
    ) -> ReferralNetwork:
        """
        Raises:
            StateError: If the file is missing or unreadable
            HashMismatchError: See ``restore_state``
        """
        try:
            data = cbor2.loads(self.path.read_bytes())
        except OSError as exc:
            raise StateError(f"cannot read state file {self.path}: {exc}") from exc
        except Exception as exc:
            raise StateError(f"cannot decode state file {self.path}: {exc}") from exc
        return restore_state(data, backend=backend, submitter=submitter, hasher=hasher)
