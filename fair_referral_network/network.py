"""
The referral network state machine.

``ReferralNetwork`` owns the commitment tree, the registry, the nullifier
record and the payout ledger. Mutations (``join`` and ``claim``) run one at a
time under a single lock, in the order they acquire it. After every mutation
an immutable ``NetworkSnapshot`` is published; readers use snapshots and never
wait for writers.

Root policy: a proof is accepted against any of the last
``root_history_size`` roots, so a proof generated just before another member
joined still verifies. ``root_history_size=1`` accepts the latest root only.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from .fees import Distribution, FeeSchedule, compute_distribution
from .ledger import (
    InMemorySubmitter,
    LedgerEntry,
    PayoutLedger,
    TransactionSubmitter,
    confirm_receipt,
)
from .registry import GENESIS, NetworkRegistry
from .semaphore.exceptions import (
    HashMismatchError,
    NetworkHaltedError,
    ProofGenerationError,
    ProofInvalidError,
    ReferralNetworkError,
    StaleRootError,
    TransactionFailedError,
    TreeFullError,
)
from .semaphore.factory import get_proof_backend
from .semaphore.hashing import HashPrimitive, derive_external_nullifier, get_hash
from .semaphore.identity import Identity
from .semaphore.interfaces import ProofBackend
from .semaphore.merkle import IncrementalMerkleTree, MerkleProof, compute_root
from .semaphore.nullifiers import NullifierRecord
from .semaphore.types import MembershipProof, ReferralSignal
from .settings import NetworkConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkSnapshot:
    """
    Consistent read view of the network after one mutation.

    Leaves and edges are append-only, so the snapshot references the live
    registry and hides everything at or beyond ``size``. Nullifier lookups
    read the live record, which only grows.
    """

    root: int
    size: int
    roots: Tuple[int, ...]
    fee_schedule: FeeSchedule
    _registry: NetworkRegistry = field(repr=False, compare=False)
    _nullifiers: NullifierRecord = field(repr=False, compare=False)

    def is_trusted_root(self, root: int) -> bool:
        return root in self.roots

    def is_member(self, commitment: int) -> bool:
        if not self._registry.is_member(commitment):
            return False
        return self._registry.leaf_index_of(commitment) < self.size

    def leaves(self) -> Tuple[int, ...]:
        return tuple(self._registry.tree.leaves[: self.size])

    def chain(self, commitment: int) -> List[int]:
        """
        Raises:
            KeyError: If the commitment is not a member in this snapshot
        """
        if not self.is_member(commitment):
            raise KeyError(commitment)
        return self._registry.chain(commitment)

    def is_nullifier_spent(self, external_nullifier: int, nullifier_hash: int) -> bool:
        return self._nullifiers.is_spent(external_nullifier, nullifier_hash)


@dataclass(frozen=True)
class ClaimReceipt:
    claim_id: str
    signal: ReferralSignal
    distribution: Distribution
    tx_id: str
    root: int


VerifyOutcome = Union[ReferralSignal, ReferralNetworkError]


class ReferralNetwork:
    """
    Anonymous referral network with cascading fees.

    Example:
        >>> from fair_referral_network.fees import FeeSchedule
        >>> network = ReferralNetwork(NetworkConfig(FeeSchedule((3000, 1000)), depth=4))
        >>> alice = Identity.from_seed("alice")
        >>> network.join(alice.commitment(network.hasher))
        0
    """

    def __init__(
        self,
        config: NetworkConfig,
        backend: Optional[ProofBackend] = None,
        submitter: Optional[TransactionSubmitter] = None,
        hasher: Optional[HashPrimitive] = None,
    ) -> None:
        self._config = config
        self._hasher = hasher or get_hash(config.hash_id)
        self._hasher.check_identifier(config.hash_id)

        self._backend = backend or get_proof_backend(self._hasher)
        if self._backend.hasher.identifier != self._hasher.identifier:
            raise HashMismatchError(
                f"proof backend uses {self._backend.hasher.identifier!r}, "
                f"network uses {self._hasher.identifier!r}"
            )
        self._submitter = submitter or InMemorySubmitter()

        tree = IncrementalMerkleTree(
            self._hasher, depth=config.depth, zero_value=config.zero_value
        )
        self._registry = NetworkRegistry(tree, config.genesis_referrers)
        self._nullifiers = NullifierRecord()
        self._ledger = PayoutLedger()
        self._roots = deque([tree.root], maxlen=config.root_history_size)

        self._lock = threading.RLock()
        self._joins_closed = False
        self._halted_reason: Optional[str] = None
        self._snapshot = self._build_snapshot()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def config(self) -> NetworkConfig:
        return self._config

    @property
    def hasher(self) -> HashPrimitive:
        return self._hasher

    @property
    def backend(self) -> ProofBackend:
        return self._backend

    @property
    def fee_schedule(self) -> FeeSchedule:
        return self._config.fee_schedule

    @property
    def registry(self) -> NetworkRegistry:
        return self._registry

    @property
    def nullifiers(self) -> NullifierRecord:
        return self._nullifiers

    @property
    def ledger(self) -> PayoutLedger:
        return self._ledger

    @property
    def halted_reason(self) -> Optional[str]:
        return self._halted_reason

    @property
    def joins_closed(self) -> bool:
        return self._joins_closed

    def snapshot(self) -> NetworkSnapshot:
        return self._snapshot

    def current_root(self) -> int:
        return self._snapshot.root

    def is_member(self, commitment: int) -> bool:
        return self._snapshot.is_member(commitment)

    def chain(self, commitment: int) -> List[int]:
        return self._snapshot.chain(commitment)

    def merkle_proof(self, commitment: int) -> MerkleProof:
        """
        Authentication path for a member against the current root.

        Raises:
            KeyError: If the commitment is not registered
        """
        with self._lock:
            index = self._registry.leaf_index_of(commitment)
            return self._registry.tree.create_proof(index)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def load_records(
        self,
        nullifiers: NullifierRecord,
        ledger: PayoutLedger,
        joins_closed: bool,
    ) -> None:
        with self._lock:
            self._nullifiers = nullifiers
            self._ledger = ledger
            self._joins_closed = joins_closed
            self._snapshot = self._build_snapshot()

    def halt(self, reason: str) -> None:
        with self._lock:
            if self._halted_reason is None:
                self._halted_reason = reason
                logger.error("Network halted: %s", reason)

    def _ensure_mutable(self) -> None:
        if self._halted_reason is not None:
            raise NetworkHaltedError(f"network halted: {self._halted_reason}")

    def _build_snapshot(self) -> NetworkSnapshot:
        tree = self._registry.tree
        return NetworkSnapshot(
            root=tree.root,
            size=tree.next_leaf_index,
            roots=tuple(self._roots),
            fee_schedule=self._config.fee_schedule,
            _registry=self._registry,
            _nullifiers=self._nullifiers,
        )

    def join(
        self,
        commitment: int,
        referrer: Optional[int] = GENESIS,
        address: Optional[str] = None,
    ) -> int:
        """
        Admit a member under ``referrer`` (``None`` for genesis).

        Returns:
            The member's leaf index

        Raises:
            TreeFullError, UnknownReferrerError, DuplicateMemberError,
            NetworkHaltedError, ValueError
        """
        with self._lock:
            self._ensure_mutable()
            if self._joins_closed:
                raise TreeFullError("network is full; joins are closed")
            try:
                leaf_index = self._registry.join(commitment, referrer, address)
            except TreeFullError:
                self._joins_closed = True
                logger.error("Tree capacity exhausted; closing joins")
                raise

            self._roots.append(self._registry.tree.root)
            self._snapshot = self._build_snapshot()

        logger.info("Member joined at leaf %d", leaf_index)
        return leaf_index

    def generate_claim_proof(
        self,
        identity: Identity,
        member: int,
        value: int,
        event: str,
    ) -> MembershipProof:
        """
        Off-chain helper: prove membership and sign a referral claim.

        Raises:
            ProofGenerationError: If the claim fields are invalid, the identity
                is not a member or the backend cannot produce a proof
        """
        try:
            signal = ReferralSignal(member=member, value=value, event=event)
        except (TypeError, ValueError) as exc:
            raise ProofGenerationError(f"invalid claim: {exc}") from exc
        commitment = identity.commitment(self._hasher)
        try:
            path = self.merkle_proof(commitment)
        except KeyError:
            raise ProofGenerationError("identity is not a network member") from None
        return self._backend.generate_proof(
            identity,
            path,
            signal.encode(),
            derive_external_nullifier(event),
        )

    def _check_proof(self, proof: MembershipProof, snapshot: NetworkSnapshot) -> ReferralSignal:
        if not isinstance(proof, MembershipProof):
            raise ProofInvalidError("expected a MembershipProof")
        proof.validate()

        if not snapshot.is_trusted_root(proof.merkle_root):
            raise StaleRootError(
                f"root {proof.merkle_root:#x} is not among the last "
                f"{self._config.root_history_size} roots"
            )

        self._nullifiers.check_unspent(proof.external_nullifier, proof.nullifier_hash)

        if not self._backend.verify_proof(proof):
            raise ProofInvalidError("membership proof failed verification")

        signal = ReferralSignal.decode(proof.signal)
        if derive_external_nullifier(signal.event) != proof.external_nullifier:
            raise ProofInvalidError("external nullifier does not match the claimed event")
        if not snapshot.is_member(signal.member):
            raise ProofInvalidError("signal names an unknown member")
        return signal

    def verify(self, proof: MembershipProof) -> ReferralSignal:
        """
        Verify a claim proof without changing any state.

        Returns:
            The decoded referral signal

        Raises:
            StaleRootError, NullifierReusedError, ProofInvalidError
        """
        try:
            return self._check_proof(proof, self._snapshot)
        except ReferralNetworkError as exc:
            self._log_rejection(proof, exc)
            raise

    def verify_many(
        self, proofs: Sequence[MembershipProof], max_workers: Optional[int] = None
    ) -> List[VerifyOutcome]:
        """
        Verify proofs in parallel against one snapshot.

        Returns:
            Per proof, the decoded signal or the rejection error
        """
        snapshot = self._snapshot

        def _one(proof: MembershipProof) -> VerifyOutcome:
            try:
                return self._check_proof(proof, snapshot)
            except ReferralNetworkError as exc:
                self._log_rejection(proof, exc)
                return exc

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(_one, proofs))

    def claim(self, proof: MembershipProof) -> ClaimReceipt:
        """
        Verify a claim, pay the referral chain and spend the nullifier.

        Cryptographic verification runs outside the state lock. Under the lock
        the root and nullifier are re-checked, the payout is submitted and, only
        once confirmed, the nullifier and ledger entry are committed together.

        Raises:
            StaleRootError, NullifierReusedError, ProofInvalidError,
            TransactionFailedError, NetworkHaltedError
        """
        signal = self.verify(proof)

        with self._lock:
            self._ensure_mutable()
            snapshot = self._snapshot
            try:
                if not snapshot.is_trusted_root(proof.merkle_root):
                    raise StaleRootError(
                        f"root {proof.merkle_root:#x} left the trusted window"
                    )
                self._nullifiers.check_unspent(
                    proof.external_nullifier, proof.nullifier_hash
                )
            except ReferralNetworkError as exc:
                self._log_rejection(proof, exc)
                raise

            chain = self._registry.chain(signal.member)
            distribution = compute_distribution(
                self._config.fee_schedule,
                signal.member,
                signal.value,
                chain,
                {c: self._registry.address_of(c) for c in chain},
            )
            claim_id = f"{proof.external_nullifier:x}/{proof.nullifier_hash:x}"

            try:
                receipt = confirm_receipt(self._submitter.submit(claim_id, distribution))
            except TransactionFailedError:
                logger.warning("Payout submission failed for claim %s", claim_id)
                raise
            except Exception as exc:
                logger.warning("Payout submission errored for claim %s", claim_id)
                raise TransactionFailedError(f"payout submission failed: {exc}") from exc

            self._nullifiers.spend(proof.external_nullifier, proof.nullifier_hash)
            self._ledger.record(
                LedgerEntry(
                    claim_id=claim_id,
                    external_nullifier=proof.external_nullifier,
                    nullifier_hash=proof.nullifier_hash,
                    event=signal.event,
                    distribution=distribution,
                    tx_id=receipt.tx_id,
                )
            )
            self._snapshot = self._build_snapshot()

        logger.info(
            "Accepted claim %s: value=%d paid=%d treasury=%d levels=%d",
            claim_id,
            distribution.value,
            distribution.paid_total,
            distribution.treasury_amount,
            len(distribution.payouts),
        )
        return ClaimReceipt(
            claim_id=claim_id,
            signal=signal,
            distribution=distribution,
            tx_id=receipt.tx_id,
            root=proof.merkle_root,
        )

    def verify_integrity(self) -> None:
        """
        Recompute the root from the ordered leaves.

        Raises:
            HashMismatchError: If the recomputed root differs (network halts)
        """
        with self._lock:
            tree = self._registry.tree
            expected = compute_root(
                self._hasher, tree.leaves, tree.depth, tree.zero_value
            )
            if expected != tree.root:
                self.halt("root does not match the leaf sequence")
                raise HashMismatchError("root does not match the leaf sequence")

    @staticmethod
    def _log_rejection(proof: MembershipProof, exc: ReferralNetworkError) -> None:
        nullifier = getattr(proof, "nullifier_hash", None)
        if isinstance(exc, ProofInvalidError):
            logger.warning("Rejected claim (invalid proof, nullifier=%s): %s", nullifier, exc)
        else:
            logger.warning("Rejected claim (%s): %s", type(exc).__name__, exc)
