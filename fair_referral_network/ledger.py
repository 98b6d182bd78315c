"""
Payout ledger and the external transaction boundary.

The network never moves value itself: it hands a ``Distribution`` to a
``TransactionSubmitter`` and only records the payout (and spends the
nullifier) once the submitter confirms.
"""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from .fees import Distribution, Payout
from .semaphore.exceptions import TransactionFailedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionReceipt:
    tx_id: str
    confirmed: bool = True


class TransactionSubmitter(ABC):
    """Fire-and-confirm submission of payouts to an external ledger."""

    @abstractmethod
    def submit(self, claim_id: str, distribution: Distribution) -> TransactionReceipt:
        """
        Submit all transfers of one claim.

        Raises:
            TransactionFailedError: If the ledger rejects or does not confirm
        """


class InMemorySubmitter(TransactionSubmitter):
    """Confirms every submission locally; keeps what it was sent."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self.submitted: List[Tuple[str, Distribution]] = []

    def submit(self, claim_id: str, distribution: Distribution) -> TransactionReceipt:
        with self._lock:
            tx_id = f"local-{next(self._counter):06d}"
            self.submitted.append((claim_id, distribution))
        return TransactionReceipt(tx_id=tx_id)


def confirm_receipt(receipt: TransactionReceipt) -> TransactionReceipt:
    if not isinstance(receipt, TransactionReceipt) or not receipt.confirmed:
        raise TransactionFailedError(f"transaction not confirmed: {receipt!r}")
    return receipt


@dataclass(frozen=True)
class LedgerEntry:
    """One accepted claim, written exactly once."""

    claim_id: str
    external_nullifier: int
    nullifier_hash: int
    event: str
    distribution: Distribution
    tx_id: str


class PayoutLedger:
    """Append-only record of accepted claims with running balances."""

    def __init__(self) -> None:
        self._entries: List[LedgerEntry] = []
        self._balances: Dict[int, int] = {}
        self._treasury = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(list(self._entries))

    @property
    def treasury_balance(self) -> int:
        return self._treasury

    def balance_of(self, commitment: int) -> int:
        return self._balances.get(commitment, 0)

    def balances(self) -> Dict[int, int]:
        return dict(self._balances)

    def record(self, entry: LedgerEntry) -> None:
        distribution = entry.distribution
        if distribution.paid_total + distribution.treasury_amount != distribution.value:
            raise ValueError("distribution does not account for the full value")
        self._entries.append(entry)
        for payout in distribution.payouts:
            self._balances[payout.recipient] = (
                self._balances.get(payout.recipient, 0) + payout.amount
            )
        self._treasury += distribution.treasury_amount
        logger.debug(
            "Recorded claim %s: %d paid, %d to treasury",
            entry.claim_id,
            distribution.paid_total,
            distribution.treasury_amount,
        )

    def to_records(self) -> List[dict]:
        return [
            {
                "claim_id": e.claim_id,
                "external_nullifier": e.external_nullifier,
                "nullifier_hash": e.nullifier_hash,
                "event": e.event,
                "member": e.distribution.member,
                "value": e.distribution.value,
                "treasury": e.distribution.treasury_amount,
                "tx_id": e.tx_id,
                "payouts": [
                    [p.recipient, p.level, p.share, p.amount, p.address]
                    for p in e.distribution.payouts
                ],
            }
            for e in self._entries
        ]

    @classmethod
    def from_records(cls, records: List[dict]) -> "PayoutLedger":
        ledger = cls()
        for record in records:
            payouts = tuple(
                Payout(recipient=r, level=lv, share=s, amount=a, address=addr)
                for r, lv, s, a, addr in record["payouts"]
            )
            distribution = Distribution(
                member=record["member"],
                value=record["value"],
                payouts=payouts,
                treasury_amount=record["treasury"],
            )
            ledger.record(
                LedgerEntry(
                    claim_id=record["claim_id"],
                    external_nullifier=record["external_nullifier"],
                    nullifier_hash=record["nullifier_hash"],
                    event=record["event"],
                    distribution=distribution,
                    tx_id=record["tx_id"],
                )
            )
        return ledger
