"""
Test the payout ledger and the transaction submission boundary.
"""

import pytest

from fair_referral_network.fees import Distribution, FeeSchedule, compute_distribution
from fair_referral_network.ledger import (
    InMemorySubmitter,
    LedgerEntry,
    PayoutLedger,
    TransactionReceipt,
    confirm_receipt,
)
from fair_referral_network.semaphore.exceptions import TransactionFailedError

A, B, C = 1, 2, 3


def _entry(claim_id, distribution):
    return LedgerEntry(
        claim_id=claim_id,
        external_nullifier=10,
        nullifier_hash=20,
        event="order-1",
        distribution=distribution,
        tx_id="tx-" + claim_id,
    )


def test_record_accumulates_balances():
    ledger = PayoutLedger()
    schedule = FeeSchedule((3000, 1000))
    ledger.record(_entry("1", compute_distribution(schedule, C, 10_000, [B, A])))
    ledger.record(_entry("2", compute_distribution(schedule, B, 1000, [A])))

    assert ledger.balance_of(B) == 3000
    assert ledger.balance_of(A) == 1300
    assert ledger.balance_of(C) == 0
    assert ledger.treasury_balance == 6000 + 700
    assert [e.claim_id for e in ledger] == ["1", "2"]


def test_record_rejects_unbalanced_distribution():
    ledger = PayoutLedger()
    broken = Distribution(member=C, value=100, payouts=(), treasury_amount=50)
    with pytest.raises(ValueError, match="full value"):
        ledger.record(_entry("1", broken))
    assert len(ledger) == 0


def test_records_rebuild_ledger():
    ledger = PayoutLedger()
    distribution = compute_distribution(
        FeeSchedule((3000,)), C, 500, [B], {B: "addr-b"}
    )
    ledger.record(_entry("1", distribution))

    rebuilt = PayoutLedger.from_records(ledger.to_records())
    assert rebuilt.balances() == ledger.balances()
    assert rebuilt.treasury_balance == ledger.treasury_balance
    assert list(rebuilt)[0].distribution == distribution


def test_in_memory_submitter_numbers_transactions():
    submitter = InMemorySubmitter()
    distribution = compute_distribution(FeeSchedule((3000,)), C, 100, [B])
    first = submitter.submit("claim-1", distribution)
    second = submitter.submit("claim-2", distribution)
    assert (first.tx_id, second.tx_id) == ("local-000001", "local-000002")
    assert [claim_id for claim_id, _ in submitter.submitted] == ["claim-1", "claim-2"]


def test_confirm_receipt():
    receipt = TransactionReceipt(tx_id="tx-1")
    assert confirm_receipt(receipt) is receipt
    with pytest.raises(TransactionFailedError):
        confirm_receipt(TransactionReceipt(tx_id="tx-2", confirmed=False))
    with pytest.raises(TransactionFailedError):
        confirm_receipt(None)
