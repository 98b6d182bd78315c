"""
Referral fee schedule and cascading distribution.

Shares are expressed in ten-thousandths of the claimed value and indexed by
distance from the acting member: ``shares[0]`` goes to the direct referrer,
``shares[1]`` to the referrer's referrer, and so on. Each payout is floored;
whatever is not paid out stays with the network treasury, so the sum of
payouts never exceeds the claimed value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from .semaphore.config import FEE_DENOMINATOR
from .semaphore.exceptions import FeeScheduleError


@dataclass(frozen=True)
class FeeSchedule:
    """
    Immutable per-level fee table, validated once at construction.

    Example:
        >>> schedule = FeeSchedule.from_list([3000, 1000])
        >>> schedule.share(1), schedule.share(2), schedule.share(3)
        (3000, 1000, 0)
    """

    shares: Tuple[int, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.shares, tuple):
            raise FeeScheduleError("shares must be a tuple")
        total = 0
        for level, share in enumerate(self.shares, start=1):
            if not isinstance(share, int) or isinstance(share, bool):
                raise FeeScheduleError(f"fee for level {level} must be an integer")
            if not 0 <= share <= FEE_DENOMINATOR:
                raise FeeScheduleError(
                    f"fee for level {level} must be within [0, {FEE_DENOMINATOR}], "
                    f"got {share}"
                )
            total += share
        # Shares are non-negative, so the full sum bounds every prefix
        if total > FEE_DENOMINATOR:
            raise FeeScheduleError(
                f"fee schedule pays out {total}/{FEE_DENOMINATOR}, more than the claim"
            )

    @classmethod
    def from_list(cls, shares: Iterable) -> "FeeSchedule":
        """Build a schedule from ints or decimal strings (as typed at a prompt)."""
        parsed = []
        for level, share in enumerate(shares, start=1):
            if isinstance(share, str):
                try:
                    share = int(share.strip())
                except ValueError:
                    raise FeeScheduleError(
                        f"fee for level {level} is not an integer: {share!r}"
                    ) from None
            parsed.append(share)
        return cls(tuple(parsed))

    @property
    def levels(self) -> int:
        return len(self.shares)

    @property
    def total(self) -> int:
        return sum(self.shares)

    def share(self, level: int) -> int:
        """Share for a 1-based chain level; 0 beyond the schedule."""
        if level < 1:
            raise ValueError("level is 1-based")
        if level > len(self.shares):
            return 0
        return self.shares[level - 1]

    def to_list(self) -> list:
        return list(self.shares)


@dataclass(frozen=True)
class Payout:
    recipient: int
    level: int
    share: int
    amount: int
    address: Optional[str] = None


@dataclass(frozen=True)
class Distribution:
    """
    Result of splitting one claim along a referral chain.

    Attributes:
        member: Acting member commitment
        value: Claimed value
        payouts: One entry per paid referrer, nearest first
        treasury_amount: Remainder retained by the network
    """

    member: int
    value: int
    payouts: Tuple[Payout, ...]
    treasury_amount: int

    @property
    def paid_total(self) -> int:
        return sum(p.amount for p in self.payouts)


def compute_distribution(
    schedule: FeeSchedule,
    member: int,
    value: int,
    chain: Sequence[int],
    addresses: Optional[Mapping[int, Optional[str]]] = None,
) -> Distribution:
    """
    Split ``value`` along ``chain`` (referrers of ``member``, nearest first).

    Levels beyond the top of the chain or beyond the schedule are not paid.
    Payouts are floored; the remainder goes to the treasury.

    Raises:
        ValueError: If value is negative
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError("value must be int")
    if value < 0:
        raise ValueError("value must be non-negative")

    addresses = addresses or {}
    payouts = []
    for level, recipient in enumerate(chain[: schedule.levels], start=1):
        share = schedule.share(level)
        amount = value * share // FEE_DENOMINATOR
        payouts.append(
            Payout(
                recipient=recipient,
                level=level,
                share=share,
                amount=amount,
                address=addresses.get(recipient),
            )
        )

    paid = sum(p.amount for p in payouts)
    return Distribution(
        member=member,
        value=value,
        payouts=tuple(payouts),
        treasury_amount=value - paid,
    )
