"""
Custom exceptions for the referral network.

Verification and validation failures are raised to the caller with a specific
type so the caller can decide whether to retry (e.g. regenerate a proof against
a fresher root) or give up.
"""


class ReferralNetworkError(Exception):
    """Base exception for referral network errors."""

    pass


class ConfigurationError(ReferralNetworkError):
    """Configuration error."""

    pass


class FeeScheduleError(ConfigurationError):
    """Fee schedule is malformed or pays out more than 100%."""

    pass


class TreeFullError(ReferralNetworkError):
    """Merkle tree capacity exhausted. Fatal for further joins."""

    pass


class UnknownReferrerError(ReferralNetworkError):
    """Referrer commitment is not registered."""

    pass


class DuplicateMemberError(ReferralNetworkError):
    """Commitment is already registered."""

    pass


class StaleRootError(ReferralNetworkError):
    """Proof references a root outside the trusted root window."""

    pass


class ProofGenerationError(ReferralNetworkError):
    """Error during proof generation."""

    pass


class ProofInvalidError(ReferralNetworkError):
    """Cryptographic proof failed to verify."""

    pass


class NullifierReusedError(ReferralNetworkError):
    """Nullifier hash already spent in this scope."""

    pass


class TransactionFailedError(ReferralNetworkError):
    """External ledger rejected or failed to confirm a payout."""

    pass


class HashMismatchError(ReferralNetworkError):
    """Hash primitive differs from the one the state was built with."""

    pass


class NetworkHaltedError(ReferralNetworkError):
    """Network instance stopped accepting mutations after a fatal error."""

    pass


class StateError(ReferralNetworkError):
    """Persisted state is unreadable or inconsistent."""

    pass
