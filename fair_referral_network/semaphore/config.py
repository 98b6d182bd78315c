"""
DRAFT - requires cryptographic review before production use.

Protocol configuration for the Semaphore-style membership scheme.

Values here are shared by the tree, the identity helpers and every proof
backend. Anything that changes a hash output must bump the matching version,
otherwise previously generated proofs stop verifying silently.
"""

# ============================================================================
# FIELD
# ============================================================================

# BN254 scalar field (the field Semaphore circuits operate in)
SNARK_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_ELEMENT_BYTES = 32

# ============================================================================
# MERKLE TREE
# ============================================================================

DEFAULT_TREE_DEPTH = 20
MIN_TREE_DEPTH = 1
MAX_TREE_DEPTH = 32

# Public padding value for unused leaf slots: sha256(seed) >> 8
ZERO_VALUE_SEED = b"FAIR_REFERRAL_NETWORK_ZERO_V1"

# Number of recent roots a verifier accepts (1 = latest root only)
DEFAULT_ROOT_HISTORY_SIZE = 30

# ============================================================================
# HASHING
# ============================================================================

DEFAULT_HASH = "sha256-field:v1"

DOMAIN_SEPARATOR_PREFIX = b"FAIR_REFERRAL_V1_"

DOMAIN_SEPARATORS = {
    "field_hash": DOMAIN_SEPARATOR_PREFIX + b"FIELD_HASH",
    "identity_seed": DOMAIN_SEPARATOR_PREFIX + b"IDENTITY_SEED",
    "mock_statement": DOMAIN_SEPARATOR_PREFIX + b"MOCK_STATEMENT",
}

# ============================================================================
# FEES
# ============================================================================

FEE_DENOMINATOR = 10_000

# ============================================================================
# SERIALIZATION
# ============================================================================

SERIALIZATION_FORMAT = "CBOR"
PROOF_VERSION = 1
SIGNAL_VERSION = 1
STATE_VERSION = 1

MAX_PROOF_SIZE_BYTES = 16 * 1024
MAX_SIGNAL_SIZE_BYTES = 1024

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert SNARK_SCALAR_FIELD.bit_length() == 254, "Unexpected field size"
    assert MIN_TREE_DEPTH <= DEFAULT_TREE_DEPTH <= MAX_TREE_DEPTH, "Invalid depth"
    assert DEFAULT_ROOT_HISTORY_SIZE >= 1, "Root history must keep the latest root"
    assert FEE_DENOMINATOR == 10_000, "Fees are expressed in ten-thousandths"
    assert SERIALIZATION_FORMAT == "CBOR", "Invalid serialization format"
    assert len(set(DOMAIN_SEPARATORS.values())) == len(DOMAIN_SEPARATORS), (
        "Domain separators must be unique"
    )

    return True


# Auto-validate on import
validate_config()
