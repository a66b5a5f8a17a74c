"""Hash-chain audit log, canonicalization and verification."""

from .base import AuditLog
from .chain import GENESIS_HASH, compute_hash, recompute_hash
from .jcs import CanonicalizationError, canonical_bytes, sha256_hex
from .sqlite import SQLiteAuditLog
from .validation import ChainVerifier, VerificationReport, verify_events

__all__ = (
    "AuditLog",
    "SQLiteAuditLog",
    "ChainVerifier",
    "VerificationReport",
    "verify_events",
    "GENESIS_HASH",
    "compute_hash",
    "recompute_hash",
    "CanonicalizationError",
    "canonical_bytes",
    "sha256_hex",
)
