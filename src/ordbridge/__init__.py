"""
ordbridge - Bitcoin SPV verification bridge

Lets a host ledger trust facts about Bitcoin transactions without running a
full node. Relayers submit block headers and merkle inclusion proofs, which
the bridge checks against local rules before promoting claimed transactions
and gating deposits and inscription indexing on them.

Main Components:
- core.spv_header_store: header chain store with proof-of-work checks
- core.merkle_proof_store: inclusion proof store and verifier
- core.verification_pipeline: pending -> verified claim lifecycle
- core.deposit_ledger: deposits backed by verified transactions
- core.bridge: the single entry point tying them together
"""

__version__ = "0.1.0"
__author__ = "ordbridge Development Team"

__all__ = []
