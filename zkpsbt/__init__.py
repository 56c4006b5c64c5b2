"""
ZKP-SBT: Soulbound Credit Token Core

Issues non-transferable attestations binding a wallet to a confidential
credit profile, and lets the holder prove in zero knowledge that their
score meets a lender's threshold.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                       SOULBOUND CREDIT TOKEN CORE                        │
    │                                                                          │
    │  ON-LEDGER                                                               │
    │    ledger.py       Attestation records, authority, revocation           │
    │    verifier.py     Proof verification and eligibility recording         │
    │                                                                          │
    │  PROOF SYSTEM                                                            │
    │    circuit.py      Commitment + threshold constraint system             │
    │    r1cs.py         Constraint builder and gadgets                       │
    │    groth16.py      Setup, prove, verify over BN254                      │
    │                                                                          │
    │  CRYPTOGRAPHIC PRIMITIVES                                                │
    │    poseidon.py     Circuit-friendly hash                                │
    │    commitment.py   Profile encoding and commitment                      │
    │    ecies.py        Per-field encryption to the holder's wallet key      │
    │                                                                          │
    │  OFF-LEDGER COLLABORATORS                                                │
    │    preparation.py  Issuer-side sealing and commitment                   │
    │    prover.py       Holder-side proof generation                         │
    │    keystore.py     Key persistence                                      │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Lifecycle
─────────

    profile ──prepare──▶ IssuanceBundle ──issue──▶ AttestationRecord
                                                         │
    holder key ──decrypt_record──▶ profile ──generate──▶ ProofBundle
                                                         │
                                   verify_and_record ◀───┘
                                           │
                                   query_eligibility(address)

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

__version__ = "0.3.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import modules on first access."""

    # Primitives
    if name in ("poseidon_hash", "params_for", "PoseidonParams"):
        from zkpsbt import poseidon
        return getattr(poseidon, name)

    if name in ("Profile", "compute_commitment", "commitment_hex", "parse_commitment"):
        from zkpsbt import commitment
        return getattr(commitment, name)

    if name in ("EncryptedField", "encrypt", "decrypt", "generate_keypair",
                "generate_private_key", "public_key_from_private", "address_from_public_key"):
        from zkpsbt import ecies
        return getattr(ecies, name)

    # Ledger
    if name in ("AttestationLedger", "AttestationRecord", "LedgerStorage", "InMemoryStorage"):
        from zkpsbt import ledger
        return getattr(ledger, name)

    # Proof system
    if name in ("CreditScoreCircuit", "CircuitInputs", "PublicSignals"):
        from zkpsbt import circuit
        return getattr(circuit, name)

    if name in ("G1Point", "G2Point", "Proof", "ProvingKey", "VerificationKey",
                "setup", "prove", "verify"):
        from zkpsbt import groth16
        return getattr(groth16, name)

    if name in ("ProofVerifier", "EligibilityPolicy", "EligibilityRecord"):
        from zkpsbt import verifier
        return getattr(verifier, name)

    # Off-ledger collaborators
    if name in ("DataPreparer", "IssuanceBundle", "decrypt_record"):
        from zkpsbt import preparation
        return getattr(preparation, name)

    if name in ("ProofGenerator", "ProofBundle", "BatchOutcome"):
        from zkpsbt import prover
        return getattr(prover, name)

    # Errors
    if name in ("SoulboundError", "ValidationError", "Unauthorized", "NotFound",
                "TransferNotAllowed", "IntegrityError", "ConstraintUnsatisfied",
                "InvalidProof", "MalformedProof", "CommitmentMismatch"):
        from zkpsbt import hardening
        return getattr(hardening, name)

    raise AttributeError(f"module 'zkpsbt' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Primitives
    "poseidon_hash",
    "Profile",
    "compute_commitment",
    "EncryptedField",
    "encrypt",
    "decrypt",
    "generate_keypair",
    # Ledger
    "AttestationLedger",
    "AttestationRecord",
    "InMemoryStorage",
    # Proof system
    "CreditScoreCircuit",
    "CircuitInputs",
    "PublicSignals",
    "Proof",
    "ProvingKey",
    "VerificationKey",
    "setup",
    "prove",
    "verify",
    "ProofVerifier",
    "EligibilityPolicy",
    # Collaborators
    "DataPreparer",
    "IssuanceBundle",
    "decrypt_record",
    "ProofGenerator",
    "ProofBundle",
    # Errors
    "SoulboundError",
    "Unauthorized",
    "NotFound",
    "TransferNotAllowed",
    "IntegrityError",
    "ConstraintUnsatisfied",
    "InvalidProof",
    "CommitmentMismatch",
]
