"""
Issuer-side data preparation and holder-side record decryption.

    profile + holder public key
        │
        ▼  DataPreparer.prepare
    IssuanceBundle {commitment, encCreditScore, encIncome, encReportDate}
        │
        ▼  AttestationLedger.issue
    AttestationRecord
        │
        ▼  decrypt_record (holder private key)
    profile, re-checked against the commitment

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from zkpsbt.commitment import Profile, commitment_hex, compute_commitment, hash_fields
from zkpsbt.ecies import (
    EncryptedField,
    PrivateKeyLike,
    PublicKeyLike,
    address_from_public_key,
    decrypt,
    encrypt,
)
from zkpsbt.hardening import CommitmentMismatch, ValidationError
from zkpsbt.ledger import AttestationLedger, AttestationRecord
from zkpsbt.observability import SBTLayer, get_logger, timed_operation

logger = get_logger("preparation", SBTLayer.CODEC)


@dataclass(frozen=True)
class IssuanceBundle:
    """Everything ``AttestationLedger.issue`` needs besides the caller."""
    owner_address: str
    commitment: int
    enc_credit_score: EncryptedField
    enc_income: EncryptedField
    enc_report_date: EncryptedField

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_address": self.owner_address,
            "commitment": commitment_hex(self.commitment),
            "enc_credit_score": self.enc_credit_score.to_hex(),
            "enc_income": self.enc_income.to_hex(),
            "enc_report_date": self.enc_report_date.to_hex(),
        }

    def issue(self, ledger: AttestationLedger, caller: str) -> int:
        return ledger.issue(
            caller,
            self.owner_address,
            self.commitment,
            self.enc_credit_score,
            self.enc_income,
            self.enc_report_date,
        )


class DataPreparer:
    """Seals a plaintext profile to its holder and commits to it."""

    @timed_operation(logger, "prepare")
    def prepare(self, profile: Profile, public_key: PublicKeyLike) -> IssuanceBundle:
        """
        Validate ``profile``, check that ``public_key`` belongs to its owner,
        and produce the issuance payload.
        """
        profile = profile.validate()
        holder = address_from_public_key(public_key)
        if holder != profile.owner_address:
            raise ValidationError(
                "public_key",
                f"Key belongs to {holder}, not the profile owner {profile.owner_address}",
            )

        return IssuanceBundle(
            owner_address=profile.owner_address,
            commitment=compute_commitment(profile),
            enc_credit_score=encrypt(public_key, profile.credit_score),
            enc_income=encrypt(public_key, profile.income),
            enc_report_date=encrypt(public_key, profile.report_date),
        )


@timed_operation(logger, "decrypt_record")
def decrypt_record(record: AttestationRecord, private_key: PrivateKeyLike) -> Profile:
    """
    Recover the holder's profile from a ledger record.

    Raises:
        IntegrityError: a field fails authentication (tampered or wrong key)
        CommitmentMismatch: fields decrypt but do not hash to the commitment
    """
    profile = Profile(
        owner_address=record.owner_address,
        credit_score=decrypt(private_key, record.enc_credit_score),
        income=decrypt(private_key, record.enc_income),
        report_date=decrypt(private_key, record.enc_report_date),
    )

    if hash_fields(*profile.field_elements()) != record.commitment:
        raise CommitmentMismatch(f"Decrypted fields of token {record.token_id} do not match its commitment")
    return profile
