"""
Data Preparation Tests

Issuer-side sealing and holder-side recovery of ledger records.
"""

from dataclasses import replace

import pytest

from conftest import AUTHORITY, CREDIT_SCORE
from zkpsbt.commitment import compute_commitment
from zkpsbt.ecies import decrypt, encrypt
from zkpsbt.hardening import CommitmentMismatch, IntegrityError, ValidationError
from zkpsbt.preparation import DataPreparer, IssuanceBundle, decrypt_record


@pytest.fixture
def bundle(owner, scenario_profile) -> IssuanceBundle:
    return DataPreparer().prepare(scenario_profile, owner.public_key)


class TestPrepare:
    """Tests for building the issuance payload."""

    def test_bundle_contents(self, bundle, owner, scenario_profile, scenario_commitment):
        assert bundle.owner_address == owner.address
        assert bundle.commitment == scenario_commitment
        assert decrypt(owner.private_key, bundle.enc_credit_score) == scenario_profile.credit_score
        assert decrypt(owner.private_key, bundle.enc_income) == scenario_profile.income
        assert decrypt(owner.private_key, bundle.enc_report_date) == scenario_profile.report_date

    def test_to_dict(self, bundle, scenario_commitment):
        data = bundle.to_dict()
        assert data["commitment"] == hex(scenario_commitment)
        assert data["enc_income"] == bundle.enc_income.to_hex()

    def test_normalizes_address(self, owner, scenario_profile):
        lower = replace(scenario_profile, owner_address=owner.address.lower())
        assert DataPreparer().prepare(lower, owner.public_key).owner_address == owner.address

    def test_key_must_belong_to_owner(self, scenario_profile, other_wallet):
        with pytest.raises(ValidationError) as exc:
            DataPreparer().prepare(scenario_profile, other_wallet.public_key)
        assert exc.value.field == "public_key"

    def test_invalid_profile(self, owner, scenario_profile):
        with pytest.raises(ValidationError):
            DataPreparer().prepare(replace(scenario_profile, income=-1), owner.public_key)

    def test_issue_to_ledger(self, bundle, ledger, owner):
        token_id = bundle.issue(ledger, AUTHORITY)
        record = ledger.get_record(token_id)
        assert record.owner_address == owner.address
        assert record.enc_credit_score == bundle.enc_credit_score.to_bytes()


class TestDecryptRecord:
    """Tests for holder-side recovery."""

    def test_recovers_profile(self, bundle, ledger, owner, scenario_profile):
        record = ledger.get_record(bundle.issue(ledger, AUTHORITY))
        assert decrypt_record(record, owner.private_key) == scenario_profile

    def test_wrong_key(self, bundle, ledger, other_wallet):
        record = ledger.get_record(bundle.issue(ledger, AUTHORITY))
        with pytest.raises(IntegrityError):
            decrypt_record(record, other_wallet.private_key)

    def test_tampered_field(self, bundle, ledger, owner):
        record = ledger.get_record(bundle.issue(ledger, AUTHORITY))
        raw = bytearray(record.enc_income)
        raw[-1] ^= 0x80
        with pytest.raises(IntegrityError):
            decrypt_record(replace(record, enc_income=bytes(raw)), owner.private_key)

    def test_swapped_fields_break_commitment(self, owner, ledger, scenario_profile, scenario_commitment):
        """Authentic ciphertexts in the wrong slots still fail the commitment check."""
        token_id = ledger.issue(
            AUTHORITY,
            owner.address,
            scenario_commitment,
            encrypt(owner.public_key, scenario_profile.income),
            encrypt(owner.public_key, CREDIT_SCORE),
            encrypt(owner.public_key, scenario_profile.report_date),
        )
        with pytest.raises(CommitmentMismatch):
            decrypt_record(ledger.get_record(token_id), owner.private_key)

    def test_commitment_of_other_profile(self, bundle, ledger, owner, scenario_profile):
        other = compute_commitment(replace(scenario_profile, credit_score=CREDIT_SCORE + 1))
        token_id = ledger.issue(
            AUTHORITY, owner.address, other,
            bundle.enc_credit_score, bundle.enc_income, bundle.enc_report_date,
        )
        with pytest.raises(CommitmentMismatch):
            decrypt_record(ledger.get_record(token_id), owner.private_key)
