"""
Proof Verifier Tests

End-to-end eligibility flow: issue an attestation, decrypt it as the
holder, prove the threshold and record it, plus every rejection path.

Run with: pytest tests/test_verifier.py -v
"""

from dataclasses import replace

import pytest

from conftest import AUTHORITY, FORGED_CREDIT_SCORE, STRANGER, THRESHOLD
from zkpsbt.circuit import PublicSignals
from zkpsbt.events import EligibilityReset, EligibilityUpdated
from zkpsbt.hardening import (
    CommitmentMismatch,
    ConstraintUnsatisfied,
    CryptoUtils,
    InvalidProof,
    MalformedProof,
    NotFound,
    ValidationError,
)
from zkpsbt.preparation import DataPreparer, decrypt_record
from zkpsbt.prover import ProofGenerator
from zkpsbt.verifier import EligibilityPolicy, ProofVerifier


@pytest.fixture
def token_id(ledger, owner, scenario_profile):
    bundle = DataPreparer().prepare(scenario_profile, owner.public_key)
    return bundle.issue(ledger, AUTHORITY)


@pytest.fixture
def verifier(ledger, groth16_keys):
    _, vk = groth16_keys
    v = ProofVerifier(ledger, vk)
    yield v
    v.close()


def _submit(verifier, bundle, token_id, signals=None):
    proof = bundle.proof
    verifier.verify_and_record(
        proof.a.to_list(),
        proof.b.to_list(),
        proof.c.to_list(),
        signals if signals is not None else bundle.public_signals.to_json(),
        token_id,
    )


class TestEndToEnd:
    """The holder's happy path."""

    def test_issue_decrypt_prove_verify(self, ledger, verifier, event_bus, owner, token_id,
                                        scenario_profile, scenario_bundle, scenario_commitment):
        record = ledger.get_record(token_id)
        assert record.commitment == scenario_commitment

        recovered = decrypt_record(record, owner.private_key)
        assert recovered == scenario_profile.validate()

        assert verifier.query_eligibility(owner.address) == 0
        _submit(verifier, scenario_bundle, token_id)
        assert verifier.query_eligibility(owner.address) == THRESHOLD

        stored = verifier.eligibility_record(owner.address.lower())
        assert stored.token_id == token_id
        assert stored.threshold == THRESHOLD

        events = event_bus.history(EligibilityUpdated)
        assert [(e.owner_address, e.threshold, e.previous_threshold) for e in events] == [
            (owner.address, THRESHOLD, 0)
        ]

    def test_submit_accepts_typed_proof(self, verifier, token_id, scenario_bundle, owner):
        verifier.submit(scenario_bundle.proof, scenario_bundle.public_signals, token_id)
        assert verifier.query_eligibility(owner.address) == THRESHOLD

    def test_unknown_address_is_zero(self, verifier):
        assert verifier.query_eligibility(STRANGER) == 0
        assert verifier.eligibility_record(STRANGER) is None

    def test_query_rejects_bad_address(self, verifier):
        with pytest.raises(ValidationError):
            verifier.query_eligibility("0x1234")


class TestRejections:
    """Every failure leaves eligibility untouched."""

    def test_replay_against_other_token(self, ledger, verifier, other_wallet, scenario_bundle, owner):
        """A valid proof cannot be replayed against a token with another commitment."""
        other = ledger.issue(AUTHORITY, other_wallet.address, 777, b"\x01" * 97, b"\x01" * 97, b"\x01" * 97)
        with pytest.raises(CommitmentMismatch):
            _submit(verifier, scenario_bundle, other)
        assert verifier.query_eligibility(owner.address) == 0
        assert verifier.query_eligibility(other_wallet.address) == 0

    def test_owner_mismatch(self, verifier, token_id, scenario_bundle, other_wallet, owner):
        signals = replace(
            scenario_bundle.public_signals,
            owner_address=CryptoUtils.address_to_int(other_wallet.address),
        )
        with pytest.raises(CommitmentMismatch):
            _submit(verifier, scenario_bundle, token_id, signals.to_json())
        assert verifier.query_eligibility(owner.address) == 0
        assert verifier.query_eligibility(other_wallet.address) == 0

    def test_unknown_token(self, verifier, scenario_bundle):
        with pytest.raises(NotFound):
            _submit(verifier, scenario_bundle, 42)

    @pytest.mark.parametrize("signals", [
        ["1", "2"],
        ["1", "2", "3", "4"],
        ["x", "2", "3"],
        "123",
    ])
    def test_malformed_signals(self, verifier, token_id, scenario_bundle, signals):
        with pytest.raises(MalformedProof):
            _submit(verifier, scenario_bundle, token_id, signals)

    def test_malformed_points(self, verifier, token_id, scenario_bundle):
        proof = scenario_bundle.proof
        with pytest.raises(MalformedProof):
            verifier.verify_and_record(
                ["1"], proof.b.to_list(), proof.c.to_list(),
                scenario_bundle.public_signals.to_json(), token_id,
            )

    def test_off_curve_point(self, verifier, token_id, scenario_bundle, owner):
        proof = scenario_bundle.proof
        with pytest.raises(MalformedProof):
            verifier.verify_and_record(
                ["1", "1"], proof.b.to_list(), proof.c.to_list(),
                scenario_bundle.public_signals.to_json(), token_id,
            )
        assert verifier.query_eligibility(owner.address) == 0

    def test_malformed_checked_before_lookup(self, verifier, scenario_bundle):
        with pytest.raises(MalformedProof):
            _submit(verifier, scenario_bundle, 42, ["1", "2"])

    def test_altered_threshold(self, verifier, token_id, scenario_bundle, owner):
        """Claiming a higher threshold than proved fails the pairing check."""
        signals = replace(scenario_bundle.public_signals, threshold=THRESHOLD + 5)
        with pytest.raises(InvalidProof) as exc:
            _submit(verifier, scenario_bundle, token_id, signals.to_json())
        assert not isinstance(exc.value, MalformedProof)
        assert verifier.query_eligibility(owner.address) == 0

    def test_forged_score_cannot_be_proved(self, groth16_keys, circuit, scenario_inputs, verifier, owner):
        pk, _ = groth16_keys
        forged = replace(scenario_inputs, credit_score=FORGED_CREDIT_SCORE, threshold=50)
        with pytest.raises(ConstraintUnsatisfied) as exc:
            ProofGenerator(pk, circuit).generate(forged)
        assert exc.value.constraint == "commitment"
        assert verifier.query_eligibility(owner.address) == 0

    def test_threshold_above_score_cannot_be_proved(self, groth16_keys, circuit, scenario_inputs):
        pk, _ = groth16_keys
        with pytest.raises(ConstraintUnsatisfied) as exc:
            ProofGenerator(pk, circuit).generate(replace(scenario_inputs, threshold=50))
        assert exc.value.constraint == "score_gte_threshold"

    def test_subscriber_failure_rolls_back(self, verifier, event_bus, token_id, scenario_bundle, owner):
        @event_bus.subscribe(EligibilityUpdated)
        def explode(event):
            raise RuntimeError("downstream failure")

        with pytest.raises(RuntimeError):
            _submit(verifier, scenario_bundle, token_id)
        assert verifier.query_eligibility(owner.address) == 0
        event_bus.unsubscribe(explode)


class TestEligibilityPolicy:
    """Tests for monotonic recording and revocation behaviour."""

    def test_policy_from_config(self, ledger, groth16_keys, monkeypatch):
        _, vk = groth16_keys
        monkeypatch.setenv("ZKPSBT_VERIFIER_ELIGIBILITY_POLICY", "reset_on_revoke")
        v = ProofVerifier(ledger, vk)
        assert v.policy is EligibilityPolicy.RESET_ON_REVOKE
        v.close()

    def test_unknown_policy(self, ledger, groth16_keys):
        _, vk = groth16_keys
        with pytest.raises(ValueError):
            ProofVerifier(ledger, vk, policy="forever")

    def test_monotonic_survives_revoke(self, ledger, verifier, token_id, scenario_bundle, owner):
        assert verifier.policy is EligibilityPolicy.MONOTONIC_MAX
        _submit(verifier, scenario_bundle, token_id)
        ledger.revoke(owner.address, token_id)
        assert verifier.query_eligibility(owner.address) == THRESHOLD

    def test_proof_after_revoke_rejected(self, ledger, verifier, token_id, scenario_bundle):
        ledger.revoke(AUTHORITY, token_id)
        with pytest.raises(NotFound):
            _submit(verifier, scenario_bundle, token_id)

    def test_reset_on_revoke(self, ledger, groth16_keys, event_bus, token_id, scenario_bundle, owner):
        _, vk = groth16_keys
        verifier = ProofVerifier(ledger, vk, policy=EligibilityPolicy.RESET_ON_REVOKE)
        try:
            _submit(verifier, scenario_bundle, token_id)
            assert verifier.query_eligibility(owner.address) == THRESHOLD

            ledger.revoke(owner.address, token_id)
            assert verifier.query_eligibility(owner.address) == 0

            resets = event_bus.history(EligibilityReset)
            assert [(e.owner_address, e.token_id, e.previous_threshold) for e in resets] == [
                (owner.address, token_id, THRESHOLD)
            ]
        finally:
            verifier.close()

    def test_reset_when_any_owned_token_is_burnt(self, ledger, groth16_keys, event_bus, token_id,
                                                 scenario_bundle, owner):
        _, vk = groth16_keys
        verifier = ProofVerifier(ledger, vk, policy="reset_on_revoke")
        try:
            _submit(verifier, scenario_bundle, token_id)
            spare = ledger.issue(AUTHORITY, owner.address, 5, b"\x01" * 97, b"\x01" * 97, b"\x01" * 97)
            ledger.revoke(owner.address, spare)

            assert ledger.exists(token_id)
            assert verifier.query_eligibility(owner.address) == 0
            resets = event_bus.history(EligibilityReset)
            assert [(e.token_id, e.previous_threshold) for e in resets] == [(spare, THRESHOLD)]
        finally:
            verifier.close()

    def test_reset_ignores_other_owners(self, ledger, groth16_keys, event_bus, token_id,
                                        scenario_bundle, owner, other_wallet):
        _, vk = groth16_keys
        verifier = ProofVerifier(ledger, vk, policy="reset_on_revoke")
        try:
            _submit(verifier, scenario_bundle, token_id)
            theirs = ledger.issue(AUTHORITY, other_wallet.address, 5, b"\x01" * 97, b"\x01" * 97, b"\x01" * 97)
            ledger.revoke(other_wallet.address, theirs)
            assert verifier.query_eligibility(owner.address) == THRESHOLD
            assert event_bus.history(EligibilityReset) == []
        finally:
            verifier.close()

    def test_reset_subscriber_failure_restores_eligibility(self, ledger, groth16_keys, event_bus,
                                                           token_id, scenario_bundle, owner):
        _, vk = groth16_keys
        verifier = ProofVerifier(ledger, vk, policy="reset_on_revoke")

        @event_bus.subscribe(EligibilityReset)
        def explode(event):
            raise RuntimeError("downstream failure")

        try:
            _submit(verifier, scenario_bundle, token_id)
            with pytest.raises(RuntimeError):
                ledger.revoke(owner.address, token_id)

            assert ledger.exists(token_id)
            assert verifier.query_eligibility(owner.address) == THRESHOLD
            assert event_bus.history(EligibilityReset) == []
        finally:
            event_bus.unsubscribe(explode)
            verifier.close()

    @pytest.mark.slow
    def test_lower_threshold_keeps_maximum(self, ledger, verifier, event_bus, groth16_keys, circuit,
                                           token_id, scenario_inputs, scenario_bundle, owner):
        pk, _ = groth16_keys
        _submit(verifier, scenario_bundle, token_id)

        lower = ProofGenerator(pk, circuit).generate(replace(scenario_inputs, threshold=30))
        assert lower.public_signals == PublicSignals(scenario_inputs.commitment,
                                                     CryptoUtils.address_to_int(owner.address), 30)
        _submit(verifier, lower, token_id)

        assert verifier.query_eligibility(owner.address) == THRESHOLD
        last = event_bus.history(EligibilityUpdated)[-1]
        assert (last.threshold, last.previous_threshold) == (30, THRESHOLD)
