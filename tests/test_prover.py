"""
Proof Generator Tests

Single and batch proof generation and the proof bundle wire format.
"""

from dataclasses import replace

import pytest

from conftest import THRESHOLD
from zkpsbt.groth16 import verify
from zkpsbt.hardening import ConstraintUnsatisfied, MalformedProof
from zkpsbt.prover import BatchOutcome, ProofBundle, ProofGenerator


class TestProofBundle:
    """Tests for the bundle format."""

    def test_dict_roundtrip(self, scenario_bundle):
        data = scenario_bundle.to_dict()
        assert data["public_signals"][2] == str(THRESHOLD)
        assert ProofBundle.from_dict(data) == scenario_bundle

    @pytest.mark.parametrize("data", [
        {},
        {"proof": {}},
        [],
        {"proof": {}, "public_signals": ["1", "2", "3"]},
    ])
    def test_malformed(self, data):
        with pytest.raises(MalformedProof):
            ProofBundle.from_dict(data)

    def test_malformed_signals(self, scenario_bundle):
        data = scenario_bundle.to_dict()
        data["public_signals"] = data["public_signals"][:2]
        with pytest.raises(MalformedProof):
            ProofBundle.from_dict(data)


class TestGenerate:
    """Tests for single proofs."""

    def test_bundle_signals(self, scenario_bundle, scenario_inputs):
        assert scenario_bundle.public_signals == scenario_inputs.public_signals()

    def test_bundle_verifies(self, scenario_bundle, groth16_keys):
        _, vk = groth16_keys
        assert verify(vk, scenario_bundle.proof, scenario_bundle.public_signals.to_list())

    def test_unsatisfiable_inputs(self, groth16_keys, circuit, scenario_inputs):
        pk, _ = groth16_keys
        with pytest.raises(ConstraintUnsatisfied):
            ProofGenerator(pk, circuit).generate(replace(scenario_inputs, threshold=THRESHOLD + 20))


class TestGenerateMany:
    """Tests for batch generation."""

    def test_failures_are_isolated_and_ordered(self, groth16_keys, circuit, scenario_inputs):
        pk, _ = groth16_keys
        bad = [
            replace(scenario_inputs, threshold=99),
            replace(scenario_inputs, credit_score=55),
            replace(scenario_inputs, income=2 ** 64),
        ]
        outcomes = ProofGenerator(pk, circuit).generate_many(bad, max_workers=2)

        assert [o.index for o in outcomes] == [0, 1, 2]
        assert not any(o.ok for o in outcomes)
        assert [o.error.constraint for o in outcomes] == [
            "score_gte_threshold", "commitment", "income.range",
        ]
        with pytest.raises(ConstraintUnsatisfied):
            outcomes[0].unwrap()

    def test_empty_batch(self, groth16_keys, circuit):
        pk, _ = groth16_keys
        assert ProofGenerator(pk, circuit).generate_many([], max_workers=1) == []

    def test_outcome_unwrap(self, scenario_bundle):
        assert BatchOutcome(0, bundle=scenario_bundle).unwrap() is scenario_bundle

    @pytest.mark.slow
    def test_mixed_batch(self, groth16_keys, circuit, scenario_inputs):
        pk, vk = groth16_keys
        batch = [
            replace(scenario_inputs, threshold=10),
            replace(scenario_inputs, threshold=99),
            replace(scenario_inputs, threshold=45),
        ]
        outcomes = ProofGenerator(pk, circuit).generate_many(batch)

        assert [o.ok for o in outcomes] == [True, False, True]
        for outcome, item in zip(outcomes, batch):
            if outcome.ok:
                bundle = outcome.unwrap()
                assert bundle.public_signals.threshold == item.threshold
                assert verify(vk, bundle.proof, bundle.public_signals.to_list())
