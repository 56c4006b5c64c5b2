"""
Credit-score eligibility circuit.

Public inputs, in order:  commitment, ownerAddress, threshold
Private inputs:           ownerAddress, creditScore, income, reportDate

Constraints:
    1. Poseidon(ownerAddress, creditScore, income, reportDate) == commitment
    2. private ownerAddress == public ownerAddress
    3. creditScore and threshold each fit in ``score_bits`` bits
    4. creditScore - threshold fits in ``score_bits`` bits, which with (3)
       holds exactly when creditScore >= threshold

Income and reportDate are bound only through the hash.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Union

from zkpsbt.commitment import (
    ADDRESS_BITS,
    INCOME_BITS,
    REPORT_DATE_BITS,
    Profile,
    commitment_hex,
    parse_commitment,
    score_bits,
)
from zkpsbt.hardening import (
    ConstraintUnsatisfied,
    CryptoUtils,
    MalformedProof,
    ValidationError,
    Validators,
)
from zkpsbt.observability import SBTLayer, get_logger, timed_operation
from zkpsbt.r1cs import ConstraintSystem, assert_equal, num2bits, poseidon

logger = get_logger("circuit", SBTLayer.CIRCUIT)

PUBLIC_SIGNAL_NAMES = ("commitment", "owner_address", "threshold")

# Widths at or above the field size let a wrapped negative difference pass
# the range check, so the comparison is only sound well below 254 bits.
MIN_SCORE_BITS = 8
MAX_SCORE_BITS = 64


# =============================================================================
# SIGNALS AND INPUTS
# =============================================================================

@dataclass(frozen=True)
class PublicSignals:
    """The fixed-arity public input vector of the circuit."""
    commitment: int
    owner_address: int
    threshold: int

    ARITY = len(PUBLIC_SIGNAL_NAMES)

    @property
    def owner(self) -> str:
        """Checksummed form of the public owner address."""
        return CryptoUtils.int_to_address(self.owner_address)

    def to_list(self) -> List[int]:
        return [self.commitment, self.owner_address, self.threshold]

    def to_json(self) -> List[str]:
        return [str(v) for v in self.to_list()]

    @classmethod
    def from_list(cls, values: Sequence[Union[int, str]]) -> 'PublicSignals':
        """
        Parse and range-check a public signal vector.

        Raises MalformedProof on wrong arity, non-numeric entries, values
        outside the field, or an owner that is not a 160-bit address.
        """
        if isinstance(values, PublicSignals):
            return values
        if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
            raise MalformedProof("Public signals must be a list")
        if len(values) != cls.ARITY:
            raise MalformedProof(
                f"Expected {cls.ARITY} public signals {list(PUBLIC_SIGNAL_NAMES)}, got {len(values)}"
            )

        parsed = []
        for name, raw in zip(PUBLIC_SIGNAL_NAMES, values):
            result = Validators.validate_field_element(raw, name)
            if not result.is_valid:
                raise MalformedProof(str(result.errors[0]))
            parsed.append(result.sanitized_value)

        if parsed[1] >> ADDRESS_BITS:
            raise MalformedProof("owner_address does not fit in 160 bits")
        return cls(*parsed)


@dataclass(frozen=True)
class CircuitInputs:
    """Everything the prover needs: public and private inputs together."""
    commitment: int
    owner_address: str
    threshold: int
    credit_score: int
    income: int
    report_date: int

    @classmethod
    def from_profile(cls, profile: Profile, commitment: Union[int, str], threshold: int) -> 'CircuitInputs':
        return cls(
            commitment=parse_commitment(commitment),
            owner_address=profile.owner_address,
            threshold=threshold,
            credit_score=profile.credit_score,
            income=profile.income,
            report_date=profile.report_date,
        )

    def public_signals(self) -> PublicSignals:
        return PublicSignals(
            commitment=self.commitment,
            owner_address=CryptoUtils.address_to_int(self.owner_address),
            threshold=self.threshold,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commitment": commitment_hex(self.commitment),
            "owner_address": self.owner_address,
            "threshold": self.threshold,
            "credit_score": self.credit_score,
            "income": self.income,
            "report_date": self.report_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CircuitInputs':
        missing = [k for k in ("commitment", "owner_address", "threshold",
                               "credit_score", "income", "report_date") if k not in data]
        if missing:
            raise ValidationError("inputs", f"Missing fields: {missing}")
        return cls(
            commitment=parse_commitment(data["commitment"]),
            owner_address=data["owner_address"],
            threshold=data["threshold"],
            credit_score=data["credit_score"],
            income=data["income"],
            report_date=data["report_date"],
        )


def _check_scalar(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(name, f"Expected integer, got {type(value).__name__}", value)
    return value


# =============================================================================
# CIRCUIT
# =============================================================================

class CreditScoreCircuit:
    """Builds the eligibility constraint system, with or without a witness."""

    def __init__(self, bits: Optional[int] = None):
        bits = bits or score_bits()
        if not isinstance(bits, int) or not MIN_SCORE_BITS <= bits <= MAX_SCORE_BITS:
            raise ValidationError(
                "score_bits", f"must be between {MIN_SCORE_BITS} and {MAX_SCORE_BITS}", bits
            )
        self.score_bits = bits

    def synthesize(self, inputs: Optional[CircuitInputs] = None) -> ConstraintSystem:
        """
        Lay out the circuit. With ``inputs`` every wire is assigned and every
        constraint checked as it is added.
        """
        cs = ConstraintSystem(witness=inputs is not None)

        if inputs is None:
            public = private = [None, None, None, None]
        else:
            public, private = self._assign(inputs)

        commitment = cs.public_input("commitment", public[0])
        owner_pub = cs.public_input("owner_address", public[1])
        threshold = cs.public_input("threshold", public[2])

        owner = cs.private_input("private.owner_address", private[0])
        score = cs.private_input("private.credit_score", private[1])
        income = cs.private_input("private.income", private[2])
        report_date = cs.private_input("private.report_date", private[3])

        digest = poseidon(cs, [owner, score, income, report_date], label="commitment.hash")
        assert_equal(cs, digest, commitment, "commitment")
        assert_equal(cs, owner, owner_pub, "owner_address")

        num2bits(cs, score, self.score_bits, "credit_score.range")
        num2bits(cs, threshold, self.score_bits, "threshold.range")
        num2bits(cs, score - threshold, self.score_bits, "score_gte_threshold")

        return cs

    def _assign(self, inputs: CircuitInputs) -> tuple:
        owner = Validators.validate_address(inputs.owner_address, "owner_address").unwrap()
        commitment = Validators.validate_field_element(inputs.commitment, "commitment").unwrap()
        threshold = _check_scalar(inputs.threshold, "threshold")
        score = _check_scalar(inputs.credit_score, "credit_score")
        income = _check_scalar(inputs.income, "income")
        report_date = _check_scalar(inputs.report_date, "report_date")

        address = CryptoUtils.address_to_int(owner)
        widths = (
            ("income.range", income, INCOME_BITS),
            ("report_date.range", report_date, REPORT_DATE_BITS),
        )
        for label, value, bits in widths:
            if value < 0 or value >> bits:
                raise ConstraintUnsatisfied(label, f"value does not fit in {bits} bits")

        public = [commitment, address, threshold]
        private = [address, score, income, report_date]
        return public, private

    def shape(self) -> ConstraintSystem:
        """Value-free constraint system, cached per bit width."""
        return _shape(self.score_bits)

    @timed_operation(logger, "generate_witness")
    def generate_witness(self, inputs: CircuitInputs) -> ConstraintSystem:
        """
        Assign and check every wire for ``inputs``.

        Raises ConstraintUnsatisfied naming the first violated constraint.
        """
        try:
            return self.synthesize(inputs)
        except ConstraintUnsatisfied as e:
            logger.warning(
                "Witness generation rejected inputs",
                operation="generate_witness",
                error_code=e.error_code,
                constraint=e.constraint,
            )
            raise


@lru_cache(maxsize=None)
def _shape(bits: int) -> ConstraintSystem:
    cs = CreditScoreCircuit(bits).synthesize()
    logger.debug(
        "Circuit synthesized",
        operation="shape",
        constraints=cs.num_constraints,
        variables=cs.num_variables,
    )
    return cs
