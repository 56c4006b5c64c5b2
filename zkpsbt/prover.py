"""
Holder-side proof generation.

Generation is stateless: the proving key and circuit shape are shared
read-only, so any number of requests may run concurrently and a failed
or abandoned request can simply be retried.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import concurrent.futures
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from zkpsbt.circuit import CircuitInputs, CreditScoreCircuit, PublicSignals
from zkpsbt.groth16 import Proof, ProvingKey, prove
from zkpsbt.hardening import MalformedProof
from zkpsbt.observability import SBTLayer, get_logger, timed_operation

logger = get_logger("prover", SBTLayer.PROVER)


@dataclass(frozen=True)
class ProofBundle:
    """A proof and the public signals it was generated for."""
    proof: Proof
    public_signals: PublicSignals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof": self.proof.to_dict(),
            "public_signals": self.public_signals.to_json(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProofBundle':
        if not isinstance(data, dict) or "proof" not in data or "public_signals" not in data:
            raise MalformedProof("Proof bundle needs 'proof' and 'public_signals'")
        return cls(
            proof=Proof.from_dict(data["proof"]),
            public_signals=PublicSignals.from_list(data["public_signals"]),
        )


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one item in :meth:`ProofGenerator.generate_many`."""
    index: int
    bundle: Optional[ProofBundle] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> ProofBundle:
        """Return the bundle or re-raise the item's failure."""
        if self.error is not None:
            raise self.error
        return self.bundle


class ProofGenerator:
    """Turns circuit inputs into Groth16 proofs under one proving key."""

    def __init__(self, proving_key: ProvingKey, circuit: Optional[CreditScoreCircuit] = None):
        self.proving_key = proving_key
        self.circuit = circuit or CreditScoreCircuit()

    @timed_operation(logger, "generate")
    def generate(self, inputs: CircuitInputs) -> ProofBundle:
        """
        Build the witness and prove it.

        Raises ConstraintUnsatisfied when the inputs do not satisfy the
        circuit; no proof is produced in that case.
        """
        witness = self.circuit.generate_witness(inputs)
        proof = prove(self.proving_key, witness)
        return ProofBundle(proof, PublicSignals.from_list(witness.public_values))

    def generate_many(
        self,
        inputs: Sequence[CircuitInputs],
        max_workers: Optional[int] = None,
    ) -> List[BatchOutcome]:
        """Generate proofs concurrently; outcomes keep the order of ``inputs``."""
        if max_workers is None:
            from zkpsbt.config import get_config
            max_workers = get_config().prover.max_workers.get()

        outcomes: List[Optional[BatchOutcome]] = [None] * len(inputs)
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.generate, item): i for i, item in enumerate(inputs)}
            for future in concurrent.futures.as_completed(futures):
                index = futures[future]
                try:
                    outcomes[index] = BatchOutcome(index, bundle=future.result())
                except Exception as exc:
                    logger.warning(
                        "Batch item failed",
                        operation="generate_many",
                        error_code=getattr(exc, "error_code", type(exc).__name__),
                        index=index,
                    )
                    outcomes[index] = BatchOutcome(index, error=exc)

        failed = sum(1 for o in outcomes if not o.ok)
        logger.info("Batch complete", operation="generate_many", total=len(inputs), failed=failed)
        return outcomes
