"""
Proof Verifier

Accepts Groth16 proofs of credit-score eligibility against a token on the
attestation ledger, and records the proved threshold for the token's owner.

Checks run cheapest first and nothing is written unless all pass:

    1. public signals are a well-formed triple   -> MalformedProof
    2. the token exists                          -> NotFound
    3. signal commitment == ledger commitment    -> CommitmentMismatch
    4. signal owner == token owner               -> CommitmentMismatch
    5. pairing check against the verification key -> InvalidProof

Eligibility policy
──────────────────

    MONOTONIC_MAX    stored threshold is the best ever proved; revocation of
                     the attestation leaves it in place (default)
    RESET_ON_REVOKE  the verifier listens for AttestationRevoked and clears
                     the owner's eligibility whenever any token they hold
                     is burnt

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union

from zkpsbt.circuit import PublicSignals
from zkpsbt.events import AttestationRevoked, EligibilityReset, EligibilityUpdated, EventBus
from zkpsbt.groth16 import G1Point, G2Point, Proof, VerificationKey, verify
from zkpsbt.hardening import CommitmentMismatch, CryptoUtils, InvalidProof, Validators
from zkpsbt.ledger import AttestationLedger, InMemoryStorage, LedgerStorage
from zkpsbt.observability import SBTLayer, get_logger, timed_operation

logger = get_logger("verifier", SBTLayer.VERIFIER)

ELIGIBILITY_PREFIX = "eligibility:"


class EligibilityPolicy(Enum):
    MONOTONIC_MAX = "monotonic_max"
    RESET_ON_REVOKE = "reset_on_revoke"


@dataclass(frozen=True)
class EligibilityRecord:
    """Best threshold proved for an address and the token that proved it."""
    owner_address: str
    threshold: int
    token_id: int
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _g1(value: Union[G1Point, Sequence[Any]], name: str) -> G1Point:
    return value if isinstance(value, G1Point) else G1Point.from_list(value, name)


def _g2(value: Union[G2Point, Sequence[Any]], name: str) -> G2Point:
    return value if isinstance(value, G2Point) else G2Point.from_list(value, name)


class ProofVerifier:
    """
    On-ledger verifier bound to one verification key and one ledger.

    The verification key is read-only after construction.
    """

    def __init__(
        self,
        ledger: AttestationLedger,
        verification_key: VerificationKey,
        policy: Optional[Union[EligibilityPolicy, str]] = None,
        storage: Optional[LedgerStorage] = None,
        event_bus: Optional[EventBus] = None,
    ):
        if policy is None:
            from zkpsbt.config import get_config
            policy = get_config().verifier.eligibility_policy.get()

        self.ledger = ledger
        self.verification_key = verification_key
        self.policy = EligibilityPolicy(policy)
        self.storage: LedgerStorage = storage if storage is not None else InMemoryStorage()
        self.event_bus = event_bus or ledger.event_bus
        self._lock = threading.RLock()

        if self.policy is EligibilityPolicy.RESET_ON_REVOKE:
            self.event_bus.subscribe(AttestationRevoked)(self._on_revoked)

    def close(self) -> None:
        """Detach from the event bus."""
        self.event_bus.unsubscribe(self._on_revoked)

    # ─── verification ────────────────────────────────────────────────────

    @timed_operation(logger, "verify_and_record")
    def verify_and_record(
        self,
        a: Union[G1Point, Sequence[Any]],
        b: Union[G2Point, Sequence[Any]],
        c: Union[G1Point, Sequence[Any]],
        public_signals: Union[PublicSignals, Sequence[Union[int, str]]],
        token_id: int,
    ) -> None:
        """
        Verify a proof for ``token_id`` and record the proved threshold.

        Raises:
            MalformedProof: signals or points are badly shaped
            NotFound: ``token_id`` does not exist
            CommitmentMismatch: proof is bound to another commitment or owner
            InvalidProof: pairing check failed
        """
        signals = PublicSignals.from_list(public_signals)
        proof = Proof(_g1(a, "a"), _g2(b, "b"), _g1(c, "c"))

        with self._lock:
            record = self.ledger.get_record(token_id)

            if signals.commitment != record.commitment:
                self._reject("commitment mismatch", CommitmentMismatch.error_code, token_id)
                raise CommitmentMismatch(
                    f"Proof commitment {hex(signals.commitment)} does not match token {token_id}"
                )
            if signals.owner_address != CryptoUtils.address_to_int(record.owner_address):
                self._reject("owner mismatch", CommitmentMismatch.error_code, token_id)
                raise CommitmentMismatch(f"Proof owner {signals.owner} does not hold token {token_id}")

            if not verify(self.verification_key, proof, signals.to_list()):
                self._reject("pairing check failed", InvalidProof.error_code, token_id)
                raise InvalidProof(f"Proof for token {token_id} does not verify")

            self._record(record.owner_address, record.token_id, signals.threshold)

    def submit(self, proof: Proof, public_signals: Union[PublicSignals, Sequence[Any]], token_id: int) -> None:
        """:meth:`verify_and_record` taking a :class:`Proof`."""
        self.verify_and_record(proof.a, proof.b, proof.c, public_signals, token_id)

    def _reject(self, reason: str, error_code: str, token_id: int) -> None:
        logger.warning(
            f"Proof rejected: {reason}",
            operation="verify_and_record",
            error_code=error_code,
            token_id=token_id,
        )

    # ─── eligibility ─────────────────────────────────────────────────────

    def _record(self, owner: str, token_id: int, threshold: int) -> None:
        key = ELIGIBILITY_PREFIX + owner
        previous = self.storage.get(key)
        previous_threshold = previous.threshold if previous else 0

        if previous is None or threshold > previous_threshold:
            self.storage.put(key, EligibilityRecord(owner, threshold, token_id))

        try:
            self.event_bus.publish(EligibilityUpdated(
                owner_address=owner,
                token_id=token_id,
                threshold=threshold,
                previous_threshold=previous_threshold,
            ))
        except Exception:
            if previous is None:
                self.storage.delete(key)
            else:
                self.storage.put(key, previous)
            raise

        logger.info(
            "Eligibility recorded",
            operation="verify_and_record",
            token_id=token_id,
            owner=owner,
            threshold=max(threshold, previous_threshold),
        )

    def _on_revoked(self, event: AttestationRevoked) -> None:
        with self._lock:
            key = ELIGIBILITY_PREFIX + event.owner_address
            current = self.storage.get(key)
            if current is None:
                return
            self.storage.delete(key)
            try:
                self.event_bus.publish(EligibilityReset(
                    owner_address=event.owner_address,
                    token_id=event.token_id,
                    previous_threshold=current.threshold,
                ))
            except Exception:
                self.storage.put(key, current)
                raise
        logger.info("Eligibility reset", operation="reset", token_id=event.token_id)

    def eligibility_record(self, address: str) -> Optional[EligibilityRecord]:
        address = Validators.validate_address(address, "address").unwrap()
        return self.storage.get(ELIGIBILITY_PREFIX + address)

    def query_eligibility(self, address: str) -> int:
        """Best threshold proved for ``address``, or 0."""
        record = self.eligibility_record(address)
        return record.threshold if record else 0
