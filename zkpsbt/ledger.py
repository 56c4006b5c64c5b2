"""
Attestation Ledger

Holds one AttestationRecord per soulbound credit token: the profile
commitment and the three sealed profile fields. Only the issuing authority
(and minters it delegates to) may issue; only the holder or the authority
may revoke; nothing may transfer.

Storage is injected through :class:`LedgerStorage`, a minimal key-value
interface, so the host ledger's global state can be replaced by
:class:`InMemoryStorage` in tests and tooling. Keys used:

    record:<token_id>      AttestationRecord
    owner:<address>        tuple of token ids held by the address
    meta:next_token_id     next id to allocate (ids are never reused)
    meta:minters           tuple of delegated minter addresses

Every mutation runs inside a transaction: the touched keys are snapshotted
and restored if anything raises, including an event subscriber.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

from zkpsbt.commitment import commitment_hex, parse_commitment
from zkpsbt.ecies import EncryptedField
from zkpsbt.events import AttestationIssued, AttestationRevoked, EventBus, get_event_bus
from zkpsbt.hardening import (
    NotFound,
    TransferNotAllowed,
    Unauthorized,
    ValidationError,
    Validators,
)
from zkpsbt.observability import SBTLayer, get_logger, timed_operation

logger = get_logger("ledger", SBTLayer.LEDGER)

RECORD_PREFIX = "record:"
OWNER_PREFIX = "owner:"
NEXT_TOKEN_ID_KEY = "meta:next_token_id"
MINTERS_KEY = "meta:minters"

SealedField = Union[bytes, str, EncryptedField]


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class AttestationRecord:
    """Per-token state: the binding commitment and the sealed profile fields."""
    token_id: int
    owner_address: str
    commitment: int
    enc_credit_score: bytes
    enc_income: bytes
    enc_report_date: bytes
    issuer: str = ""
    issued_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def commitment_hex(self) -> str:
        return commitment_hex(self.commitment)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_id": self.token_id,
            "owner_address": self.owner_address,
            "commitment": self.commitment_hex,
            "enc_credit_score": self.enc_credit_score.hex(),
            "enc_income": self.enc_income.hex(),
            "enc_report_date": self.enc_report_date.hex(),
            "issuer": self.issuer,
            "issued_at": self.issued_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttestationRecord':
        return cls(
            token_id=int(data["token_id"]),
            owner_address=data["owner_address"],
            commitment=parse_commitment(data["commitment"]),
            enc_credit_score=bytes.fromhex(data["enc_credit_score"]),
            enc_income=bytes.fromhex(data["enc_income"]),
            enc_report_date=bytes.fromhex(data["enc_report_date"]),
            issuer=data.get("issuer", ""),
            issued_at=data.get("issued_at", ""),
        )


# =============================================================================
# STORAGE
# =============================================================================

@runtime_checkable
class LedgerStorage(Protocol):
    """Key-value store backing the ledger."""

    def get(self, key: str) -> Optional[Any]: ...

    def put(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> List[str]: ...


class InMemoryStorage:
    """Thread-safe dictionary-backed storage."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        """Delete key. Returns True if existed."""
        with self._lock:
            if key in self._data:
                del self._data[key]
                return True
            return False

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


# =============================================================================
# LEDGER
# =============================================================================

def _address(value: Any, field_name: str) -> str:
    return Validators.validate_address(value, field_name).unwrap()


def _token_id(value: Any) -> int:
    return Validators.validate_uint(value, "token_id", 256).unwrap()


def _sealed(value: SealedField, field_name: str) -> bytes:
    if isinstance(value, EncryptedField):
        value = value.to_bytes()
    return Validators.validate_bytes(value, field_name, min_length=1).unwrap()


class AttestationLedger:
    """
    Registry of soulbound credit attestations.

    Callers identify themselves by address on every mutating call, the way
    a transaction sender would.
    """

    def __init__(
        self,
        authority: Optional[str] = None,
        storage: Optional[LedgerStorage] = None,
        event_bus: Optional[EventBus] = None,
    ):
        if authority is None:
            from zkpsbt.config import get_config
            authority = get_config().ledger.authority_address.get()
        if not authority:
            raise ValidationError("authority", "An issuing authority address is required")

        self.authority = _address(authority, "authority")
        self.storage: LedgerStorage = storage if storage is not None else InMemoryStorage()
        self.event_bus = event_bus or get_event_bus()
        self._lock = threading.RLock()

    # ─── transactions ────────────────────────────────────────────────────

    @contextmanager
    def _transaction(self, *keys: str) -> Iterator[None]:
        with self._lock:
            snapshot = {k: self.storage.get(k) for k in keys}
            try:
                yield
            except Exception:
                for key, value in snapshot.items():
                    if value is None:
                        self.storage.delete(key)
                    else:
                        self.storage.put(key, value)
                raise

    # ─── authority ───────────────────────────────────────────────────────

    def minters(self) -> Tuple[str, ...]:
        return self.storage.get(MINTERS_KEY) or ()

    def is_minter(self, address: str) -> bool:
        address = _address(address, "address")
        return address == self.authority or address in self.minters()

    def grant_minter(self, caller: str, minter: str) -> None:
        """Let ``minter`` issue attestations. Authority only."""
        self._require_authority(caller, "grant_minter")
        minter = _address(minter, "minter")
        with self._transaction(MINTERS_KEY):
            current = self.minters()
            if minter not in current:
                self.storage.put(MINTERS_KEY, current + (minter,))
        logger.info("Minter granted", operation="grant_minter", minter=minter)

    def revoke_minter(self, caller: str, minter: str) -> None:
        """Withdraw a delegated minter. Authority only."""
        self._require_authority(caller, "revoke_minter")
        minter = _address(minter, "minter")
        with self._transaction(MINTERS_KEY):
            self.storage.put(MINTERS_KEY, tuple(m for m in self.minters() if m != minter))
        logger.info("Minter revoked", operation="revoke_minter", minter=minter)

    def _require_authority(self, caller: str, operation: str) -> str:
        caller = _address(caller, "caller")
        if caller != self.authority:
            logger.warning("Rejected non-authority caller", operation=operation, caller=caller)
            raise Unauthorized(f"{caller} is not the issuing authority")
        return caller

    # ─── mutations ───────────────────────────────────────────────────────

    @timed_operation(logger, "issue")
    def issue(
        self,
        caller: str,
        owner_address: str,
        commitment: Union[int, str],
        enc_credit_score: SealedField,
        enc_income: SealedField,
        enc_report_date: SealedField,
    ) -> int:
        """
        Mint a soulbound attestation for ``owner_address``.

        Returns the new token id.

        Raises:
            Unauthorized: caller is neither the authority nor a minter
            ValidationError: malformed owner, commitment or ciphertexts
        """
        caller = _address(caller, "caller")
        if not self.is_minter(caller):
            logger.warning("Rejected issuance", operation="issue", caller=caller)
            raise Unauthorized(f"{caller} may not issue attestations")

        owner = _address(owner_address, "owner_address")
        value = parse_commitment(commitment)
        sealed = (
            _sealed(enc_credit_score, "enc_credit_score"),
            _sealed(enc_income, "enc_income"),
            _sealed(enc_report_date, "enc_report_date"),
        )

        owner_key = OWNER_PREFIX + owner
        with self._lock:
            token_id = self.storage.get(NEXT_TOKEN_ID_KEY) or 0
            record_key = f"{RECORD_PREFIX}{token_id}"
            with self._transaction(NEXT_TOKEN_ID_KEY, record_key, owner_key):
                record = AttestationRecord(
                    token_id=token_id,
                    owner_address=owner,
                    commitment=value,
                    enc_credit_score=sealed[0],
                    enc_income=sealed[1],
                    enc_report_date=sealed[2],
                    issuer=caller,
                )
                self.storage.put(record_key, record)
                self.storage.put(owner_key, (self.storage.get(owner_key) or ()) + (token_id,))
                self.storage.put(NEXT_TOKEN_ID_KEY, token_id + 1)

                self.event_bus.publish(AttestationIssued(
                    token_id=token_id,
                    owner_address=owner,
                    commitment=record.commitment_hex,
                    issuer=caller,
                ))

        logger.info("Attestation issued", operation="issue", token_id=token_id, owner=owner)
        return token_id

    @timed_operation(logger, "revoke")
    def revoke(self, caller: str, token_id: int) -> None:
        """
        Burn ``token_id``. Callable by its holder or the authority.

        Raises:
            NotFound: no such token
            Unauthorized: caller is neither holder nor authority
        """
        caller = _address(caller, "caller")
        with self._lock:
            record = self.get_record(token_id)
            if caller not in (record.owner_address, self.authority):
                logger.warning("Rejected revocation", operation="revoke", token_id=token_id, caller=caller)
                raise Unauthorized(f"{caller} may not revoke token {token_id}")

            record_key = f"{RECORD_PREFIX}{record.token_id}"
            owner_key = OWNER_PREFIX + record.owner_address
            with self._transaction(record_key, owner_key):
                self.storage.delete(record_key)
                remaining = tuple(t for t in self.storage.get(owner_key) or () if t != record.token_id)
                if remaining:
                    self.storage.put(owner_key, remaining)
                else:
                    self.storage.delete(owner_key)

                self.event_bus.publish(AttestationRevoked(
                    token_id=record.token_id,
                    owner_address=record.owner_address,
                    revoked_by=caller,
                ))

        logger.info("Attestation revoked", operation="revoke", token_id=record.token_id)

    def transfer(self, caller: str, from_address: str, to_address: str, token_id: int) -> None:
        """Attestations are soulbound; every transfer is refused."""
        logger.warning("Transfer refused", operation="transfer", token_id=token_id)
        raise TransferNotAllowed(f"Token {token_id} is soulbound and cannot be transferred")

    # ─── reads ───────────────────────────────────────────────────────────

    def get_record(self, token_id: int) -> AttestationRecord:
        """Raises NotFound if ``token_id`` was never issued or has been revoked."""
        token_id = _token_id(token_id)
        record = self.storage.get(f"{RECORD_PREFIX}{token_id}")
        if record is None:
            raise NotFound(f"Token {token_id} does not exist")
        return record

    def exists(self, token_id: int) -> bool:
        try:
            self.get_record(token_id)
        except NotFound:
            return False
        return True

    def owner_of(self, token_id: int) -> str:
        return self.get_record(token_id).owner_address

    def tokens_of(self, address: str) -> List[int]:
        address = _address(address, "address")
        return sorted(self.storage.get(OWNER_PREFIX + address) or ())

    def balance_of(self, address: str) -> int:
        return len(self.tokens_of(address))

    def total_supply(self) -> int:
        return len(self.storage.keys(RECORD_PREFIX))
