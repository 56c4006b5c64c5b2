"""
ZKP-SBT Validation and Hardening Module

Error taxonomy and input validation for the soulbound credit token core.

1. Exception hierarchy shared by the ledger, codec, circuit and verifier
2. Input validators for addresses, field elements and bounded integers
3. Constant-time comparison helpers

Security Model:
    - All inputs are untrusted until validated
    - Validation happens before any state mutation
    - Cryptographic failures are never reported as a wrong plaintext
      or a valid-looking proof

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from eth_utils import is_hex_address, to_checksum_address


# BN254 scalar field order (also known as Fr)
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617


# =============================================================================
# ERROR TYPES
# =============================================================================

class SoulboundError(Exception):
    """Base exception for every failure raised by the core."""

    error_code = "SBT_ERROR"


class ValidationError(SoulboundError):
    """Malformed input rejected before it reaches hashing, storage or proving."""

    error_code = "VALIDATION_FAILED"

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class Unauthorized(SoulboundError):
    """Caller lacks the capability required for the operation."""

    error_code = "UNAUTHORIZED"


class NotFound(SoulboundError):
    """Operation referenced a token id that does not exist."""

    error_code = "NOT_FOUND"


class TransferNotAllowed(SoulboundError):
    """Soulbound tokens cannot change hands."""

    error_code = "TRANSFER_NOT_ALLOWED"


class IntegrityError(SoulboundError):
    """Ciphertext failed authentication (tampered, truncated or wrong key)."""

    error_code = "INTEGRITY_ERROR"


class ConstraintUnsatisfied(SoulboundError):
    """Witness generation hit a constraint the private inputs do not satisfy."""

    error_code = "CONSTRAINT_UNSATISFIED"

    def __init__(self, constraint: str, message: str = ""):
        self.constraint = constraint
        detail = f": {message}" if message else ""
        super().__init__(f"Constraint '{constraint}' unsatisfied{detail}")


class InvalidProof(SoulboundError):
    """The proof does not verify against the verification key."""

    error_code = "INVALID_PROOF"


class MalformedProof(InvalidProof):
    """Proof or public signals have the wrong shape or out-of-range values."""

    error_code = "MALFORMED_PROOF"


class CommitmentMismatch(SoulboundError):
    """Proof is bound to a different commitment or owner than the ledger entry."""

    error_code = "COMMITMENT_MISMATCH"


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise the first ValidationError if validation failed."""
        if not self.is_valid:
            raise self.errors[0]

    def unwrap(self) -> Any:
        """Return the sanitized value, raising if validation failed."""
        self.raise_if_invalid()
        return self.sanitized_value

    @classmethod
    def success(cls, sanitized_value: Any = None) -> 'ValidationResult':
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> 'ValidationResult':
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    HEX_PATTERN = re.compile(r'^(0x)?[0-9a-fA-F]+$')
    DECIMAL_PATTERN = re.compile(r'^[0-9]+$')

    @classmethod
    def validate_address(cls, value: Any, field_name: str = "address") -> ValidationResult:
        """Validate an Ethereum address, returning its checksummed form."""
        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected string, got {type(value).__name__}", value)
            ])
        sanitized = value.strip()
        if not is_hex_address(sanitized):
            return ValidationResult.failure([
                ValidationError(field_name, "Must be valid Ethereum address (0x + 40 hex)", value)
            ])
        return ValidationResult.success(to_checksum_address(sanitized))

    @classmethod
    def validate_uint(
        cls,
        value: Any,
        field_name: str,
        bits: int,
    ) -> ValidationResult:
        """Validate a non-negative integer that fits in ``bits`` bits."""
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])
        if value < 0:
            return ValidationResult.failure([
                ValidationError(field_name, "Must be non-negative", value)
            ])
        if value.bit_length() > bits:
            return ValidationResult.failure([
                ValidationError(field_name, f"Exceeds {bits}-bit bound", value)
            ])
        return ValidationResult.success(value)

    @classmethod
    def validate_field_element(
        cls,
        value: Any,
        field_name: str = "field_element",
    ) -> ValidationResult:
        """
        Validate a BN254 scalar field element.

        Accepts ints, ``0x`` hex strings and decimal strings. Values must lie
        in ``[0, FIELD_MODULUS)``; no silent reduction is performed.
        """
        parsed: Optional[int] = None
        if isinstance(value, bool):
            parsed = None
        elif isinstance(value, int):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            if text.lower().startswith("0x") and cls.HEX_PATTERN.match(text):
                parsed = int(text, 16)
            elif cls.DECIMAL_PATTERN.match(text):
                parsed = int(text)

        if parsed is None:
            return ValidationResult.failure([
                ValidationError(field_name, "Expected integer, 0x-hex or decimal string", value)
            ])
        if not 0 <= parsed < FIELD_MODULUS:
            return ValidationResult.failure([
                ValidationError(field_name, "Outside the BN254 scalar field", value)
            ])
        return ValidationResult.success(parsed)

    @classmethod
    def validate_bytes(
        cls,
        value: Any,
        field_name: str,
        min_length: int = 1,
    ) -> ValidationResult:
        """Validate an opaque byte payload given as bytes or hex string."""
        data: Optional[bytes] = None
        if isinstance(value, (bytes, bytearray)):
            data = bytes(value)
        elif isinstance(value, str):
            text = value.strip()
            if text.startswith("0x"):
                text = text[2:]
            try:
                data = bytes.fromhex(text)
            except ValueError:
                data = None

        if data is None:
            return ValidationResult.failure([
                ValidationError(field_name, "Expected bytes or hex string", value)
            ])
        if len(data) < min_length:
            return ValidationResult.failure([
                ValidationError(field_name, f"Too short (min {min_length} bytes)", value)
            ])
        return ValidationResult.success(data)


# =============================================================================
# CRYPTOGRAPHIC UTILITIES
# =============================================================================

class CryptoUtils:
    """Cryptographic utility functions."""

    @staticmethod
    def field_to_hex(value: int) -> str:
        """Render a field element the way commitments are published (``0x`` + minimal hex)."""
        return hex(value)

    @staticmethod
    def address_to_int(address: Union[str, int]) -> int:
        """Interpret an Ethereum address as a 160-bit big-endian integer."""
        if isinstance(address, int):
            return address
        return int(address, 16)

    @staticmethod
    def int_to_address(value: int) -> str:
        """Inverse of :meth:`address_to_int`, checksummed."""
        return to_checksum_address("0x" + format(value, "040x"))
