"""
Credit profile commitments.

A commitment is ``Poseidon(ownerAddress, creditScore, income, reportDate)``
over the BN254 scalar field. The field order and the bit width of every
input are fixed here and nowhere else; the issuance side and the circuit
both read them from this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple, Union

from zkpsbt.hardening import CryptoUtils, ValidationError, Validators
from zkpsbt.observability import SBTLayer, get_logger, timed_operation
from zkpsbt.poseidon import poseidon_hash

logger = get_logger("commitment", SBTLayer.HASH)

ADDRESS_BITS = 160
INCOME_BITS = 64
REPORT_DATE_BITS = 64
DEFAULT_SCORE_BITS = 32

# Canonical hash input order
PROFILE_FIELDS = ("owner_address", "credit_score", "income", "report_date")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def score_bits() -> int:
    """Bit width shared by creditScore and threshold."""
    from zkpsbt.config import get_config
    return get_config().circuit.score_bits.get()


@dataclass(frozen=True)
class Profile:
    """Plaintext credit profile. Never persisted."""
    owner_address: str
    credit_score: int
    income: int
    report_date: int  # milliseconds since the Unix epoch

    def validate(self, bits: Optional[int] = None) -> 'Profile':
        """
        Check every field against its canonical width.

        Returns a copy with the address in checksummed form.
        """
        bits = bits or score_bits()
        address = Validators.validate_address(self.owner_address, "owner_address").unwrap()
        Validators.validate_uint(self.credit_score, "credit_score", bits).raise_if_invalid()
        Validators.validate_uint(self.income, "income", INCOME_BITS).raise_if_invalid()
        Validators.validate_uint(self.report_date, "report_date", REPORT_DATE_BITS).raise_if_invalid()
        return Profile(address, self.credit_score, self.income, self.report_date)

    def field_elements(self) -> Tuple[int, int, int, int]:
        """The four hash inputs in canonical order."""
        return (
            CryptoUtils.address_to_int(self.owner_address),
            self.credit_score,
            self.income,
            self.report_date,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_address": self.owner_address,
            "credit_score": self.credit_score,
            "income": self.income,
            "report_date": self.report_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        missing = [k for k in PROFILE_FIELDS if k not in data]
        if missing:
            raise ValidationError("profile", f"Missing fields: {missing}", data)
        return cls(
            owner_address=data["owner_address"],
            credit_score=data["credit_score"],
            income=data["income"],
            report_date=data["report_date"],
        )


def report_date_from_datetime(moment: datetime) -> int:
    """Milliseconds since the epoch; naive datetimes are read as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def hash_fields(owner_address: int, credit_score: int, income: int, report_date: int) -> int:
    """Commitment over already range-checked field elements."""
    return poseidon_hash([owner_address, credit_score, income, report_date])


@timed_operation(logger, "compute_commitment")
def compute_commitment(profile: Profile) -> int:
    """Validate ``profile`` and return its commitment."""
    return hash_fields(*profile.validate().field_elements())


def commitment_hex(value: int) -> str:
    """On-ledger rendering of a commitment."""
    return CryptoUtils.field_to_hex(value)


def parse_commitment(value: Union[int, str], field_name: str = "commitment") -> int:
    """Parse a commitment from int, hex or decimal string."""
    return Validators.validate_field_element(value, field_name).unwrap()
