"""
Groth16 over BN254.

Curve arithmetic and pairings come from ``py_ecc.optimized_bn128``; this
module supplies the pieces around them:

    - EvaluationDomain: radix-2 NTT over the scalar field, used to build the
      quotient polynomial h(X) = (A(X)B(X) - C(X)) / Z(X) on a coset
    - FixedBaseTable: windowed precomputation for the many scalar
      multiplications of one generator performed during setup
    - multi_scalar_mul: bucket-method multi-scalar multiplication for proving
    - typed boundary encodings (G1Point, G2Point, Proof, keys) with integer
      affine coordinates; the point at infinity is encoded as all zeros

Setup is single-party: the toxic waste is sampled locally and dropped when
``setup`` returns.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import math
import secrets
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    FQ12,
    G1,
    G2,
    Z1,
    Z2,
    add,
    b,
    b2,
    curve_order,
    double,
    field_modulus,
    final_exponentiate,
    is_inf,
    is_on_curve,
    multiply,
    neg,
    normalize,
    pairing,
)

from zkpsbt.hardening import FIELD_MODULUS, ConstraintUnsatisfied, MalformedProof, ValidationError
from zkpsbt.observability import SBTLayer, get_logger, timed_operation
from zkpsbt.r1cs import ConstraintSystem, LinearCombination
from zkpsbt.schema import validate_against_schema

logger = get_logger("groth16", SBTLayer.PROVER)

R = FIELD_MODULUS
Q = field_modulus

PROTOCOL = "groth16"
CURVE = "bn128"


# =============================================================================
# EVALUATION DOMAIN
# =============================================================================

def _two_adicity() -> Tuple[int, int]:
    odd, s = R - 1, 0
    while odd % 2 == 0:
        odd //= 2
        s += 1
    return s, odd


def _find_non_residue() -> int:
    g = 2
    while pow(g, (R - 1) // 2, R) != R - 1:
        g += 1
    return g


TWO_ADICITY, _ODD_PART = _two_adicity()
NON_RESIDUE = _find_non_residue()
ROOT_OF_UNITY = pow(NON_RESIDUE, _ODD_PART, R)  # order exactly 2**TWO_ADICITY


def _inv(x: int) -> int:
    return pow(x, R - 2, R)


def _bit_reverse(values: List[int]) -> List[int]:
    n = len(values)
    bits = n.bit_length() - 1
    out = list(values)
    for i in range(n):
        j = int(format(i, f"0{bits}b")[::-1], 2) if bits else 0
        if i < j:
            out[i], out[j] = out[j], out[i]
    return out


class EvaluationDomain:
    """Multiplicative subgroup of size 2**k plus a coset shifted by a non-residue."""

    def __init__(self, min_size: int):
        size, log_size = 1, 0
        while size < min_size:
            size *= 2
            log_size += 1
        if log_size > TWO_ADICITY:
            raise ValueError(f"Domain of size {size} exceeds the field's 2-adicity")

        self.size = size
        self.omega = pow(ROOT_OF_UNITY, 1 << (TWO_ADICITY - log_size), R)
        self.omega_inv = _inv(self.omega)
        self.size_inv = _inv(size)
        self.shift = NON_RESIDUE
        self.shift_inv = _inv(NON_RESIDUE)

    def _ntt(self, values: Sequence[int], root: int) -> List[int]:
        n = self.size
        a = _bit_reverse(list(values) + [0] * (n - len(values)))
        m = 2
        while m <= n:
            half = m // 2
            w_m = pow(root, n // m, R)
            for k in range(0, n, m):
                w = 1
                for j in range(half):
                    t = w * a[k + j + half] % R
                    u = a[k + j]
                    a[k + j] = (u + t) % R
                    a[k + j + half] = (u - t) % R
                    w = w * w_m % R
            m *= 2
        return a

    def ntt(self, coeffs: Sequence[int]) -> List[int]:
        """Coefficients to evaluations at omega**i."""
        return self._ntt(coeffs, self.omega)

    def intt(self, evals: Sequence[int]) -> List[int]:
        """Evaluations at omega**i to coefficients."""
        return [v * self.size_inv % R for v in self._ntt(evals, self.omega_inv)]

    def coset_ntt(self, coeffs: Sequence[int]) -> List[int]:
        shifted, g = [], 1
        for c in coeffs:
            shifted.append(c * g % R)
            g = g * self.shift % R
        return self.ntt(shifted)

    def coset_intt(self, evals: Sequence[int]) -> List[int]:
        coeffs, g = [], 1
        for c in self.intt(evals):
            coeffs.append(c * g % R)
            g = g * self.shift_inv % R
        return coeffs

    def vanishing_at(self, x: int) -> int:
        return (pow(x, self.size, R) - 1) % R

    def lagrange_at(self, tau: int) -> List[int]:
        """L_i(tau) = omega**i * Z(tau) / (n * (tau - omega**i)) for every i."""
        z = self.vanishing_at(tau)
        if z == 0:
            raise ValueError("tau lies inside the evaluation domain")
        scale = z * self.size_inv % R
        out, w = [], 1
        for _ in range(self.size):
            out.append(scale * w % R * _inv((tau - w) % R) % R)
            w = w * self.omega % R
        return out


# =============================================================================
# GROUP HELPERS
# =============================================================================

PyEccPoint = Tuple[Any, Any, Any]


class FixedBaseTable:
    """Windowed multiples ``d * 2**(w*k) * base`` for fast fixed-base multiplication."""

    def __init__(self, base: PyEccPoint, zero: PyEccPoint, window: int = 4):
        self.window = window
        self.mask = (1 << window) - 1
        self.zero = zero
        self.rows: List[List[PyEccPoint]] = []

        point = base
        for _ in range(math.ceil(R.bit_length() / window)):
            row = [point]
            for _ in range(self.mask - 1):
                row.append(add(row[-1], point))
            self.rows.append(row)
            for _ in range(window):
                point = double(point)

    def mul(self, scalar: int) -> PyEccPoint:
        scalar %= R
        acc = None
        k = 0
        while scalar:
            digit = scalar & self.mask
            if digit:
                term = self.rows[k][digit - 1]
                acc = term if acc is None else add(acc, term)
            scalar >>= self.window
            k += 1
        return self.zero if acc is None else acc


def multi_scalar_mul(points: Sequence[PyEccPoint], scalars: Sequence[int], zero: PyEccPoint) -> PyEccPoint:
    """Sum of ``s_i * P_i`` by Pippenger's bucket method."""
    pairs = [(p, s % R) for p, s in zip(points, scalars) if s % R and not is_inf(p)]
    if not pairs:
        return zero

    c = 1 if len(pairs) < 4 else max(2, int(math.log2(len(pairs))) - 2)
    mask = (1 << c) - 1
    max_bits = max(s.bit_length() for _, s in pairs)

    result = None
    for start in reversed(range(0, max_bits, c)):
        if result is not None:
            for _ in range(c):
                result = double(result)

        buckets: List[Optional[PyEccPoint]] = [None] * mask
        for p, s in pairs:
            idx = (s >> start) & mask
            if idx:
                slot = buckets[idx - 1]
                buckets[idx - 1] = p if slot is None else add(slot, p)

        running = window_sum = None
        for bucket in reversed(buckets):
            if bucket is not None:
                running = bucket if running is None else add(running, bucket)
            if running is not None:
                window_sum = running if window_sum is None else add(window_sum, running)

        if window_sum is not None:
            result = window_sum if result is None else add(result, window_sum)

    return zero if result is None else result


# =============================================================================
# BOUNDARY ENCODINGS
# =============================================================================

def _coord(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise MalformedProof(f"{name}: expected integer coordinate")
    if isinstance(value, str):
        if not value.isdigit():
            raise MalformedProof(f"{name}: expected decimal string, got {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise MalformedProof(f"{name}: expected integer coordinate")
    if not 0 <= value < Q:
        raise MalformedProof(f"{name}: coordinate outside the base field")
    return value


@dataclass(frozen=True)
class G1Point:
    """Affine point on E(Fq); (0, 0) encodes infinity."""
    x: int
    y: int

    @property
    def is_infinity(self) -> bool:
        return self.x == 0 and self.y == 0

    @classmethod
    def from_py_ecc(cls, pt: Optional[PyEccPoint]) -> 'G1Point':
        if pt is None or is_inf(pt):
            return cls(0, 0)
        x, y = normalize(pt)
        return cls(int(x), int(y))

    def to_py_ecc(self) -> PyEccPoint:
        if self.is_infinity:
            return Z1
        return (FQ(self.x), FQ(self.y), FQ.one())

    def validate(self, name: str = "g1") -> 'G1Point':
        _coord(self.x, f"{name}.x")
        _coord(self.y, f"{name}.y")
        if not is_on_curve(self.to_py_ecc(), b):
            raise MalformedProof(f"{name}: point is not on the curve")
        return self

    def to_bytes(self) -> bytes:
        return self.x.to_bytes(32, "big") + self.y.to_bytes(32, "big")

    @classmethod
    def from_bytes(cls, data: bytes) -> 'G1Point':
        if len(data) != 64:
            raise MalformedProof(f"G1 encoding must be 64 bytes, got {len(data)}")
        return cls(int.from_bytes(data[:32], "big"), int.from_bytes(data[32:], "big"))

    def to_list(self) -> List[str]:
        return [str(self.x), str(self.y)]

    @classmethod
    def from_list(cls, values: Sequence[Any], name: str = "g1") -> 'G1Point':
        if len(values) != 2:
            raise MalformedProof(f"{name}: expected 2 coordinates")
        return cls(_coord(values[0], f"{name}.x"), _coord(values[1], f"{name}.y"))

    def to_solidity(self) -> Tuple[int, int]:
        return (self.x, self.y)


@dataclass(frozen=True)
class G2Point:
    """
    Affine point on the twist E'(Fq2); each coordinate is (c0, c1) meaning
    c0 + c1*i. All zeros encodes infinity.
    """
    x: Tuple[int, int]
    y: Tuple[int, int]

    @property
    def is_infinity(self) -> bool:
        return self.x == (0, 0) and self.y == (0, 0)

    @classmethod
    def from_py_ecc(cls, pt: Optional[PyEccPoint]) -> 'G2Point':
        if pt is None or is_inf(pt):
            return cls((0, 0), (0, 0))
        x, y = normalize(pt)
        return cls(
            (int(x.coeffs[0]), int(x.coeffs[1])),
            (int(y.coeffs[0]), int(y.coeffs[1])),
        )

    def to_py_ecc(self) -> PyEccPoint:
        if self.is_infinity:
            return Z2
        return (FQ2(list(self.x)), FQ2(list(self.y)), FQ2.one())

    def validate(self, name: str = "g2") -> 'G2Point':
        for label, pair in (("x", self.x), ("y", self.y)):
            if len(pair) != 2:
                raise MalformedProof(f"{name}.{label}: expected 2 coefficients")
            for i, c in enumerate(pair):
                _coord(c, f"{name}.{label}{i}")
        pt = self.to_py_ecc()
        if not is_on_curve(pt, b2):
            raise MalformedProof(f"{name}: point is not on the twist")
        if not is_inf(multiply(pt, curve_order)):
            raise MalformedProof(f"{name}: point is outside the prime-order subgroup")
        return self

    def to_bytes(self) -> bytes:
        return b"".join(c.to_bytes(32, "big") for c in (*self.x, *self.y))

    @classmethod
    def from_bytes(cls, data: bytes) -> 'G2Point':
        if len(data) != 128:
            raise MalformedProof(f"G2 encoding must be 128 bytes, got {len(data)}")
        c = [int.from_bytes(data[i:i + 32], "big") for i in range(0, 128, 32)]
        return cls((c[0], c[1]), (c[2], c[3]))

    def to_list(self) -> List[List[str]]:
        return [[str(c) for c in self.x], [str(c) for c in self.y]]

    @classmethod
    def from_list(cls, values: Sequence[Sequence[Any]], name: str = "g2") -> 'G2Point':
        if len(values) != 2 or any(len(v) != 2 for v in values):
            raise MalformedProof(f"{name}: expected [[x0, x1], [y0, y1]]")
        (x0, x1), (y0, y1) = values
        return cls(
            (_coord(x0, f"{name}.x0"), _coord(x1, f"{name}.x1")),
            (_coord(y0, f"{name}.y0"), _coord(y1, f"{name}.y1")),
        )

    def to_solidity(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """EVM precompile order: imaginary part first."""
        return ((self.x[1], self.x[0]), (self.y[1], self.y[0]))


def _points_from_list(values: Sequence[Any], cls: type, name: str) -> List[Any]:
    return [cls.from_list(v, f"{name}[{i}]") for i, v in enumerate(values)]


def _require_schema(data: Any, schema_name: str, error: type, subject: str) -> None:
    errors = validate_against_schema(data, schema_name)
    if errors:
        if error is ValidationError:
            raise ValidationError(subject, "; ".join(errors))
        raise error(f"{subject}: " + "; ".join(errors))


@dataclass(frozen=True)
class Proof:
    a: G1Point
    b: G2Point
    c: G1Point

    def validate(self) -> 'Proof':
        self.a.validate("proof.a")
        self.b.validate("proof.b")
        self.c.validate("proof.c")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": PROTOCOL,
            "curve": CURVE,
            "pi_a": self.a.to_list(),
            "pi_b": self.b.to_list(),
            "pi_c": self.c.to_list(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Proof':
        _require_schema(data, "proof", MalformedProof, "proof")
        return cls(
            a=G1Point.from_list(data["pi_a"], "pi_a"),
            b=G2Point.from_list(data["pi_b"], "pi_b"),
            c=G1Point.from_list(data["pi_c"], "pi_c"),
        )

    def to_solidity(self) -> Dict[str, Any]:
        return {"a": self.a.to_solidity(), "b": self.b.to_solidity(), "c": self.c.to_solidity()}


@dataclass
class VerificationKey:
    alpha_g1: G1Point
    beta_g2: G2Point
    gamma_g2: G2Point
    delta_g2: G2Point
    ic: List[G1Point]

    @property
    def public_input_count(self) -> int:
        return len(self.ic) - 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": PROTOCOL,
            "curve": CURVE,
            "nPublic": self.public_input_count,
            "vk_alpha_1": self.alpha_g1.to_list(),
            "vk_beta_2": self.beta_g2.to_list(),
            "vk_gamma_2": self.gamma_g2.to_list(),
            "vk_delta_2": self.delta_g2.to_list(),
            "IC": [p.to_list() for p in self.ic],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VerificationKey':
        _require_schema(data, "verification_key", ValidationError, "verification_key")
        vk = cls(
            alpha_g1=G1Point.from_list(data["vk_alpha_1"], "vk_alpha_1"),
            beta_g2=G2Point.from_list(data["vk_beta_2"], "vk_beta_2"),
            gamma_g2=G2Point.from_list(data["vk_gamma_2"], "vk_gamma_2"),
            delta_g2=G2Point.from_list(data["vk_delta_2"], "vk_delta_2"),
            ic=_points_from_list(data["IC"], G1Point, "IC"),
        )
        if vk.public_input_count != data["nPublic"]:
            raise ValidationError("verification_key", "nPublic does not match IC length")
        return vk


@dataclass
class ProvingKey:
    domain_size: int
    num_variables: int
    num_public: int
    alpha_g1: G1Point
    beta_g1: G1Point
    beta_g2: G2Point
    delta_g1: G1Point
    delta_g2: G2Point
    a_query: List[G1Point]
    b_g1_query: List[G1Point]
    b_g2_query: List[G2Point]
    h_query: List[G1Point]
    l_query: List[G1Point]

    @cached_property
    def _projective(self) -> Dict[str, Any]:
        """py_ecc representations, converted once per key."""
        return {
            "a": [p.to_py_ecc() for p in self.a_query],
            "b1": [p.to_py_ecc() for p in self.b_g1_query],
            "b2": [p.to_py_ecc() for p in self.b_g2_query],
            "h": [p.to_py_ecc() for p in self.h_query],
            "l": [p.to_py_ecc() for p in self.l_query],
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": PROTOCOL,
            "curve": CURVE,
            "domain_size": self.domain_size,
            "n_vars": self.num_variables,
            "n_public": self.num_public,
            "alpha_1": self.alpha_g1.to_list(),
            "beta_1": self.beta_g1.to_list(),
            "beta_2": self.beta_g2.to_list(),
            "delta_1": self.delta_g1.to_list(),
            "delta_2": self.delta_g2.to_list(),
            "a_query": [p.to_list() for p in self.a_query],
            "b1_query": [p.to_list() for p in self.b_g1_query],
            "b2_query": [p.to_list() for p in self.b_g2_query],
            "h_query": [p.to_list() for p in self.h_query],
            "l_query": [p.to_list() for p in self.l_query],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProvingKey':
        _require_schema(data, "proving_key", ValidationError, "proving_key")
        pk = cls(
            domain_size=data["domain_size"],
            num_variables=data["n_vars"],
            num_public=data["n_public"],
            alpha_g1=G1Point.from_list(data["alpha_1"], "alpha_1"),
            beta_g1=G1Point.from_list(data["beta_1"], "beta_1"),
            beta_g2=G2Point.from_list(data["beta_2"], "beta_2"),
            delta_g1=G1Point.from_list(data["delta_1"], "delta_1"),
            delta_g2=G2Point.from_list(data["delta_2"], "delta_2"),
            a_query=_points_from_list(data["a_query"], G1Point, "a_query"),
            b_g1_query=_points_from_list(data["b1_query"], G1Point, "b1_query"),
            b_g2_query=_points_from_list(data["b2_query"], G2Point, "b2_query"),
            h_query=_points_from_list(data["h_query"], G1Point, "h_query"),
            l_query=_points_from_list(data["l_query"], G1Point, "l_query"),
        )
        expected = {
            "a_query": pk.num_variables,
            "b1_query": pk.num_variables,
            "b2_query": pk.num_variables,
            "h_query": pk.domain_size - 1,
            "l_query": pk.num_variables - pk.num_public - 1,
        }
        for name, length in expected.items():
            if len(data[name]) != length:
                raise ValidationError("proving_key", f"{name} has {len(data[name])} entries, expected {length}")
        return pk


# =============================================================================
# QAP
# =============================================================================

def _qap_rows(cs: ConstraintSystem) -> List[Tuple[Dict[int, int], Dict[int, int], Dict[int, int]]]:
    """
    Constraint rows plus one ``x_i * 0 = 0`` row per public input (and the
    constant wire), which keeps the public-input polynomials linearly
    independent.
    """
    rows = [(con.a, con.b, con.c) for con in cs.constraints]
    rows.extend(({i: 1}, {}, {}) for i in range(cs.num_public + 1))
    return rows


def _random_scalar() -> int:
    return secrets.randbelow(R - 1) + 1


@timed_operation(logger, "setup")
def setup(cs: ConstraintSystem) -> Tuple[ProvingKey, VerificationKey]:
    """Generate a proving / verification key pair for the circuit shape ``cs``."""
    rows = _qap_rows(cs)
    domain = EvaluationDomain(len(rows))
    n_vars = cs.num_variables
    n_pub = cs.num_public

    tau = _random_scalar()
    while domain.vanishing_at(tau) == 0:
        tau = _random_scalar()
    alpha, beta, gamma, delta = (_random_scalar() for _ in range(4))

    lagrange = domain.lagrange_at(tau)
    u, v, w = [0] * n_vars, [0] * n_vars, [0] * n_vars
    for j, (a_row, b_row, c_row) in enumerate(rows):
        for target, row in ((u, a_row), (v, b_row), (w, c_row)):
            for i, coeff in row.items():
                target[i] = (target[i] + coeff * lagrange[j]) % R

    gamma_inv, delta_inv = _inv(gamma), _inv(delta)
    z_tau = domain.vanishing_at(tau)

    g1 = FixedBaseTable(G1, Z1)
    g2 = FixedBaseTable(G2, Z2)

    def g1_points(scalars: Sequence[int]) -> List[G1Point]:
        return [G1Point.from_py_ecc(g1.mul(s)) for s in scalars]

    combined = [(beta * u[i] + alpha * v[i] + w[i]) % R for i in range(n_vars)]

    power, h_scalars = z_tau * delta_inv % R, []
    for _ in range(domain.size - 1):
        h_scalars.append(power)
        power = power * tau % R

    pk = ProvingKey(
        domain_size=domain.size,
        num_variables=n_vars,
        num_public=n_pub,
        alpha_g1=G1Point.from_py_ecc(g1.mul(alpha)),
        beta_g1=G1Point.from_py_ecc(g1.mul(beta)),
        beta_g2=G2Point.from_py_ecc(g2.mul(beta)),
        delta_g1=G1Point.from_py_ecc(g1.mul(delta)),
        delta_g2=G2Point.from_py_ecc(g2.mul(delta)),
        a_query=g1_points(u),
        b_g1_query=g1_points(v),
        b_g2_query=[G2Point.from_py_ecc(g2.mul(s)) for s in v],
        h_query=g1_points(h_scalars),
        l_query=g1_points([c * delta_inv for c in combined[n_pub + 1:]]),
    )
    vk = VerificationKey(
        alpha_g1=pk.alpha_g1,
        beta_g2=pk.beta_g2,
        gamma_g2=G2Point.from_py_ecc(g2.mul(gamma)),
        delta_g2=pk.delta_g2,
        ic=g1_points([c * gamma_inv for c in combined[:n_pub + 1]]),
    )

    logger.info(
        "Keys generated",
        operation="setup",
        constraints=cs.num_constraints,
        variables=n_vars,
        domain_size=domain.size,
    )
    return pk, vk


# =============================================================================
# PROVE / VERIFY
# =============================================================================

def _quotient(domain: EvaluationDomain, rows: Sequence[Tuple[Dict[int, int], ...]], witness: Sequence[int]) -> List[int]:
    """Coefficients of h(X) = (A(X)B(X) - C(X)) / Z(X)."""
    evals = []
    for matrix in range(3):
        evals.append([LinearCombination(row[matrix]).evaluate(witness) for row in rows])

    a, b_, c = (domain.coset_ntt(domain.intt(e)) for e in evals)
    z_inv = _inv((pow(domain.shift, domain.size, R) - 1) % R)
    h = domain.coset_intt([(x * y - z) * z_inv % R for x, y, z in zip(a, b_, c)])

    if h[-1] != 0:
        raise ConstraintUnsatisfied("qap", "witness does not satisfy the constraint system")
    return h[:-1]


@timed_operation(logger, "prove")
def prove(pk: ProvingKey, cs: ConstraintSystem) -> Proof:
    """Prove knowledge of the witness carried by ``cs``."""
    if not cs.has_witness:
        raise ValidationError("constraint_system", "No witness assigned")
    if cs.num_variables != pk.num_variables or cs.num_public != pk.num_public:
        raise ValidationError("proving_key", "Key was generated for a different circuit")

    rows = _qap_rows(cs)
    domain = EvaluationDomain(len(rows))
    if domain.size != pk.domain_size:
        raise ValidationError("proving_key", "Key was generated for a different circuit")

    witness = cs.values
    h = _quotient(domain, rows, witness)
    q = pk._projective
    r, s = secrets.randbelow(R), secrets.randbelow(R)

    delta_g1 = pk.delta_g1.to_py_ecc()
    a = add(add(pk.alpha_g1.to_py_ecc(), multi_scalar_mul(q["a"], witness, Z1)), multiply(delta_g1, r))
    b1 = add(add(pk.beta_g1.to_py_ecc(), multi_scalar_mul(q["b1"], witness, Z1)), multiply(delta_g1, s))
    b2 = add(
        add(pk.beta_g2.to_py_ecc(), multi_scalar_mul(q["b2"], witness, Z2)),
        multiply(pk.delta_g2.to_py_ecc(), s),
    )

    c = multi_scalar_mul(q["l"], witness[pk.num_public + 1:], Z1)
    c = add(c, multi_scalar_mul(q["h"], h, Z1))
    c = add(c, multiply(a, s))
    c = add(c, multiply(b1, r))
    c = add(c, neg(multiply(delta_g1, r * s % R)))

    return Proof(G1Point.from_py_ecc(a), G2Point.from_py_ecc(b2), G1Point.from_py_ecc(c))


def _public_inputs(vk: VerificationKey, public_signals: Sequence[int]) -> List[int]:
    if len(public_signals) != vk.public_input_count:
        raise MalformedProof(
            f"Expected {vk.public_input_count} public signals, got {len(public_signals)}"
        )
    values = []
    for i, x in enumerate(public_signals):
        if isinstance(x, bool) or not isinstance(x, int) or not 0 <= x < R:
            raise MalformedProof(f"public_signals[{i}] is not a scalar field element")
        values.append(x)
    return values


@timed_operation(logger, "verify")
def verify(vk: VerificationKey, proof: Proof, public_signals: Sequence[int]) -> bool:
    """
    Check ``e(A, B) == e(alpha, beta) * e(vk_x, gamma) * e(C, delta)``.

    Raises MalformedProof for off-curve points or badly shaped signals;
    returns False when the pairing equation fails.
    """
    values = _public_inputs(vk, public_signals)
    proof.validate()

    ic = [p.to_py_ecc() for p in vk.ic]
    vk_x = add(ic[0], multi_scalar_mul(ic[1:], values, Z1))

    product = FQ12.one()
    terms = (
        (proof.b.to_py_ecc(), neg(proof.a.to_py_ecc())),
        (vk.beta_g2.to_py_ecc(), vk.alpha_g1.to_py_ecc()),
        (vk.gamma_g2.to_py_ecc(), vk_x),
        (vk.delta_g2.to_py_ecc(), proof.c.to_py_ecc()),
    )
    for g2_point, g1_point in terms:
        product = product * pairing(g2_point, g1_point, False)

    return final_exponentiate(product) == FQ12.one()
