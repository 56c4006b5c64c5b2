"""
Rank-1 constraint systems over the BN254 scalar field.

A constraint is ``<A, w> * <B, w> = <C, w>`` for sparse linear combinations
A, B, C over the wire vector ``w``. Wire 0 is the constant one, wires
``1..num_public`` are the public inputs, the rest are private.

A :class:`ConstraintSystem` runs in one of two modes:

    - shape mode (``witness=False``): wires carry no values; the constraint
      list is what key generation consumes
    - witness mode: every allocated wire gets a value and every constraint is
      checked the moment it is added, so the first unsatisfied constraint
      surfaces as ConstraintUnsatisfied carrying its label

Gadgets are plain functions taking the system as first argument.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union

from zkpsbt.hardening import FIELD_MODULUS, ConstraintUnsatisfied
from zkpsbt.poseidon import params_for, permute

R = FIELD_MODULUS

Operand = Union["LinearCombination", int]


# =============================================================================
# LINEAR COMBINATIONS
# =============================================================================

class LinearCombination:
    """Sparse map from wire index to coefficient, coefficients kept reduced."""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Dict[int, int]] = None):
        self.terms: Dict[int, int] = {}
        for index, coeff in (terms or {}).items():
            coeff %= R
            if coeff:
                self.terms[index] = coeff

    @classmethod
    def constant(cls, value: int) -> 'LinearCombination':
        return cls({0: value})

    @classmethod
    def wire(cls, index: int) -> 'LinearCombination':
        return cls({index: 1})

    @staticmethod
    def lift(value: Operand) -> 'LinearCombination':
        if isinstance(value, LinearCombination):
            return value
        return LinearCombination.constant(value)

    def __add__(self, other: Operand) -> 'LinearCombination':
        other = LinearCombination.lift(other)
        terms = dict(self.terms)
        for index, coeff in other.terms.items():
            terms[index] = terms.get(index, 0) + coeff
        return LinearCombination(terms)

    __radd__ = __add__

    def __neg__(self) -> 'LinearCombination':
        return LinearCombination({i: -c for i, c in self.terms.items()})

    def __sub__(self, other: Operand) -> 'LinearCombination':
        return self + (-LinearCombination.lift(other))

    def __rsub__(self, other: Operand) -> 'LinearCombination':
        return LinearCombination.lift(other) + (-self)

    def __mul__(self, scalar: int) -> 'LinearCombination':
        if isinstance(scalar, LinearCombination):
            raise TypeError("Product of two linear combinations needs a constraint; use mul()")
        return LinearCombination({i: c * scalar for i, c in self.terms.items()})

    __rmul__ = __mul__

    @property
    def is_constant(self) -> bool:
        return all(i == 0 for i in self.terms)

    def evaluate(self, witness: Sequence[int]) -> int:
        return sum(c * witness[i] for i, c in self.terms.items()) % R

    def __repr__(self) -> str:
        return f"LinearCombination({self.terms})"


@dataclass(frozen=True)
class Constraint:
    a: Dict[int, int]
    b: Dict[int, int]
    c: Dict[int, int]
    label: str


# =============================================================================
# CONSTRAINT SYSTEM
# =============================================================================

class ConstraintSystem:
    """Builder for an R1CS instance, optionally carrying a witness."""

    def __init__(self, witness: bool = False):
        self.names: List[str] = ["one"]
        self.constraints: List[Constraint] = []
        self.num_public = 0
        self.values: Optional[List[int]] = [1] if witness else None
        self._private_started = False

    @property
    def has_witness(self) -> bool:
        return self.values is not None

    @property
    def num_variables(self) -> int:
        return len(self.names)

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    @property
    def public_values(self) -> List[int]:
        if self.values is None:
            raise ValueError("Constraint system has no witness")
        return self.values[1:1 + self.num_public]

    def _alloc(self, name: str, value: Optional[int]) -> LinearCombination:
        index = len(self.names)
        self.names.append(name)
        if self.values is not None:
            if value is None:
                raise ValueError(f"Wire '{name}' needs a value in witness mode")
            self.values.append(value % R)
        return LinearCombination.wire(index)

    def public_input(self, name: str, value: Optional[int] = None) -> LinearCombination:
        if self._private_started:
            raise ValueError("Public inputs must be allocated before private wires")
        self.num_public += 1
        return self._alloc(name, value)

    def private_input(self, name: str, value: Optional[int] = None) -> LinearCombination:
        self._private_started = True
        return self._alloc(name, value)

    def value_of(self, lc: Operand) -> Optional[int]:
        """Evaluate ``lc`` against the witness; None in shape mode."""
        if self.values is None:
            return None
        return LinearCombination.lift(lc).evaluate(self.values)

    def enforce(self, a: Operand, b: Operand, c: Operand, label: str) -> None:
        a, b, c = (LinearCombination.lift(x) for x in (a, b, c))
        if self.values is not None:
            lhs = a.evaluate(self.values) * b.evaluate(self.values) % R
            if lhs != c.evaluate(self.values):
                raise ConstraintUnsatisfied(label)
        self.constraints.append(Constraint(a.terms, b.terms, c.terms, label))

    def is_satisfied(self) -> bool:
        """Re-check every constraint against the witness."""
        if self.values is None:
            raise ValueError("Constraint system has no witness")
        w = self.values
        for con in self.constraints:
            a = LinearCombination(con.a).evaluate(w)
            b = LinearCombination(con.b).evaluate(w)
            if a * b % R != LinearCombination(con.c).evaluate(w):
                return False
        return True


# =============================================================================
# GADGETS
# =============================================================================

def mul(cs: ConstraintSystem, x: Operand, y: Operand, label: str) -> LinearCombination:
    """New wire constrained to ``x * y``."""
    vx, vy = cs.value_of(x), cs.value_of(y)
    out = cs.private_input(label, None if vx is None else vx * vy)
    cs.enforce(x, y, out, label)
    return out


def assert_equal(cs: ConstraintSystem, x: Operand, y: Operand, label: str) -> None:
    cs.enforce(LinearCombination.lift(x) - y, 1, 0, label)


def num2bits(cs: ConstraintSystem, x: Operand, bits: int, label: str) -> List[LinearCombination]:
    """
    Decompose ``x`` into ``bits`` boolean wires, little-endian.

    Only satisfiable when ``0 <= x < 2**bits`` as an integer; the final
    recomposition constraint carries ``label``.
    """
    value = cs.value_of(x)
    out = []
    acc = LinearCombination()
    for i in range(bits):
        bit = cs.private_input(f"{label}.bit{i}", None if value is None else (value >> i) & 1)
        cs.enforce(bit, bit - 1, 0, f"{label}.bit{i}")
        acc = acc + (1 << i) * bit
        out.append(bit)
    cs.enforce(acc, 1, x, label)
    return out


def pow5(cs: ConstraintSystem, x: Operand, label: str) -> LinearCombination:
    x2 = mul(cs, x, x, f"{label}.sq")
    x4 = mul(cs, x2, x2, f"{label}.quad")
    return mul(cs, x4, x, label)


def poseidon(cs: ConstraintSystem, inputs: Iterable[Operand], label: str = "poseidon") -> LinearCombination:
    """
    In-circuit Poseidon, sharing :func:`zkpsbt.poseidon.permute` with the
    native hash. Costs three constraints per S-box.
    """
    inputs = [LinearCombination.lift(x) for x in inputs]
    params = params_for(len(inputs))
    counter = iter(range(params.t * params.total_rounds))

    def sbox(s: LinearCombination) -> LinearCombination:
        return pow5(cs, s, f"{label}.sbox{next(counter)}")

    state = [LinearCombination()] + inputs
    return permute(state, params, sbox, lambda s: s)[0]
