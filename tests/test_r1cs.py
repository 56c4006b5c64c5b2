"""
Constraint System Tests

Linear combination arithmetic, witness checking and the gadget library.
"""

import pytest

from zkpsbt.hardening import FIELD_MODULUS, ConstraintUnsatisfied
from zkpsbt.poseidon import poseidon_hash
from zkpsbt.r1cs import (
    ConstraintSystem,
    LinearCombination,
    assert_equal,
    mul,
    num2bits,
    poseidon,
    pow5,
)

R = FIELD_MODULUS


class TestLinearCombination:
    """Tests for sparse linear combination arithmetic."""

    def test_coefficients_reduced_and_zeros_dropped(self):
        lc = LinearCombination({1: R + 3, 2: R, 3: -1})
        assert lc.terms == {1: 3, 3: R - 1}

    def test_add_and_sub(self):
        x = LinearCombination.wire(1)
        y = LinearCombination.wire(2)
        assert (x + y - x).terms == {2: 1}
        assert (x + 5).terms == {1: 1, 0: 5}
        assert (5 + x).terms == {1: 1, 0: 5}
        assert (5 - x).terms == {0: 5, 1: R - 1}

    def test_scalar_mul(self):
        x = LinearCombination.wire(1)
        assert (3 * x).terms == {1: 3}
        assert (x * 3).terms == {1: 3}
        assert (x * 0).terms == {}

    def test_product_of_combinations_refused(self):
        x = LinearCombination.wire(1)
        with pytest.raises(TypeError):
            x * x

    def test_evaluate(self):
        lc = 2 * LinearCombination.wire(1) + LinearCombination.wire(2) + 7
        assert lc.evaluate([1, 10, 100]) == 127
        assert (-lc).evaluate([1, 10, 100]) == R - 127

    def test_is_constant(self):
        assert LinearCombination.constant(4).is_constant
        assert LinearCombination().is_constant
        assert not LinearCombination.wire(1).is_constant


class TestConstraintSystem:
    """Tests for wire allocation and constraint checking."""

    def test_wire_layout(self):
        cs = ConstraintSystem()
        a = cs.public_input("a")
        b = cs.public_input("b")
        c = cs.private_input("c")
        assert cs.names == ["one", "a", "b", "c"]
        assert cs.num_public == 2
        assert cs.num_variables == 4
        assert (a.terms, b.terms, c.terms) == ({1: 1}, {2: 1}, {3: 1})
        assert not cs.has_witness

    def test_public_after_private_refused(self):
        cs = ConstraintSystem()
        cs.private_input("x")
        with pytest.raises(ValueError):
            cs.public_input("y")

    def test_witness_mode_needs_values(self):
        cs = ConstraintSystem(witness=True)
        with pytest.raises(ValueError):
            cs.public_input("x")

    def test_shape_mode_records_without_checking(self):
        cs = ConstraintSystem()
        x = cs.private_input("x")
        cs.enforce(x, x, 5, "anything")
        assert cs.num_constraints == 1
        assert cs.value_of(x) is None
        with pytest.raises(ValueError):
            cs.is_satisfied()

    def test_witness_mode_checks_immediately(self):
        cs = ConstraintSystem(witness=True)
        x = cs.public_input("x", 3)
        cs.enforce(x, x, 9, "square")
        with pytest.raises(ConstraintUnsatisfied) as exc:
            cs.enforce(x, x, 10, "bad_square")
        assert exc.value.constraint == "bad_square"
        assert cs.num_constraints == 1
        assert cs.is_satisfied()

    def test_values_reduced(self):
        cs = ConstraintSystem(witness=True)
        x = cs.public_input("x", -1)
        assert cs.value_of(x) == R - 1
        assert cs.public_values == [R - 1]

    def test_is_satisfied_detects_altered_witness(self):
        cs = ConstraintSystem(witness=True)
        x = cs.public_input("x", 3)
        y = mul(cs, x, x, "sq")
        assert cs.value_of(y) == 9
        cs.values[2] = 10
        assert not cs.is_satisfied()


class TestGadgets:
    """Tests for the gadget library."""

    def test_mul(self):
        cs = ConstraintSystem(witness=True)
        x = cs.public_input("x", 6)
        y = cs.private_input("y", 7)
        assert cs.value_of(mul(cs, x, y, "xy")) == 42

    def test_assert_equal(self):
        cs = ConstraintSystem(witness=True)
        x = cs.public_input("x", 5)
        y = cs.private_input("y", 5)
        z = cs.private_input("z", 6)
        assert_equal(cs, x, y, "xy")
        with pytest.raises(ConstraintUnsatisfied) as exc:
            assert_equal(cs, x, z, "xz")
        assert exc.value.constraint == "xz"

    def test_pow5(self):
        cs = ConstraintSystem(witness=True)
        x = cs.private_input("x", 3)
        out = pow5(cs, x, "p")
        assert cs.value_of(out) == 243
        assert [c.label for c in cs.constraints] == ["p.sq", "p.quad", "p"]

    @pytest.mark.parametrize("value", [0, 1, 5, 255])
    def test_num2bits_in_range(self, value):
        cs = ConstraintSystem(witness=True)
        x = cs.private_input("x", value)
        bits = num2bits(cs, x, 8, "range")
        assert [cs.value_of(b) for b in bits] == [(value >> i) & 1 for i in range(8)]
        assert cs.num_constraints == 9
        assert cs.constraints[-1].label == "range"

    @pytest.mark.parametrize("value", [256, 1000, -1])
    def test_num2bits_out_of_range(self, value):
        cs = ConstraintSystem(witness=True)
        x = cs.private_input("x", value)
        with pytest.raises(ConstraintUnsatisfied) as exc:
            num2bits(cs, x, 8, "range")
        assert exc.value.constraint == "range"

    def test_num2bits_compares(self):
        """a - b fits in n bits exactly when a >= b for n-bit a, b."""
        for a, b, ok in [(45, 40, True), (40, 40, True), (40, 45, False)]:
            cs = ConstraintSystem(witness=True)
            x = cs.private_input("a", a)
            y = cs.private_input("b", b)
            if ok:
                num2bits(cs, x - y, 8, "gte")
            else:
                with pytest.raises(ConstraintUnsatisfied):
                    num2bits(cs, x - y, 8, "gte")

    @pytest.mark.parametrize("inputs", [[1, 2], [0, 0, 0, 0], [7, R - 1, 123456789, 2 ** 160 - 1]])
    def test_poseidon_matches_native(self, inputs):
        cs = ConstraintSystem(witness=True)
        wires = [cs.private_input(f"in{i}", v) for i, v in enumerate(inputs)]
        out = poseidon(cs, wires)
        assert cs.value_of(out) == poseidon_hash(inputs)
        assert cs.is_satisfied()

    def test_poseidon_constraint_count(self):
        """Three constraints per S-box: t per full round, one per partial round."""
        cs = ConstraintSystem()
        wires = [cs.private_input(f"in{i}") for i in range(4)]
        poseidon(cs, wires, label="h")
        t = 5
        expected_sboxes = 8 * t + 60
        assert cs.num_constraints == 3 * expected_sboxes
        assert cs.constraints[0].label == "h.sbox0.sq"
