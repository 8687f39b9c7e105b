import unittest

import jax.numpy as jnp
import pytest

from vqa_weave._math.ops import is_unitary, pauli_operator
from vqa_weave.operation import GateType, Operation


class TestGateType(unittest.TestCase):
    def test_fixed_gates_are_unitary(self) -> None:
        for gate in (
            GateType.I,
            GateType.X,
            GateType.Y,
            GateType.Z,
            GateType.H,
            GateType.S,
            GateType.T,
            GateType.SX,
            GateType.CNOT,
            GateType.CZ,
            GateType.SWAP,
        ):
            self.assertTrue(is_unitary(gate.compute_operator()), gate.name)
            self.assertEqual(gate.num_params, 0)

    def test_rotation_matches_generator(self) -> None:
        theta = 0.37
        for gate in (GateType.RX, GateType.RY, GateType.RZ, GateType.RZZ):
            generator = gate.generator()
            eigvals, eigvecs = jnp.linalg.eigh(generator)
            expected = (eigvecs * jnp.exp(-0.5j * theta * eigvals)) @ jnp.conj(eigvecs).T
            self.assertTrue(
                jnp.allclose(gate.compute_operator(theta=theta), expected), gate.name
            )
            self.assertTrue(gate.shift_rule)

    def test_u3_has_three_parameters_and_no_shift_rule(self) -> None:
        self.assertEqual(GateType.U3.num_params, 3)
        self.assertFalse(GateType.U3.shift_rule)
        self.assertIsNone(GateType.U3.generator())
        op = GateType.U3.compute_operator(phi=0.1, theta=0.2, omega=0.3)
        self.assertTrue(is_unitary(op))

    def test_sx_squares_to_x(self) -> None:
        sx = GateType.SX.compute_operator()
        self.assertTrue(jnp.allclose(sx @ sx, GateType.X.compute_operator()))


class TestOperation(unittest.TestCase):
    def test_missing_parameter(self) -> None:
        with self.assertRaises(KeyError):
            Operation(GateType.RX, 0)

    def test_target_count_must_match(self) -> None:
        with self.assertRaises(ValueError):
            Operation(GateType.CNOT, 0)
        with self.assertRaises(ValueError):
            Operation(GateType.CNOT, (1, 1))

    def test_custom_operator(self) -> None:
        op = Operation(GateType.Custom, (0, 1), operator=pauli_operator("XZ"))
        self.assertEqual(op.targets, (0, 1))
        self.assertTrue(jnp.allclose(op.operator, pauli_operator("XZ")))
        with self.assertRaises(ValueError):
            Operation(GateType.Custom, 0, operator=2 * jnp.eye(2))
        with self.assertRaises(ValueError):
            Operation(GateType.Custom, 0, operator=jnp.eye(4))

    def test_repr_contains_gate_and_targets(self) -> None:
        text = repr(Operation(GateType.H, 1))
        self.assertTrue(text.startswith("GateType.H[1]"))
        self.assertIn("⎡", text)


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Z", jnp.diag(jnp.array([1, -1]))),
        ("ZZ", jnp.diag(jnp.array([1, -1, -1, 1]))),
        ("ZI", jnp.diag(jnp.array([1, 1, -1, -1]))),
    ],
)
def test_pauli_operator(label, expected):
    assert jnp.allclose(pauli_operator(label), expected)


def test_pauli_operator_rejects_unknown_labels():
    with pytest.raises(ValueError):
        pauli_operator("ZQ")
    with pytest.raises(ValueError):
        pauli_operator("")
