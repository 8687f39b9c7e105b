"""
QAOA helpers for the number partitioning problem

A bitstring b assigns value s_i to the first set when b_i is 0 and to the
second set when b_i is 1. With the problem Hamiltonian

    H_P = (sum_i s_i Z_i)^2

the energy of a basis state is the squared difference of the two set sums,
so the ground states are exactly the equal-sum partitions.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import jax.numpy as jnp

from vqa_weave._math.ops import all_bitstrings, hadamard_operator, kron_reduce
from vqa_weave.extra.expression_interpreter import interpreter
from vqa_weave.operation import GateType
from vqa_weave.vqa.blocks import GateBlock, HamiltonianBlock, ParameterizedBlock


def _check_values(values: Sequence[float]) -> List[float]:
    values = [float(v) for v in values]
    if not values:
        raise ValueError("The set to partition must not be empty")
    return values


def partition_expression(values: Sequence[float]) -> tuple:
    """
    Lisp-style expression of H_P for the expression interpreter
    """
    values = _check_values(values)
    total = ("add", *(("s_mult", v, f"Z{i}") for i, v in enumerate(values)))
    return ("m_mult", total, total)


def partition_hamiltonian(values: Sequence[float]) -> jnp.ndarray:
    values = _check_values(values)
    return interpreter(partition_expression(values), None, len(values))


def mixer_hamiltonian(num_qubits: int) -> jnp.ndarray:
    """
    Transverse field mixer H_B = sum_i X_i
    """
    expression = ("add", *(f"X{i}" for i in range(num_qubits)))
    return interpreter(expression, None, num_qubits)


def partition_cost(values: Sequence[float]):
    """
    Bitstring cost: squared difference of the two set sums
    """
    values = _check_values(values)

    def cost(bitstring: str) -> float:
        signed = sum(v if b == "0" else -v for v, b in zip(values, bitstring))
        return signed**2

    return cost


def qaoa_blocks(problem_hamiltonian: jnp.ndarray, num_qubits: int) -> List[ParameterizedBlock]:
    """
    Standard QAOA ansatz: an initial Hadamard layer followed by the
    alternating problem (gamma) and mixer (beta) evolutions
    """
    hadamards = kron_reduce([hadamard_operator() for _ in range(num_qubits)])
    return [
        GateBlock(
            "hadamard",
            GateType.Custom,
            tuple(range(num_qubits)),
            initial=True,
            operator=hadamards,
        ),
        HamiltonianBlock("problem", problem_hamiltonian),
        HamiltonianBlock("mixer", mixer_hamiltonian(num_qubits)),
    ]


def bitstring_to_sets(
    bitstring: str, values: Sequence[float]
) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
    values = _check_values(values)
    if len(bitstring) != len(values):
        raise ValueError(
            f"Bitstring {bitstring!r} does not match {len(values)} value(s)"
        )
    first = tuple(v for v, b in zip(values, bitstring) if b == "0")
    second = tuple(v for v, b in zip(values, bitstring) if b == "1")
    return first, second


def _format_set(values: Tuple[float, ...]) -> str:
    return "{" + ", ".join(f"{v:g}" for v in values) + "}"


def partition_labels(values: Sequence[float]) -> Dict[str, str]:
    """
    Human readable partition for every bitstring. Complementary bitstrings
    describe the same partition and share a label.
    """
    values = _check_values(values)
    labels = {}
    for bitstring in all_bitstrings(len(values)):
        sets = sorted(
            bitstring_to_sets(bitstring, values), key=lambda s: (len(s), s)
        )
        labels[bitstring] = " | ".join(_format_set(s) for s in sets)
    return labels
