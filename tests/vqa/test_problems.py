import jax.numpy as jnp
import pytest

from vqa_weave._math.ops import all_bitstrings
from vqa_weave.vqa.problems import (
    bitstring_to_sets,
    mixer_hamiltonian,
    partition_cost,
    partition_hamiltonian,
    partition_labels,
    qaoa_blocks,
)

VALUES = [1, 4, 3]


def test_partition_hamiltonian_diagonal_matches_bitstring_cost():
    h_p = partition_hamiltonian(VALUES)
    cost = partition_cost(VALUES)
    diagonal = jnp.real(jnp.diag(h_p))
    for index, bitstring in enumerate(all_bitstrings(3)):
        assert diagonal[index] == pytest.approx(cost(bitstring))
    assert cost("101") == 0
    assert cost("010") == 0
    assert cost("000") == 64


def test_mixer_hamiltonian():
    h_b = mixer_hamiltonian(2)
    expected = jnp.array(
        [[0, 1, 1, 0], [1, 0, 0, 1], [1, 0, 0, 1], [0, 1, 1, 0]], dtype=jnp.complex128
    )
    assert jnp.allclose(h_b, expected)


def test_qaoa_blocks():
    blocks = qaoa_blocks(partition_hamiltonian(VALUES), 3)
    assert [b.name for b in blocks] == ["hadamard", "problem", "mixer"]
    assert [b.initial for b in blocks] == [True, False, False]
    assert [b.num_params for b in blocks] == [0, 1, 1]


def test_bitstring_to_sets():
    assert bitstring_to_sets("101", VALUES) == ((4.0,), (1.0, 3.0))
    with pytest.raises(ValueError):
        bitstring_to_sets("10", VALUES)
    with pytest.raises(ValueError):
        partition_cost([])


def test_partition_labels_merge_complements():
    labels = partition_labels(VALUES)
    assert labels["101"] == labels["010"] == "{4} | {1, 3}"
    assert labels["000"] == labels["111"] == "{} | {1, 4, 3}"
    assert len(set(labels.values())) == 4
