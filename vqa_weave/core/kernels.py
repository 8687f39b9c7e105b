"""
Stateless tensor kernels intended for JAX JIT/vmap.

Design notes
------------
- Kernels operate purely on tensors plus lightweight metadata (state_dims,
  target_count) and do not touch register state.
- Callers are responsible for ordering the target subsystem axes to the front
  (see adapters in `vqa_weave.core.adapters`) and reshaping flat states.
- Shapes should be static per compiled instance.
"""

from __future__ import annotations

from functools import reduce
from typing import Iterable, Sequence

import jax
import jax.numpy as jnp
import opt_einsum as oe


def _prod(values: Iterable[int]) -> int:
    return int(reduce(lambda a, b: a * b, values, 1))


def apply_op_vector_ordered(
    state_dims: Sequence[int],
    target_count: int,
    product_state: jnp.ndarray,
    operator: jnp.ndarray,
) -> jnp.ndarray:
    """
    Apply an operator to the leading `target_count` axes of a state vector.

    Parameters
    ----------
    state_dims : Sequence[int]
        Dimensions of each subsystem in tensor order (targets first).
    target_count : int
        Number of leading subsystems the operator acts on.
    product_state : jnp.ndarray
        State vector shaped (prod(state_dims), 1).
    operator : jnp.ndarray
        Operator shaped (prod(target_dims), prod(target_dims)).

    Returns
    -------
    jnp.ndarray
        Updated state vector shaped (prod(state_dims), 1).
    """
    target_dims = state_dims[:target_count]
    rest_dims = state_dims[target_count:]

    target_flat = _prod(target_dims)
    rest_flat = _prod(rest_dims)
    total = target_flat * rest_flat

    ps = product_state.reshape((target_flat, rest_flat, 1))
    op = operator.reshape((target_flat, target_flat))

    ps = oe.contract("ab,bcn->acn", op, ps, backend="jax")
    return ps.reshape((total, 1))


@jax.jit
def probabilities_vector(product_state: jnp.ndarray) -> jnp.ndarray:
    """
    Outcome probabilities of a full computational basis measurement.

    Parameters
    ----------
    product_state : jnp.ndarray
        State vector shaped (dim, 1) or (dim,).

    Returns
    -------
    jnp.ndarray
        Normalized probabilities shaped (dim,).
    """
    probs = jnp.abs(product_state.reshape(-1)) ** 2
    return probs / jnp.sum(probs)


@jax.jit
def expectation_vector(product_state: jnp.ndarray, operator: jnp.ndarray) -> jnp.ndarray:
    """
    Real part of <psi|O|psi> for a state vector and an operator on the full space.
    """
    psi = product_state.reshape((-1, 1))
    value = oe.contract("ia,ij,ja->", jnp.conj(psi), operator, psi, backend="jax")
    return jnp.real(value)


def sample_outcomes(
    key: jnp.ndarray, probabilities: jnp.ndarray, shots: int
) -> jnp.ndarray:
    """
    Draw `shots` basis outcome indices at once from a probability vector.
    """
    return jax.random.choice(
        key, probabilities.shape[0], shape=(shots,), p=probabilities
    )
