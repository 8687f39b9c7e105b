r"""
Adapters to bridge register ordering with core kernels.

These helpers reorder flat state tensors so that the target subsystems are
contiguous at the front, call the ordered kernels, and restore the original
ordering. With contractions enabled, the reorder is skipped and a cached
einsum contraction acts on the target axes in place.
"""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Callable, List, Sequence, Tuple

import jax
import jax.numpy as jnp
import opt_einsum as oe

from vqa_weave.core import kernels


def _permute_dims(dims: Sequence[int], perm: Sequence[int]) -> List[int]:
    return [dims[i] for i in perm]


def _inverse_perm(perm: Sequence[int]) -> List[int]:
    inv = [0] * len(perm)
    for i, p in enumerate(perm):
        inv[p] = i
    return inv


@lru_cache(None)
def _reorder_meta(
    state_dims: Tuple[int, ...], target_indices: Tuple[int, ...]
) -> Tuple[List[int], List[int], List[int]]:
    """
    Cached permutation metadata for reorderings.
    Returns (perm, rest_indices, reordered_dims).
    """
    total_states = len(state_dims)
    rest_indices = [i for i in range(total_states) if i not in target_indices]
    perm = list(target_indices) + rest_indices
    reordered_dims = _permute_dims(state_dims, perm)
    return perm, rest_indices, reordered_dims


@lru_cache(None)
def _cached_vector_einsum(
    dims: Tuple[int, ...], target_indices: Tuple[int, ...]
) -> str:
    """
    Einsum string applying an operator tensor shaped
    `(*target_dims, *target_dims)` to a state tensor shaped `(*dims, 1)`.

    Examples
    --------
    >>> _cached_vector_einsum((2, 2), (1,))
    'cb,abd->acd'
    """
    n = len(dims)
    state_in = [oe.get_symbol(i) for i in range(n)]
    fresh = [oe.get_symbol(n + i) for i in range(len(target_indices))]
    batch = oe.get_symbol(n + len(target_indices))
    state_out = list(state_in)
    for new, t in zip(fresh, target_indices):
        state_out[t] = new
    op = "".join(fresh) + "".join(state_in[t] for t in target_indices)
    return f"{op},{''.join(state_in)}{batch}->{''.join(state_out)}{batch}"


@lru_cache(None)
def _cached_vector_contraction_kernel(
    state_dims: Tuple[int, ...], target_indices: Tuple[int, ...]
) -> Callable[[jnp.ndarray, jnp.ndarray], jnp.ndarray]:
    einsum_str = _cached_vector_einsum(state_dims, target_indices)
    target_dims = tuple(state_dims[i] for i in target_indices)

    @jax.jit
    def kernel(operator: jnp.ndarray, product_state: jnp.ndarray) -> jnp.ndarray:
        op_tensor = operator.reshape((*target_dims, *target_dims))
        state_tensor = product_state.reshape((*state_dims, 1))
        contracted = oe.contract(einsum_str, op_tensor, state_tensor, backend="jax")
        return contracted.reshape((-1, 1))

    return kernel


def apply_operation_vector(
    state_dims: Sequence[int],
    target_indices: Sequence[int],
    product_state: jnp.ndarray,
    operator: jnp.ndarray,
    use_contraction: bool = False,
) -> jnp.ndarray:
    """
    Apply `operator` to the subsystems at `target_indices` of a flat state
    vector, preserving the original subsystem ordering.

    Parameters
    ----------
    state_dims : Sequence[int]
        Dimensions of each subsystem in tensor order.
    target_indices : Sequence[int]
        Subsystems the operator acts on, in the operator's own order.
    product_state : jnp.ndarray
        State vector shaped (prod(state_dims), 1).
    operator : jnp.ndarray
        Operator shaped (prod(target_dims), prod(target_dims)).
    use_contraction : bool
        Use the cached einsum contraction instead of transposing the state.

    Returns
    -------
    jnp.ndarray
        Updated state vector shaped (prod(state_dims), 1).
    """
    state_dims = tuple(int(d) for d in state_dims)
    target_indices = tuple(int(t) for t in target_indices)
    target_dim = math.prod(state_dims[i] for i in target_indices)
    if operator.shape != (target_dim, target_dim):
        raise ValueError(
            f"Operator of shape {operator.shape} does not act on targets "
            f"{target_indices} with dimension {target_dim}"
        )

    if use_contraction:
        kernel = _cached_vector_contraction_kernel(state_dims, target_indices)
        return kernel(operator, product_state)

    perm, _, reordered_dims = _reorder_meta(state_dims, target_indices)
    tensor = product_state.reshape(state_dims)
    tensor = jnp.transpose(tensor, perm).reshape((-1, 1))
    out = kernels.apply_op_vector_ordered(
        reordered_dims, len(target_indices), tensor, operator
    )
    out = jnp.transpose(out.reshape(reordered_dims), _inverse_perm(perm))
    return out.reshape((-1, 1))


def embed_operator(
    state_dims: Sequence[int],
    target_indices: Sequence[int],
    operator: jnp.ndarray,
) -> jnp.ndarray:
    """
    Lift an operator on `target_indices` to the full space, identity on the
    remaining subsystems.

    Returns
    -------
    jnp.ndarray
        Matrix shaped (prod(state_dims), prod(state_dims)).
    """
    state_dims = tuple(int(d) for d in state_dims)
    target_indices = tuple(int(t) for t in target_indices)
    perm, rest_indices, reordered_dims = _reorder_meta(state_dims, target_indices)
    rest_flat = math.prod(state_dims[i] for i in rest_indices)
    full = jnp.kron(operator, jnp.eye(rest_flat, dtype=operator.dtype))
    n = len(state_dims)
    tensor = full.reshape((*reordered_dims, *reordered_dims))
    inv = _inverse_perm(perm)
    axes = inv + [n + i for i in inv]
    total = math.prod(state_dims)
    return jnp.transpose(tensor, axes).reshape((total, total))
