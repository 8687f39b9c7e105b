"""
Qubit Register
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional, Sequence, Union

import jax.numpy as jnp
import numpy as np

from vqa_weave._math.ops import (
    all_bitstrings,
    basis_state,
    index_to_bitstring,
)
from vqa_weave.core import adapters, kernels
from vqa_weave.core.rng import ensure_key
from vqa_weave.vqa_weave import Config

logger = logging.getLogger(__name__)


class QubitRegister:
    """
    QubitRegister class

    Holds the state vector of `num_qubits` qubits and applies operators
    to arbitrary subsets of them. Qubit 0 is the most significant
    (leftmost) position of a bitstring label.

    Attributes
    ----------
    uid: uuid.UUID
        Identifier of the register
    num_qubits: int
        Number of qubits in the register
    state: jnp.ndarray
        State vector shaped (2**num_qubits, 1)
    """

    __slots__ = ("uid", "num_qubits", "state")

    def __init__(
        self,
        num_qubits: int,
        initial_state: Optional[Union[str, jnp.ndarray]] = None,
    ) -> None:
        if num_qubits < 1:
            raise ValueError(f"Register needs at least one qubit, got {num_qubits}")
        self.uid: uuid.UUID = uuid.uuid4()
        self.num_qubits = num_qubits
        logger.debug("Creating register %s with %d qubit(s)", self.uid, num_qubits)
        if initial_state is None:
            initial_state = "0" * num_qubits
        if isinstance(initial_state, str):
            if len(initial_state) != num_qubits:
                raise ValueError(
                    f"Initial state {initial_state!r} does not have "
                    f"{num_qubits} qubit(s)"
                )
            self.state = basis_state(initial_state)
        else:
            state = jnp.asarray(initial_state, dtype=jnp.complex128).reshape((-1, 1))
            if state.shape[0] != 2**num_qubits:
                raise ValueError(
                    f"Initial state of size {state.shape[0]} does not match "
                    f"{num_qubits} qubit(s)"
                )
            norm = jnp.linalg.norm(state)
            if jnp.isclose(norm, 0):
                raise ValueError("Initial state must not be the zero vector")
            self.state = state / norm

    def __repr__(self) -> str:
        amplitudes = np.asarray(self.state).reshape(-1)
        terms = [
            f"({amp.real:+.3f}{amp.imag:+.3f}j)|{index_to_bitstring(i, self.num_qubits)}⟩"
            for i, amp in enumerate(amplitudes)
            if abs(amp) > 1e-9
        ]
        return " ".join(terms) if terms else "0"

    @property
    def dimensions(self) -> int:
        return 2**self.num_qubits

    @property
    def state_dims(self) -> tuple[int, ...]:
        return (2,) * self.num_qubits

    def apply_operator(self, operator: jnp.ndarray, targets: Sequence[int]) -> None:
        """
        Applies a unitary acting on `targets` (in the operator's qubit order)

        Parameters
        ----------
        operator: jnp.ndarray
            Operator of size 2**len(targets)
        targets: Sequence[int]
            Qubits the operator acts on
        """
        for t in targets:
            if not 0 <= t < self.num_qubits:
                raise ValueError(
                    f"Target qubit {t} out of range for {self.num_qubits} qubit(s)"
                )
        self.state = adapters.apply_operation_vector(
            self.state_dims,
            tuple(targets),
            self.state,
            jnp.asarray(operator, dtype=jnp.complex128),
            use_contraction=Config().contractions,
        )

    def probabilities(self) -> jnp.ndarray:
        """
        Returns
        -------
        jnp.ndarray
            Probability of every computational basis outcome, shaped (2**n,)
        """
        return kernels.probabilities_vector(self.state)

    def bitstring_probabilities(self) -> Dict[str, float]:
        probs = np.asarray(self.probabilities())
        return {
            bitstring: float(p)
            for bitstring, p in zip(all_bitstrings(self.num_qubits), probs)
        }

    def sample(self, shots: int, key: jnp.ndarray | None = None) -> List[str]:
        """
        Samples computational basis measurements without collapsing
        the register

        Parameters
        ----------
        shots: int
            Number of measurements
        key: jnp.ndarray | None
            PRNG key, drawn from Config when None

        Returns
        -------
        List[str]
            Measured bitstrings, one per shot
        """
        if shots < 1:
            raise ValueError(f"At least one shot is required, got {shots}")
        indices = kernels.sample_outcomes(ensure_key(key), self.probabilities(), shots)
        return [index_to_bitstring(i, self.num_qubits) for i in np.asarray(indices)]

