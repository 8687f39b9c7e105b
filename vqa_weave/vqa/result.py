from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

import jax.numpy as jnp

from vqa_weave.state.register import QubitRegister


class OptimizationStatus(Enum):
    """
    Terminal condition of an optimization run
    """

    CONVERGED = "converged"
    NON_CONVERGENCE = "non_convergence"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    CANCELLED = "cancelled"


@dataclass(frozen=True, eq=False)
class OptimizationResult:
    """
    Outcome of an optimization run

    Attributes
    ----------
    parameters: jnp.ndarray
        Best parameters found
    cost_history: Tuple[float, ...]
        Cost after every executed iteration, in order
    status: OptimizationStatus
        Which terminal condition stopped the run
    min_cost: float
        Cost of `parameters`
    final_state: jnp.ndarray
        State vector produced by `parameters`
    num_qubits: int
        Size of the register
    method: str
        Name of the optimization method
    message: str
        Human readable termination message
    """

    parameters: jnp.ndarray
    cost_history: Tuple[float, ...]
    status: OptimizationStatus
    min_cost: float
    final_state: jnp.ndarray = field(repr=False)
    num_qubits: int
    method: str = ""
    message: str = ""

    @property
    def iterations(self) -> int:
        return len(self.cost_history)

    @property
    def converged(self) -> bool:
        return self.status is OptimizationStatus.CONVERGED

    @property
    def probabilities(self) -> jnp.ndarray:
        return QubitRegister(self.num_qubits, self.final_state).probabilities()

    def bitstring_probabilities(self) -> Dict[str, float]:
        register = QubitRegister(self.num_qubits, self.final_state)
        return register.bitstring_probabilities()

    def top_bitstring(self) -> str:
        """
        Most probable measurement outcome of the final state
        """
        probs = self.bitstring_probabilities()
        return max(probs, key=probs.__getitem__)

    def label_outcomes(
        self,
        labels: Optional[Union[Mapping[str, str], Callable[[str], str]]] = None,
        min_probability: float = 0.0,
    ) -> Dict[str, float]:
        """
        Outcome probabilities keyed by human readable labels, e.g. the
        partition each bitstring encodes. Outcomes sharing a label are
        summed. This is the data an external plotting collaborator needs.

        Parameters
        ----------
        labels: Mapping[str, str] | Callable[[str], str] | None
            Mapping or function from bitstring to label, the bitstring itself
            is used when None or when the mapping lacks the bitstring
        min_probability: float
            Outcomes below this probability are dropped
        """
        if labels is None:
            lookup: Callable[[str], str] = lambda b: b
        elif callable(labels):
            lookup = labels
        else:
            lookup = lambda b: labels.get(b, b)  # type: ignore[union-attr]
        labelled: Dict[str, float] = {}
        for bitstring, p in self.bitstring_probabilities().items():
            if p < min_probability:
                continue
            label = lookup(bitstring)
            labelled[label] = labelled.get(label, 0.0) + p
        return labelled
