from typing import Any, List, Sequence, Tuple, Union

import jax.numpy as jnp

from vqa_weave._math.ops import is_unitary
from vqa_weave.operation.gate_operation import GateType


class Operation:
    """
    A gate bound to its parameters and to the qubits it acts on.

    Example:
        op = Operation(GateType.RX, (0,), theta=jnp.pi / 2)
        register.apply_operator(op.operator, op.targets)
    """

    __slots__ = (
        "_operator",
        "_gate_type",
        "_targets",
        "kwargs",
    )

    def __init__(
        self,
        gate_type: GateType,
        targets: Union[int, Sequence[int]],
        **kwargs: Any,
    ) -> None:
        self._gate_type: GateType = gate_type
        self._targets: Tuple[int, ...] = (
            (targets,) if isinstance(targets, int) else tuple(targets)
        )
        self.kwargs = kwargs

        for param in gate_type.required_params:
            if param not in kwargs:
                raise KeyError(
                    f"The '{param}' argument is required for {gate_type.name}"
                )

        if gate_type is GateType.Custom:
            operator = jnp.asarray(kwargs["operator"], dtype=jnp.complex128)
            if operator.shape != (2 ** len(self._targets),) * 2:
                raise ValueError(
                    f"Custom operator of shape {operator.shape} does not fit "
                    f"{len(self._targets)} target qubit(s)"
                )
            if not is_unitary(operator):
                raise ValueError("Custom operator must be unitary")
        elif gate_type.num_qubits != len(self._targets):
            raise ValueError(
                f"{gate_type.name} acts on {gate_type.num_qubits} qubit(s), "
                f"{len(self._targets)} target(s) given"
            )
        if len(set(self._targets)) != len(self._targets):
            raise ValueError(f"Targets must be unique, got {self._targets}")

        self._operator: jnp.ndarray = gate_type.compute_operator(**kwargs)

    def __repr__(self) -> str:
        repr_string = (
            f"{self._gate_type.__class__.__name__}.{self._gate_type.name}"
            f"{list(self._targets)}\n"
        )
        formatted_matrix: Union[str, List[str]]
        formatted_matrix = "\n".join(
            [
                "⎢ "
                + "   ".join(
                    [
                        f"{num.real:+.2f} {'+' if num.imag >= 0 else '-'} {abs(num.imag):.2f}j"
                        for num in row
                    ]
                )
                + " ⎥"
                for row in self._operator
            ]
        )
        formatted_matrix = formatted_matrix.split("\n")
        formatted_matrix[0] = "⎡" + formatted_matrix[0][1:-1] + "⎤"
        formatted_matrix[-1] = "⎣" + formatted_matrix[-1][1:-1] + "⎦"
        formatted_matrix = "\n".join(formatted_matrix)
        return repr_string + formatted_matrix

    @property
    def gate_type(self) -> GateType:
        return self._gate_type

    @property
    def targets(self) -> Tuple[int, ...]:
        return self._targets

    @property
    def operator(self) -> jnp.ndarray:
        return self._operator
