from enum import Enum
from typing import Any, List, Optional

import jax.numpy as jnp

from vqa_weave._math.ops import (
    controlled_not_operator,
    controlled_z_operator,
    hadamard_operator,
    identity_operator,
    pauli_operator,
    rx_operator,
    ry_operator,
    rz_operator,
    s_operator,
    swap_operator,
    sx_operator,
    t_operator,
    u3_operator,
    x_operator,
    y_operator,
    z_operator,
    zz_operator,
)


class GateType(Enum):
    """
    GateType

    Constructs an operator, which acts on one or two qubits.
    Each member carries its required parameters (in order), the
    number of qubits it acts on and, for rotation gates, the Pauli
    generator G such that U(theta) = exp(-i theta G / 2)
    """

    I = ([], 1, None, 1)
    X = ([], 1, None, 2)
    Y = ([], 1, None, 3)
    Z = ([], 1, None, 4)
    H = ([], 1, None, 5)
    S = ([], 1, None, 6)
    T = ([], 1, None, 7)
    SX = ([], 1, None, 8)
    CNOT = ([], 2, None, 9)
    CZ = ([], 2, None, 10)
    SWAP = ([], 2, None, 11)
    RX = (["theta"], 1, "X", 12)
    RY = (["theta"], 1, "Y", 13)
    RZ = (["theta"], 1, "Z", 14)
    RZZ = (["theta"], 2, "ZZ", 15)
    U3 = (["phi", "theta", "omega"], 1, None, 16)
    Custom = (["operator"], None, None, 17)

    def __init__(
        self,
        required_params: List[str],
        num_qubits: Optional[int],
        generator_label: Optional[str],
        op_id: int,
    ) -> None:
        self.required_params = required_params
        self.num_qubits = num_qubits
        self.generator_label = generator_label

    @property
    def num_params(self) -> int:
        """
        Number of free (real) parameters of the gate
        """
        if self is GateType.Custom:
            return 0
        return len(self.required_params)

    @property
    def shift_rule(self) -> bool:
        """
        True when the two-term parameter shift rule holds for the gate
        """
        return self.generator_label is not None

    def generator(self) -> Optional[jnp.ndarray]:
        """
        Returns
        -------
        Optional[jnp.ndarray]
            Pauli generator G of the rotation or None for gates without one
        """
        if self.generator_label is None:
            return None
        return pauli_operator(self.generator_label)

    def compute_operator(self, **kwargs: Any) -> jnp.ndarray:
        """
        Computes an operator

        Parameters
        ----------
        **kwargs: Any
            Accepts the kwargs, where the parameters are passed

        Returns
        -------
        jnp.ndarray
            Returns operator matrix
        """
        match self:
            case GateType.I:
                return identity_operator()
            case GateType.X:
                return x_operator()
            case GateType.Y:
                return y_operator()
            case GateType.Z:
                return z_operator()
            case GateType.H:
                return hadamard_operator()
            case GateType.S:
                return s_operator()
            case GateType.T:
                return t_operator()
            case GateType.SX:
                return sx_operator()
            case GateType.CNOT:
                return controlled_not_operator()
            case GateType.CZ:
                return controlled_z_operator()
            case GateType.SWAP:
                return swap_operator()
            case GateType.RX:
                return rx_operator(kwargs["theta"])
            case GateType.RY:
                return ry_operator(kwargs["theta"])
            case GateType.RZ:
                return rz_operator(kwargs["theta"])
            case GateType.RZZ:
                return zz_operator(kwargs["theta"])
            case GateType.U3:
                return u3_operator(kwargs["phi"], kwargs["theta"], kwargs["omega"])
            case GateType.Custom:
                return jnp.asarray(kwargs["operator"], dtype=jnp.complex128)
        raise ValueError("Gate type not recognized")
