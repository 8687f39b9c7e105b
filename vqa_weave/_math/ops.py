from functools import reduce
from typing import List, Sequence

import jax
import jax.numpy as jnp

jax.config.update("jax_enable_x64", True)


def identity_operator(num_qubits: int = 1) -> jnp.ndarray:
    return jnp.eye(2**num_qubits, dtype=jnp.complex128)


def x_operator() -> jnp.ndarray:
    return jnp.array([[0, 1], [1, 0]], dtype=jnp.complex128)


def y_operator() -> jnp.ndarray:
    return jnp.array([[0, -1j], [1j, 0]], dtype=jnp.complex128)


def z_operator() -> jnp.ndarray:
    return jnp.array([[1, 0], [0, -1]], dtype=jnp.complex128)


def hadamard_operator() -> jnp.ndarray:
    return jnp.array([[1, 1], [1, -1]], dtype=jnp.complex128) / jnp.sqrt(2)


def s_operator() -> jnp.ndarray:
    return jnp.array([[1, 0], [0, 1j]], dtype=jnp.complex128)


def t_operator() -> jnp.ndarray:
    return jnp.array(
        [[1, 0], [0, jnp.exp(1j * jnp.pi / 4)]], dtype=jnp.complex128
    )


def sx_operator() -> jnp.ndarray:
    return 0.5 * jnp.array(
        [[1 + 1j, 1 - 1j], [1 - 1j, 1 + 1j]], dtype=jnp.complex128
    )


def controlled_not_operator() -> jnp.ndarray:
    return jnp.array(
        [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 0, 1], [0, 0, 1, 0]],
        dtype=jnp.complex128,
    )


def controlled_z_operator() -> jnp.ndarray:
    return jnp.diag(jnp.array([1, 1, 1, -1], dtype=jnp.complex128))


def swap_operator() -> jnp.ndarray:
    return jnp.array(
        [[1, 0, 0, 0], [0, 0, 1, 0], [0, 1, 0, 0], [0, 0, 0, 1]],
        dtype=jnp.complex128,
    )


def rx_operator(theta: float) -> jnp.ndarray:
    r"""
    Rotation around the X axis

    .. math::
        R_x(\theta) = e^{-i\theta X/2}
    """
    c = jnp.cos(theta / 2)
    s = jnp.sin(theta / 2)
    return jnp.array([[c, -1j * s], [-1j * s, c]], dtype=jnp.complex128)


def ry_operator(theta: float) -> jnp.ndarray:
    r"""
    Rotation around the Y axis

    .. math::
        R_y(\theta) = e^{-i\theta Y/2}
    """
    c = jnp.cos(theta / 2)
    s = jnp.sin(theta / 2)
    return jnp.array([[c, -s], [s, c]], dtype=jnp.complex128)


def rz_operator(theta: float) -> jnp.ndarray:
    r"""
    Rotation around the Z axis

    .. math::
        R_z(\theta) = e^{-i\theta Z/2}
    """
    return jnp.array(
        [[jnp.exp(-1j * theta / 2), 0], [0, jnp.exp(1j * theta / 2)]],
        dtype=jnp.complex128,
    )


def u3_operator(phi: float, theta: float, omega: float) -> jnp.ndarray:
    """
    Generic single qubit rotation R_z(phi) R_y(theta) R_z(omega)
    """
    return rz_operator(phi) @ ry_operator(theta) @ rz_operator(omega)


def zz_operator(theta: float) -> jnp.ndarray:
    r"""
    Two qubit Ising coupling

    .. math::
        R_{zz}(\theta) = e^{-i\theta Z\otimes Z/2}
    """
    phases = jnp.array([-1, 1, 1, -1]) * theta / 2
    return jnp.diag(jnp.exp(1j * phases).astype(jnp.complex128))


def kron_reduce(arrays: Sequence[jnp.ndarray]) -> jnp.ndarray:
    """
    Kronecker product of a sequence of matrices, the first one acting on
    qubit 0. An empty sequence gives the 1x1 identity
    """
    if not arrays:
        return jnp.eye(1, dtype=jnp.complex128)
    return reduce(jnp.kron, arrays[1:], arrays[0])


def pauli_operator(label: str) -> jnp.ndarray:
    """
    Builds the operator of a Pauli string, e.g. 'ZIZ'. The leftmost
    character acts on qubit 0

    Parameters
    ----------
    label: str
        Pauli string consisting of I, X, Y and Z

    Returns
    -------
    jnp.ndarray
        Kronecker product of the single qubit Paulis
    """
    table = {
        "I": identity_operator,
        "X": x_operator,
        "Y": y_operator,
        "Z": z_operator,
    }
    if not label:
        raise ValueError("Pauli string must not be empty")
    try:
        factors = [table[c]() for c in label.upper()]
    except KeyError as e:
        raise ValueError(f"Unknown Pauli label {e.args[0]!r} in {label!r}")
    return kron_reduce(factors)


def single_qubit_operator(
    operator: jnp.ndarray, target: int, num_qubits: int
) -> jnp.ndarray:
    """
    Embeds a single qubit operator on `target` into `num_qubits` qubits
    """
    factors: List[jnp.ndarray] = [
        operator if i == target else identity_operator() for i in range(num_qubits)
    ]
    return kron_reduce(factors)


def basis_state(bitstring: str) -> jnp.ndarray:
    """
    Computational basis state vector shaped (2**n, 1) for a bitstring
    label, qubit 0 being the leftmost character
    """
    if not bitstring or any(c not in "01" for c in bitstring):
        raise ValueError(f"Invalid basis label {bitstring!r}")
    vector = jnp.zeros((2 ** len(bitstring), 1), dtype=jnp.complex128)
    return vector.at[int(bitstring, 2), 0].set(1)


def index_to_bitstring(index: int, num_qubits: int) -> str:
    return format(int(index), f"0{num_qubits}b")


def all_bitstrings(num_qubits: int) -> List[str]:
    return [index_to_bitstring(i, num_qubits) for i in range(2**num_qubits)]


def is_hermitian(matrix: jnp.ndarray, tol: float = 1e-8) -> bool:
    matrix = jnp.asarray(matrix)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    return bool(jnp.allclose(matrix, jnp.conjugate(matrix).T, atol=tol))


def is_unitary(matrix: jnp.ndarray, tol: float = 1e-8) -> bool:
    matrix = jnp.asarray(matrix)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    identity = jnp.eye(matrix.shape[0])
    return bool(jnp.allclose(jnp.conjugate(matrix).T @ matrix, identity, atol=tol))
