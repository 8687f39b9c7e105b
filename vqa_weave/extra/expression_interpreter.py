from typing import Callable, Dict, Optional

import jax.numpy as jnp
from jax.scipy.linalg import expm

from vqa_weave._math.ops import (
    identity_operator,
    single_qubit_operator,
    x_operator,
    y_operator,
    z_operator,
)

Context = Dict[str, Callable[[int], jnp.ndarray]]


def pauli_context(num_qubits: int) -> Context:
    """
    Context with the identity ``"I"`` and single qubit Paulis
    ``"X0"``, ``"Z3"``, ... embedded into `num_qubits` qubits.
    """
    paulis = {"X": x_operator, "Y": y_operator, "Z": z_operator}
    context: Context = {"I": lambda n: identity_operator(n)}
    for label, factory in paulis.items():
        for q in range(num_qubits):
            context[f"{label}{q}"] = (
                lambda n, f=factory, q=q: single_qubit_operator(f(), q, n)
            )
    return context


def interpreter(
    expr: tuple,
    context: Optional[Context],
    num_qubits: int,
) -> jnp.ndarray:
    """
    Recursively build an operator from a lisp-style expression, a context,
    and the number of qubits.

    Parameters
    ----------
    expr : tuple
        Expression in the form ``("command", arg1, arg2, ...)``.
    context : Dict[str, Callable[[int], jnp.ndarray]] or None
        Mapping from placeholder names to callables that generate operators
        given the number of qubits. ``None`` uses :func:`pauli_context`.
    num_qubits : int
        Number of qubits the operator acts on.

    Returns
    -------
    jnp.ndarray
        The computed operator.

    Notes
    -----
    Supported commands:

    - ``add``: sums all arguments.
    - ``sub``: subtracts the second argument from the first.
    - ``s_mult``: scalar multiplication.
    - ``m_mult``: matrix multiplication.
    - ``div``: division of two arguments.
    - ``kron``: Kronecker product of all arguments.
    - ``expm``: matrix exponential of a single argument.

    Example, the partition Hamiltonian of S=[1, 4, 3]::

        ("m_mult", h, h) with
        h = ("add", ("s_mult", 1, "Z0"), ("s_mult", 4, "Z1"), ("s_mult", 3, "Z2"))
    """
    if context is None:
        context = pauli_context(num_qubits)
    if isinstance(expr, tuple):
        op, *args = expr
        if op == "add":
            result = interpreter(args[0], context, num_qubits)
            for arg in args[1:]:
                result = jnp.add(result, interpreter(arg, context, num_qubits))
            return result
        if op == "sub":
            result = interpreter(args[0], context, num_qubits)
            result = jnp.subtract(
                result, interpreter(args[1], context, num_qubits)
            )
            return result
        elif op == "s_mult":
            result = interpreter(args[0], context, num_qubits)
            for arg in args[1:]:
                result = result * interpreter(arg, context, num_qubits)
            return result
        elif op == "m_mult":
            result = interpreter(args[0], context, num_qubits)
            for arg in args[1:]:
                result = result @ interpreter(arg, context, num_qubits)
            return result
        elif op == "kron":
            result = interpreter(args[0], context, num_qubits)
            for arg in args[1:]:
                result = jnp.kron(
                    result, interpreter(arg, context, num_qubits)
                )
            return result
        elif op == "expm":
            return expm(interpreter(args[0], context, num_qubits))
        elif op == "div":
            return interpreter(args[0], context, num_qubits) / interpreter(
                args[1], context, num_qubits
            )
    elif isinstance(expr, str):
        if expr not in context:
            raise KeyError(f"Unknown operator name {expr!r} in expression")
        return context[expr](num_qubits)
    else:
        # Grab literal value
        return expr
    raise ValueError(
        "Something went wrong in the expression interpreter!", expr
    )
