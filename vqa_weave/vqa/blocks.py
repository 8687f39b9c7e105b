"""
Parameterized circuit blocks

A block owns a rule mapping its free parameters to a unitary on an ordered
subset of qubits, together with the derivative operators of that unitary.
How the derivatives are produced is an explicit per-block choice, see
:class:`DerivativeMethod`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp

from vqa_weave._math.ops import is_hermitian
from vqa_weave.exceptions import ArityMismatch, UndifferentiableBlock
from vqa_weave.extra.expression_interpreter import interpreter
from vqa_weave.operation import GateType, Operation

OperatorFn = Callable[[jnp.ndarray], jnp.ndarray]
DerivativeFn = Callable[[jnp.ndarray], Sequence[jnp.ndarray]]


class DerivativeMethod(Enum):
    """
    How a block produces dU/dtheta_m

    ANALYTIC: closed form (generator based or user supplied)
    AUTODIFF: forward mode differentiation of a jax traceable operator function
    FINITE_DIFFERENCE: central difference of the operator function
    NONE: no derivative, gradient requests fail
    """

    ANALYTIC = "analytic"
    AUTODIFF = "autodiff"
    FINITE_DIFFERENCE = "finite_difference"
    NONE = "none"


def _as_targets(targets: Union[int, Sequence[int]]) -> Tuple[int, ...]:
    targets = (targets,) if isinstance(targets, int) else tuple(int(t) for t in targets)
    if not targets:
        raise ValueError("A block needs at least one target qubit")
    if len(set(targets)) != len(targets):
        raise ValueError(f"Targets must be unique, got {targets}")
    if any(t < 0 for t in targets):
        raise ValueError(f"Targets must be non-negative, got {targets}")
    return targets


class ParameterizedBlock:
    """
    Segment of a variational circuit

    Attributes
    ----------
    name: str
        Identifier of the block
    num_params: int
        Number of free parameters the block consumes (0 for fixed blocks)
    targets: Tuple[int, ...]
        Qubits the operator acts on, in the operator's own qubit order
    derivative_method: DerivativeMethod
        Policy used by :meth:`derivatives`
    initial: bool
        Initial blocks are applied once before the layered part of a
        circuit instead of once per layer
    shift_rule: bool
        True when the two-term parameter shift rule is exact for every
        parameter of the block
    """

    __slots__ = (
        "name",
        "num_params",
        "targets",
        "derivative_method",
        "initial",
        "shift_rule",
        "finite_difference_step",
        "_operator_fn",
        "_derivative_fn",
    )

    def __init__(
        self,
        name: str,
        operator_fn: OperatorFn,
        num_params: int = 1,
        targets: Union[int, Sequence[int]] = 0,
        *,
        derivative_fn: Optional[DerivativeFn] = None,
        derivative_method: Optional[Union[DerivativeMethod, str]] = None,
        initial: bool = False,
        shift_rule: bool = False,
        finite_difference_step: float = 1e-6,
    ) -> None:
        if num_params < 0:
            raise ValueError(f"Number of parameters must be non-negative, got {num_params}")
        if finite_difference_step <= 0:
            raise ValueError("Finite difference step must be positive")
        self.name = name
        self.num_params = int(num_params)
        self.targets = _as_targets(targets)
        self.initial = bool(initial)
        self.shift_rule = bool(shift_rule)
        self.finite_difference_step = float(finite_difference_step)
        self._operator_fn = operator_fn
        self._derivative_fn = derivative_fn

        if derivative_method is None:
            derivative_method = (
                DerivativeMethod.ANALYTIC
                if derivative_fn is not None
                else DerivativeMethod.NONE
            )
        self.derivative_method = DerivativeMethod(derivative_method)
        if (
            self.derivative_method is DerivativeMethod.ANALYTIC
            and derivative_fn is None
        ):
            raise UndifferentiableBlock(
                name, "analytic derivatives need a derivative_fn"
            )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.name!r}, params={self.num_params}, "
            f"targets={list(self.targets)}, derivative={self.derivative_method.value}"
            f"{', initial' if self.initial else ''})"
        )

    @property
    def num_qubits(self) -> int:
        return len(self.targets)

    @property
    def differentiable(self) -> bool:
        return self.num_params == 0 or self.derivative_method is not DerivativeMethod.NONE

    def check_parameters(self, params: Any) -> jnp.ndarray:
        """
        Converts the parameters into a flat float array

        Raises
        ------
        ArityMismatch
            If the number of parameters is not `num_params`
        """
        params = jnp.atleast_1d(jnp.asarray(params, dtype=jnp.float64)).reshape(-1)
        if params.shape[0] != self.num_params:
            raise ArityMismatch(self.name, self.num_params, int(params.shape[0]))
        return params

    def _compute(self, params: jnp.ndarray) -> jnp.ndarray:
        return jnp.asarray(self._operator_fn(params), dtype=jnp.complex128)

    def operator(self, params: Any) -> jnp.ndarray:
        """
        Unitary of the block for the given parameters

        Parameters
        ----------
        params: Any
            Array-like of length `num_params`

        Returns
        -------
        jnp.ndarray
            Operator of size 2**len(targets)
        """
        params = self.check_parameters(params)
        operator = self._compute(params)
        dim = 2**self.num_qubits
        if operator.shape != (dim, dim):
            raise ValueError(
                f"Block '{self.name}' produced an operator of shape "
                f"{operator.shape}, expected {(dim, dim)}"
            )
        return operator

    def derivatives(self, params: Any) -> List[jnp.ndarray]:
        """
        Derivative operators dU/dtheta_m, one per parameter

        Raises
        ------
        ArityMismatch
            If the number of parameters is not `num_params`
        UndifferentiableBlock
            If the block has no derivative policy
        """
        params = self.check_parameters(params)
        if self.num_params == 0:
            return []
        match self.derivative_method:
            case DerivativeMethod.ANALYTIC:
                assert self._derivative_fn is not None
                derivatives = [
                    jnp.asarray(d, dtype=jnp.complex128)
                    for d in self._derivative_fn(params)
                ]
                if len(derivatives) != self.num_params:
                    raise ValueError(
                        f"Block '{self.name}' returned {len(derivatives)} "
                        f"derivative(s) for {self.num_params} parameter(s)"
                    )
                return derivatives
            case DerivativeMethod.AUTODIFF:
                jacobian = jax.jacfwd(self._compute)(params)
                return [jacobian[..., m] for m in range(self.num_params)]
            case DerivativeMethod.FINITE_DIFFERENCE:
                h = self.finite_difference_step
                derivatives = []
                for m in range(self.num_params):
                    shift = jnp.zeros(self.num_params).at[m].set(h)
                    forward = self._compute(params + shift)
                    backward = self._compute(params - shift)
                    derivatives.append((forward - backward) / (2 * h))
                return derivatives
        raise UndifferentiableBlock(self.name)


class GateBlock(ParameterizedBlock):
    """
    Block wrapping a native gate of :class:`vqa_weave.operation.GateType`.

    Rotation gates (RX, RY, RZ, RZZ) carry analytic derivatives through their
    Pauli generator, U3 is differentiated with JAX, fixed gates have no
    parameters. A fixed custom unitary is passed as ``operator=``.
    """

    __slots__ = ("gate_type", "gate_kwargs")

    def __init__(
        self,
        name: str,
        gate_type: GateType,
        targets: Union[int, Sequence[int]] = 0,
        *,
        initial: bool = False,
        **kwargs: Any,
    ) -> None:
        self.gate_type = gate_type
        self.gate_kwargs = kwargs
        targets = _as_targets(targets)
        # Binding placeholder parameters validates targets and custom operators
        placeholders = {p: 0.0 for p in gate_type.required_params if p != "operator"}
        Operation(gate_type, targets, **{**placeholders, **kwargs})

        generator = gate_type.generator()
        derivative_fn: Optional[DerivativeFn] = None
        method = DerivativeMethod.NONE
        if generator is not None:
            derivative_fn = self._generator_derivatives
            method = DerivativeMethod.ANALYTIC
        elif gate_type.num_params > 0:
            method = DerivativeMethod.AUTODIFF
        super().__init__(
            name,
            self._gate_operator,
            num_params=gate_type.num_params,
            targets=targets,
            derivative_fn=derivative_fn,
            derivative_method=method,
            initial=initial,
            shift_rule=gate_type.shift_rule,
        )

    def _gate_operator(self, params: jnp.ndarray) -> jnp.ndarray:
        kwargs = dict(self.gate_kwargs)
        if self.gate_type is not GateType.Custom:
            kwargs.update(zip(self.gate_type.required_params, params))
        return Operation(self.gate_type, self.targets, **kwargs).operator

    def _generator_derivatives(self, params: jnp.ndarray) -> List[jnp.ndarray]:
        # U(theta) = exp(-i theta G / 2)  =>  dU/dtheta = -i G/2 U
        generator = self.gate_type.generator()
        return [-0.5j * generator @ self._compute(params)]


class HamiltonianBlock(ParameterizedBlock):
    r"""
    Block generated by a Hermitian operator

    .. math::
        U(\theta) = e^{-i\theta H}, \qquad \frac{dU}{d\theta} = -iHU(\theta)

    The evolution is computed from the eigendecomposition of H, which is
    done once at construction.
    """

    __slots__ = ("hamiltonian", "_eigenvalues", "_eigenvectors")

    def __init__(
        self,
        name: str,
        hamiltonian: jnp.ndarray,
        targets: Optional[Union[int, Sequence[int]]] = None,
        *,
        initial: bool = False,
    ) -> None:
        hamiltonian = jnp.asarray(hamiltonian, dtype=jnp.complex128)
        if not is_hermitian(hamiltonian):
            raise ValueError(f"Hamiltonian of block '{name}' must be Hermitian")
        num_qubits = int(hamiltonian.shape[0]).bit_length() - 1
        if 2**num_qubits != hamiltonian.shape[0]:
            raise ValueError(
                f"Hamiltonian of block '{name}' must act on qubits, got "
                f"dimension {hamiltonian.shape[0]}"
            )
        if targets is None:
            targets = tuple(range(num_qubits))
        targets = _as_targets(targets)
        if len(targets) != num_qubits:
            raise ValueError(
                f"Hamiltonian of block '{name}' acts on {num_qubits} qubit(s), "
                f"{len(targets)} target(s) given"
            )
        self.hamiltonian = hamiltonian
        self._eigenvalues, self._eigenvectors = jnp.linalg.eigh(hamiltonian)
        super().__init__(
            name,
            self._evolution,
            num_params=1,
            targets=targets,
            derivative_fn=self._evolution_derivative,
            derivative_method=DerivativeMethod.ANALYTIC,
            initial=initial,
        )

    @classmethod
    def from_expression(
        cls,
        name: str,
        expression: tuple,
        num_qubits: int,
        targets: Optional[Union[int, Sequence[int]]] = None,
        *,
        initial: bool = False,
    ) -> "HamiltonianBlock":
        """
        Builds the generator from a lisp-style expression over the Pauli
        context, see :func:`vqa_weave.extra.expression_interpreter.interpreter`
        """
        hamiltonian = interpreter(expression, None, num_qubits)
        return cls(name, hamiltonian, targets, initial=initial)

    def _evolution(self, params: jnp.ndarray) -> jnp.ndarray:
        phases = jnp.exp(-1j * params[0] * self._eigenvalues)
        return (self._eigenvectors * phases) @ jnp.conj(self._eigenvectors).T

    def _evolution_derivative(self, params: jnp.ndarray) -> List[jnp.ndarray]:
        return [-1j * self.hamiltonian @ self._evolution(params)]
