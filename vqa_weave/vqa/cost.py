"""
Cost definitions and evaluation

The cost of a parameter vector is computed under exactly one of three
modes, fixed when the evaluator is built:

- BITSTRING: the final state is measured, a user function scores each
  bitstring and the scores are averaged over the shots (or weighted by
  the exact outcome probabilities when ``shots`` is None)
- STATE: a user function scores the final state vector directly
- OBSERVABLE: the cost is the expectation value of a fixed observable
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, List, Optional, Tuple, Union

import jax.numpy as jnp
import numpy as np

from vqa_weave._math.ops import all_bitstrings, is_hermitian
from vqa_weave.core import adapters, kernels
from vqa_weave.core.rng import ensure_key
from vqa_weave.exceptions import InvalidCostMode, UndifferentiableBlock
from vqa_weave.state.register import QubitRegister
from vqa_weave.vqa.circuit import Circuit
from vqa_weave.vqa_weave import Config

logger = logging.getLogger(__name__)


class CostMode(Enum):
    BITSTRING = "BITSTRING"
    STATE = "STATE"
    OBSERVABLE = "OBSERVABLE"


class GradientMethod(Enum):
    """
    ANALYTIC: adjoint differentiation through the block derivative operators
    FINITE_DIFFERENCE: central differences of the cost
    PARAMETER_SHIFT: two-term shift rule, rotation gates only
    """

    ANALYTIC = "analytic"
    FINITE_DIFFERENCE = "finite_difference"
    PARAMETER_SHIFT = "parameter_shift"


@dataclass(frozen=True)
class BitstringCost:
    """
    Scores measured bitstrings, e.g. ``BitstringCost(lambda b: b.count("1"))``.
    The function must be deterministic, its values are cached per bitstring.
    """

    fn: Callable[[str], float]
    shots: Optional[int] = None
    mode: ClassVar[CostMode] = CostMode.BITSTRING

    def __post_init__(self) -> None:
        if not callable(self.fn):
            raise InvalidCostMode("BITSTRING cost requires a callable bitstring -> cost")
        if self.shots is not None and self.shots < 1:
            raise ValueError(f"At least one shot is required, got {self.shots}")


@dataclass(frozen=True)
class StateCost:
    """
    Scores the final state vector shaped (2**n, 1)
    """

    fn: Callable[[jnp.ndarray], float]
    mode: ClassVar[CostMode] = CostMode.STATE

    def __post_init__(self) -> None:
        if not callable(self.fn):
            raise InvalidCostMode("STATE cost requires a callable state -> cost")


@dataclass(frozen=True, eq=False)
class ObservableCost:
    """
    Cost is <psi|O|psi> for a fixed Hermitian observable O
    """

    observable: jnp.ndarray = field(repr=False)
    mode: ClassVar[CostMode] = CostMode.OBSERVABLE

    def __post_init__(self) -> None:
        if callable(self.observable):
            raise InvalidCostMode(
                "OBSERVABLE cost takes an operator, not a scoring function"
            )
        observable = jnp.asarray(self.observable, dtype=jnp.complex128)
        if not is_hermitian(observable):
            raise ValueError("Observable must be a square Hermitian matrix")
        object.__setattr__(self, "observable", observable)


CostSpec = Union[BitstringCost, StateCost, ObservableCost]


def _map(fn: Callable[[int], float], items: range, workers: int) -> List[float]:
    if workers <= 1 or len(items) <= 1:
        return [fn(i) for i in items]
    with ThreadPoolExecutor(
        max_workers=min(workers, len(items)), thread_name_prefix="vqa-gradient"
    ) as pool:
        return list(pool.map(fn, items))


class CostEvaluator:
    """
    Scores circuit parameters under one cost mode

    Parameters
    ----------
    circuit: Circuit
        Circuit producing the final state
    mode: Union[CostMode, str]
        Cost mode, selected once
    cost: CostSpec
        Cost definition, its variant has to match `mode`
    initial_state: Optional[str]
        Bitstring label of the initial register state, all zeros by default

    Raises
    ------
    InvalidCostMode
        If `cost` does not match `mode`
    """

    def __init__(
        self,
        circuit: Circuit,
        mode: Union[CostMode, str],
        cost: CostSpec,
        initial_state: Optional[str] = None,
    ) -> None:
        try:
            mode = CostMode(mode.upper() if isinstance(mode, str) else mode)
        except ValueError:
            raise InvalidCostMode(f"Unknown cost mode {mode!r}")
        if not isinstance(cost, (BitstringCost, StateCost, ObservableCost)):
            raise InvalidCostMode(f"Unsupported cost definition {cost!r}")
        if cost.mode is not mode:
            raise InvalidCostMode(
                f"{cost.mode.value} cost cannot be evaluated in {mode.value} mode"
            )
        if isinstance(cost, ObservableCost):
            dim = 2**circuit.num_qubits
            if cost.observable.shape != (dim, dim):
                raise ValueError(
                    f"Observable of shape {cost.observable.shape} does not match "
                    f"{circuit.num_qubits} qubit(s)"
                )
        if initial_state is not None and len(initial_state) != circuit.num_qubits:
            raise ValueError(
                f"Initial state {initial_state!r} does not have "
                f"{circuit.num_qubits} qubit(s)"
            )
        self.circuit = circuit
        self.mode: CostMode = mode
        self.cost = cost
        self.initial_state = initial_state
        self._bitstring_costs: Optional[jnp.ndarray] = None

    def __repr__(self) -> str:
        return f"CostEvaluator(mode={self.mode.value}, circuit={self.circuit!r})"

    def with_circuit(self, circuit: Circuit) -> "CostEvaluator":
        evaluator = CostEvaluator(circuit, self.mode, self.cost, self.initial_state)
        evaluator._bitstring_costs = self._bitstring_costs
        return evaluator

    def _initial_vector(self) -> jnp.ndarray:
        return QubitRegister(self.circuit.num_qubits, self.initial_state).state

    def bitstring_costs(self) -> jnp.ndarray:
        """
        Cost of every computational basis outcome, BITSTRING mode only
        """
        if not isinstance(self.cost, BitstringCost):
            raise InvalidCostMode(
                f"Bitstring costs are not defined in {self.mode.value} mode"
            )
        if self._bitstring_costs is None:
            self._bitstring_costs = jnp.array(
                [float(self.cost.fn(b)) for b in all_bitstrings(self.circuit.num_qubits)]
            )
        return self._bitstring_costs

    def observable_matrix(self) -> Optional[jnp.ndarray]:
        """
        Operator whose expectation value is the (exact) cost, None in STATE mode
        """
        match self.cost:
            case ObservableCost():
                return self.cost.observable
            case BitstringCost():
                return jnp.diag(self.bitstring_costs().astype(jnp.complex128))
        return None

    def final_state(self, params: Any) -> jnp.ndarray:
        return self.circuit.final_state(params, self.initial_state)

    def cost_from_state(self, state: jnp.ndarray, key: jnp.ndarray | None = None) -> float:
        """
        Scores a final state vector under the configured mode
        """
        match self.cost:
            case BitstringCost(shots=None):
                probs = kernels.probabilities_vector(state)
                return float(jnp.dot(probs, self.bitstring_costs()))
            case BitstringCost(shots=shots):
                register = QubitRegister(self.circuit.num_qubits, state)
                outcomes = register.sample(shots, key=key)
                indices = jnp.array([int(b, 2) for b in outcomes])
                return float(jnp.mean(self.bitstring_costs()[indices]))
            case StateCost(fn=fn):
                return float(fn(state))
            case ObservableCost(observable=observable):
                return float(kernels.expectation_vector(state, observable))
        raise InvalidCostMode(f"Unsupported cost definition {self.cost!r}")

    def evaluate(self, params: Any, key: jnp.ndarray | None = None) -> float:
        return self.cost_from_state(self.final_state(params), key=key)

    def check_gradient(self, method: Union[GradientMethod, str]) -> GradientMethod:
        """
        Validates that gradients of `method` are available before any
        simulation runs

        Raises
        ------
        InvalidCostMode
            If analytic gradients are requested in STATE mode
        UndifferentiableBlock
            If a block lacks derivative operators (ANALYTIC) or a shift
            rule (PARAMETER_SHIFT)
        """
        method = GradientMethod(method)
        match method:
            case GradientMethod.ANALYTIC:
                if self.mode is CostMode.STATE:
                    raise InvalidCostMode(
                        "Analytic gradients need an OBSERVABLE or BITSTRING cost, "
                        "use finite differences in STATE mode"
                    )
                missing = self.circuit.undifferentiable_blocks()
                if missing:
                    raise UndifferentiableBlock(missing[0].name)
            case GradientMethod.PARAMETER_SHIFT:
                for block in self.circuit.blocks:
                    if block.num_params > 0 and not block.shift_rule:
                        raise UndifferentiableBlock(
                            block.name, "no parameter shift rule"
                        )
        return method

    def gradient(
        self,
        params: Any,
        method: Union[GradientMethod, str] = GradientMethod.ANALYTIC,
        step: float = 1e-6,
        workers: Optional[int] = None,
        key: jnp.ndarray | None = None,
    ) -> jnp.ndarray:
        """
        Gradient of the cost with respect to the flat parameter vector

        Parameters
        ----------
        params: Any
            Circuit parameters
        method: GradientMethod
            Differentiation method, see :class:`GradientMethod`
        step: float
            Step of the finite differences
        workers: Optional[int]
            Threads evaluating independent components, Config().workers by default
        key: jnp.ndarray | None
            PRNG key shared by all shifted evaluations of a sampled cost
        """
        method = self.check_gradient(method)
        params = self.circuit.check_parameters(params)
        if method is GradientMethod.ANALYTIC:
            return self._adjoint_gradient(params)

        workers = Config().workers if workers is None else workers
        if isinstance(self.cost, BitstringCost) and self.cost.shots is not None:
            key = ensure_key(key)
        if method is GradientMethod.PARAMETER_SHIFT:
            shift, scale = jnp.pi / 2, 0.5
        else:
            shift, scale = step, 1 / (2 * step)

        def component(k: int) -> float:
            offset = jnp.zeros_like(params).at[k].set(shift)
            forward = self.evaluate(params + offset, key=key)
            backward = self.evaluate(params - offset, key=key)
            return (forward - backward) * scale

        return jnp.array(_map(component, range(params.shape[0]), workers))

    def value_and_gradient(
        self,
        params: Any,
        method: Union[GradientMethod, str] = GradientMethod.ANALYTIC,
        step: float = 1e-6,
        workers: Optional[int] = None,
        key: jnp.ndarray | None = None,
    ) -> Tuple[float, jnp.ndarray]:
        value = self.evaluate(params, key=key)
        return value, self.gradient(params, method, step=step, workers=workers, key=key)

    def _adjoint_gradient(self, params: jnp.ndarray) -> jnp.ndarray:
        """
        dC/dtheta_k = 2 Re <psi| O U_N ... U_{j+1} dU_j |psi_{j-1}>

        The bra side is propagated backwards through the circuit once, so
        every block is visited twice in total.
        """
        observable = self.observable_matrix()
        assert observable is not None
        dims = self.circuit.state_dims
        instances = self.circuit.instances(params)
        contract = Config().contractions

        states = [self._initial_vector()]
        operators = []
        for instance in instances:
            operator = instance.operator
            operators.append(operator)
            states.append(
                adapters.apply_operation_vector(
                    dims,
                    instance.block.targets,
                    states[-1],
                    operator,
                    use_contraction=contract,
                )
            )

        gradient = np.zeros(params.shape[0])
        bra = observable @ states[-1]
        for j in range(len(instances) - 1, -1, -1):
            instance = instances[j]
            targets = instance.block.targets
            for m, derivative in enumerate(instance.derivatives()):
                ket = adapters.apply_operation_vector(
                    dims, targets, states[j], derivative, use_contraction=contract
                )
                value = jnp.vdot(bra.reshape(-1), ket.reshape(-1))
                gradient[instance.offset + m] += 2 * float(jnp.real(value))
            bra = adapters.apply_operation_vector(
                dims, targets, bra, jnp.conj(operators[j]).T, use_contraction=contract
            )
        return jnp.asarray(gradient)
