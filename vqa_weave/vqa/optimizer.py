"""
Optimization loop

The loop is strictly sequential: every iteration assembles the circuit with
the current parameters, scores it, optionally differentiates it and updates
the parameters. Running out of iterations is reported through the result
status, the best parameters and the full cost history are always returned.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from scipy.optimize import minimize

from vqa_weave.exceptions import ArityMismatch
from vqa_weave.vqa.circuit import Circuit
from vqa_weave.vqa.cost import CostEvaluator, CostMode, GradientMethod
from vqa_weave.vqa.result import OptimizationResult, OptimizationStatus
from vqa_weave.vqa_weave import Config

logger = logging.getLogger(__name__)

StopHook = Callable[[int, jnp.ndarray, float], bool]
InitialPolicy = Union[str, Sequence[float], jnp.ndarray]


class OptimizationMethod(Enum):
    """
    Each member carries its scipy name (None for the built-in loops),
    whether it consumes gradients and whether every cost evaluation counts
    as one iteration (COBYLA reports no iteration count of its own)
    """

    GRADIENT_DESCENT = ("gradient_descent", None, True, False)
    ADAM = ("adam", None, True, False)
    COBYLA = ("cobyla", "COBYLA", False, True)
    NELDER_MEAD = ("nelder_mead", "Nelder-Mead", False, False)
    POWELL = ("powell", "Powell", False, False)
    BFGS = ("bfgs", "BFGS", True, False)
    L_BFGS_B = ("l_bfgs_b", "L-BFGS-B", True, False)

    def __init__(
        self,
        label: str,
        scipy_name: Optional[str],
        uses_gradient: bool,
        counts_evaluations: bool,
    ) -> None:
        self.label = label
        self.scipy_name = scipy_name
        self.uses_gradient = uses_gradient
        self.counts_evaluations = counts_evaluations

    @classmethod
    def parse(cls, method: Union["OptimizationMethod", str]) -> "OptimizationMethod":
        if isinstance(method, cls):
            return method
        normalized = str(method).strip().lower().replace("-", "_")
        for member in cls:
            if member.label == normalized:
                return member
        raise ValueError(f"Unknown optimization method {method!r}")


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Immutable optimizer settings

    Attributes
    ----------
    method: OptimizationMethod
        Update rule, built-in loops or a scipy.optimize.minimize method
    max_iterations: int
        Iteration cap (per layer in layer by layer mode)
    tolerance: float
        Convergence tolerance on the cost change or gradient norm
    learning_rate: float
        Step size of the built-in loops
    gradient_method: Optional[GradientMethod]
        How gradients are computed for gradient based methods. None picks
        ANALYTIC, or FINITE_DIFFERENCE for STATE costs which have no
        operator to differentiate against
    finite_difference_step: float
        Step of finite difference gradients
    initial: str | array
        "random" (uniform in [0, 2pi)), "ones", "zeros" or explicit values
    bounds: Optional[Sequence[Tuple[float, float]]]
        Per parameter (low, high) bounds
    frozen_parameters: Tuple[int, ...]
        Indices kept at their initial values
    layer_by_layer: bool
        Grow the circuit one layer at a time
    deadline: Optional[float]
        Wall clock budget in seconds
    should_stop: Optional[StopHook]
        Called after every iteration with (iteration, params, cost), the cost
        being the one evaluated at params
    workers: Optional[int]
        Threads for independent gradient components, Config().workers if None
    seed: Optional[int]
        Seed of the random initialization and shot sampling
    """

    method: OptimizationMethod = OptimizationMethod.GRADIENT_DESCENT
    max_iterations: int = 100
    tolerance: float = 1e-6
    learning_rate: float = 0.1
    gradient_method: Optional[GradientMethod] = None
    finite_difference_step: float = 1e-6
    initial: InitialPolicy = "random"
    bounds: Optional[Sequence[Tuple[float, float]]] = None
    frozen_parameters: Tuple[int, ...] = ()
    layer_by_layer: bool = False
    deadline: Optional[float] = None
    should_stop: Optional[StopHook] = field(default=None, compare=False)
    workers: Optional[int] = None
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", OptimizationMethod.parse(self.method))
        if self.gradient_method is not None:
            object.__setattr__(
                self, "gradient_method", GradientMethod(self.gradient_method)
            )
        object.__setattr__(
            self, "frozen_parameters", tuple(int(i) for i in self.frozen_parameters)
        )
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be non-negative, got {self.tolerance}")
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.finite_difference_step <= 0:
            raise ValueError("finite_difference_step must be positive")
        if self.deadline is not None and self.deadline < 0:
            raise ValueError(f"deadline must be non-negative, got {self.deadline}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be positive, got {self.workers}")
        if isinstance(self.initial, str) and self.initial not in ("random", "ones", "zeros"):
            raise ValueError(f"Unknown initialization policy {self.initial!r}")


def initial_parameters(
    num_params: int,
    policy: InitialPolicy = "random",
    key: jnp.ndarray | None = None,
) -> jnp.ndarray:
    """
    Initial parameter vector following `policy`

    Raises
    ------
    ArityMismatch
        If explicit values do not have `num_params` entries
    """
    if isinstance(policy, str):
        match policy:
            case "random":
                key = key if key is not None else Config().random_key
                return jax.random.uniform(
                    key, (num_params,), dtype=jnp.float64, minval=0.0, maxval=2 * jnp.pi
                )
            case "ones":
                return jnp.ones(num_params, dtype=jnp.float64)
            case "zeros":
                return jnp.zeros(num_params, dtype=jnp.float64)
        raise ValueError(f"Unknown initialization policy {policy!r}")
    params = jnp.atleast_1d(jnp.asarray(policy, dtype=jnp.float64)).reshape(-1)
    if params.shape[0] != num_params:
        raise ArityMismatch("initial parameters", num_params, int(params.shape[0]))
    return params


class _Stop(Exception):
    def __init__(self, status: OptimizationStatus) -> None:
        self.status = status


class _Tracker:
    """
    Records the per-iteration history and the best parameters of a stage
    """

    def __init__(self, params: jnp.ndarray) -> None:
        self.history: List[float] = []
        self.best_params = params
        self.best_cost = math.inf

    def record(self, params: jnp.ndarray, cost: float) -> None:
        self.history.append(float(cost))
        if cost < self.best_cost:
            self.best_cost = float(cost)
            self.best_params = params


class Optimizer:
    """
    Drives parameter updates for a circuit and a cost evaluator

    All configuration problems (missing derivatives, wrong initial vector,
    bad frozen indices or bounds) are raised by the constructor, before any
    simulation work.

    Example:
        optimizer = Optimizer(circuit, evaluator, OptimizerConfig(max_iterations=50))
        result = optimizer.run()
    """

    def __init__(
        self,
        circuit: Circuit,
        evaluator: CostEvaluator,
        config: Optional[OptimizerConfig] = None,
    ) -> None:
        self.circuit = circuit
        self.evaluator = evaluator if evaluator.circuit is circuit else evaluator.with_circuit(circuit)
        self.config = config if config is not None else OptimizerConfig()

        cfg = self.config
        self.gradient_method = cfg.gradient_method
        if self.gradient_method is None:
            self.gradient_method = (
                GradientMethod.FINITE_DIFFERENCE
                if self.evaluator.mode is CostMode.STATE
                else GradientMethod.ANALYTIC
            )
        if cfg.method.uses_gradient:
            self.evaluator.check_gradient(self.gradient_method)
        num_params = circuit.num_params
        for index in cfg.frozen_parameters:
            if not 0 <= index < num_params:
                raise ValueError(
                    f"Frozen parameter index {index} out of range for "
                    f"{num_params} parameter(s)"
                )
        if cfg.bounds is not None and len(cfg.bounds) != num_params:
            raise ArityMismatch("bounds", num_params, len(cfg.bounds))

        self._base_key = (
            jax.random.PRNGKey(cfg.seed) if cfg.seed is not None else Config().random_key
        )
        init_key, self._sample_key = jax.random.split(self._base_key)
        self.initial = initial_parameters(num_params, cfg.initial, init_key)
        self._started: Optional[float] = None

    def run(self) -> OptimizationResult:
        """
        Runs the optimization loop

        Returns
        -------
        OptimizationResult
            Best parameters, cost history and terminal status
        """
        cfg = self.config
        self._started = time.monotonic()
        logger.info(
            "Starting %s optimization of %d parameter(s) over %d layer(s)",
            cfg.method.label,
            self.circuit.num_params,
            self.circuit.num_layers,
        )
        if cfg.layer_by_layer and self.circuit.num_layers > 1:
            params, history, status, message = self._run_layer_by_layer()
        else:
            tracker, status, message = self._run_stage(
                self.circuit, self.evaluator, self.initial
            )
            params, history = tracker.best_params, tracker.history

        final_state = self.evaluator.final_state(params)
        min_cost = self.evaluator.cost_from_state(final_state, key=self._sample_key)
        logger.info(
            "Optimization finished after %d iteration(s): %s, cost %.6g",
            len(history),
            status.value,
            min_cost,
        )
        return OptimizationResult(
            parameters=params,
            cost_history=tuple(history),
            status=status,
            min_cost=min_cost,
            final_state=final_state,
            num_qubits=self.circuit.num_qubits,
            method=cfg.method.label,
            message=message,
        )

    def _run_layer_by_layer(
        self,
    ) -> Tuple[jnp.ndarray, List[float], OptimizationStatus, str]:
        history: List[float] = []
        params = self.initial[: self.circuit.with_layers(1).num_params]
        status, message = OptimizationStatus.NON_CONVERGENCE, ""
        for layer in range(1, self.circuit.num_layers + 1):
            circuit = self.circuit.with_layers(layer)
            evaluator = self.evaluator.with_circuit(circuit)
            start = params.shape[0]
            params = jnp.concatenate([params, self.initial[start : circuit.num_params]])
            logger.debug("Optimizing layer %d of %d", layer, self.circuit.num_layers)
            tracker, status, message = self._run_stage(circuit, evaluator, params)
            history.extend(tracker.history)
            params = tracker.best_params
            if status in (OptimizationStatus.DEADLINE_EXCEEDED, OptimizationStatus.CANCELLED):
                # Remaining layers keep their initial values
                params = jnp.concatenate([params, self.initial[params.shape[0] :]])
                break
        return params, history, status, message

    def _check_stop(self, iteration: int, params: jnp.ndarray, cost: Optional[float]) -> None:
        cfg = self.config
        if cfg.deadline is not None and self._started is not None:
            if time.monotonic() - self._started >= cfg.deadline:
                raise _Stop(OptimizationStatus.DEADLINE_EXCEEDED)
        if cost is not None and cfg.should_stop is not None:
            if cfg.should_stop(iteration, params, cost):
                raise _Stop(OptimizationStatus.CANCELLED)

    def _stage_mask(self, num_params: int) -> jnp.ndarray:
        mask = np.ones(num_params)
        for index in self.config.frozen_parameters:
            if index < num_params:
                mask[index] = 0.0
        return jnp.asarray(mask)

    def _stage_bounds(self, num_params: int) -> Optional[Sequence[Tuple[float, float]]]:
        if self.config.bounds is None:
            return None
        return list(self.config.bounds)[:num_params]

    def _run_stage(
        self,
        circuit: Circuit,
        evaluator: CostEvaluator,
        params: jnp.ndarray,
    ) -> Tuple[_Tracker, OptimizationStatus, str]:
        if self.config.method.scipy_name is None:
            return self._run_builtin(circuit, evaluator, params)
        return self._run_scipy(circuit, evaluator, params)

    def _value_and_gradient(
        self, evaluator: CostEvaluator, params: jnp.ndarray
    ) -> Tuple[float, jnp.ndarray]:
        cfg = self.config
        return evaluator.value_and_gradient(
            params,
            self.gradient_method,
            step=cfg.finite_difference_step,
            workers=cfg.workers,
            key=self._sample_key,
        )

    def _run_builtin(
        self,
        circuit: Circuit,
        evaluator: CostEvaluator,
        params: jnp.ndarray,
    ) -> Tuple[_Tracker, OptimizationStatus, str]:
        cfg = self.config
        tracker = _Tracker(params)
        mask = self._stage_mask(params.shape[0])
        bounds = self._stage_bounds(params.shape[0])
        first_moment = jnp.zeros_like(params)
        second_moment = jnp.zeros_like(params)
        beta1, beta2, eps = 0.9, 0.999, 1e-8
        previous: Optional[float] = None

        try:
            for iteration in range(1, cfg.max_iterations + 1):
                self._check_stop(iteration, params, None)
                cost, grad = self._value_and_gradient(evaluator, params)
                grad = grad * mask
                tracker.record(params, cost)
                logger.debug(
                    "iteration %d cost %.8g",
                    iteration,
                    cost,
                    extra={"iteration": iteration, "cost": cost},
                )
                if (
                    previous is not None and abs(previous - cost) < cfg.tolerance
                ) or float(jnp.linalg.norm(grad)) < cfg.tolerance:
                    return tracker, OptimizationStatus.CONVERGED, "Tolerance reached"
                self._check_stop(iteration, params, cost)
                previous = cost

                if cfg.method is OptimizationMethod.ADAM:
                    first_moment = beta1 * first_moment + (1 - beta1) * grad
                    second_moment = beta2 * second_moment + (1 - beta2) * grad**2
                    m_hat = first_moment / (1 - beta1**iteration)
                    v_hat = second_moment / (1 - beta2**iteration)
                    params = params - cfg.learning_rate * m_hat / (jnp.sqrt(v_hat) + eps)
                else:
                    params = params - cfg.learning_rate * grad
                if bounds is not None:
                    low = jnp.array([b[0] for b in bounds])
                    high = jnp.array([b[1] for b in bounds])
                    params = jnp.clip(params, low, high)
        except _Stop as stop:
            return tracker, stop.status, f"Stopped after {len(tracker.history)} iteration(s)"
        return (
            tracker,
            OptimizationStatus.NON_CONVERGENCE,
            f"Iteration cap of {cfg.max_iterations} reached",
        )

    def _run_scipy(
        self,
        circuit: Circuit,
        evaluator: CostEvaluator,
        params: jnp.ndarray,
    ) -> Tuple[_Tracker, OptimizationStatus, str]:
        cfg = self.config
        tracker = _Tracker(params)
        mask = np.asarray(self._stage_mask(params.shape[0])) > 0
        free = np.flatnonzero(mask)
        full = np.asarray(params, dtype=np.float64).copy()
        cache: dict = {}

        def expand(x: np.ndarray) -> jnp.ndarray:
            values = full.copy()
            values[free] = x
            return jnp.asarray(values)

        def record(current: jnp.ndarray, cost: float) -> None:
            tracker.record(current, cost)
            iteration = len(tracker.history)
            logger.debug(
                "iteration %d cost %.8g",
                iteration,
                cost,
                extra={"iteration": iteration, "cost": cost},
            )
            self._check_stop(iteration, current, cost)

        def objective(x: np.ndarray) -> float:
            point = tuple(np.asarray(x, dtype=np.float64))
            if point not in cache:
                cache.clear()
                current = expand(x)
                cache[point] = evaluator.evaluate(current, key=self._sample_key)
                if cfg.method.counts_evaluations:
                    record(current, cache[point])
            return cache[point]

        def jacobian(x: np.ndarray) -> np.ndarray:
            grad = evaluator.gradient(
                expand(x),
                self.gradient_method,
                step=cfg.finite_difference_step,
                workers=cfg.workers,
                key=self._sample_key,
            )
            return np.asarray(grad)[free]

        def callback(xk: np.ndarray, *args: Any) -> None:
            record(expand(xk), objective(xk))

        bounds = self._stage_bounds(params.shape[0])
        if bounds is not None:
            bounds = [bounds[i] for i in free]

        if free.size == 0:
            return tracker, OptimizationStatus.CONVERGED, "No free parameters"
        try:
            self._check_stop(0, params, None)
            res = minimize(
                objective,
                full[free],
                method=cfg.method.scipy_name,
                jac=jacobian if cfg.method.uses_gradient else None,
                bounds=bounds,
                tol=cfg.tolerance,
                callback=None if cfg.method.counts_evaluations else callback,
                options={"maxiter": cfg.max_iterations},
            )
        except _Stop as stop:
            return tracker, stop.status, f"Stopped after {len(tracker.history)} iteration(s)"

        final = expand(res.x)
        nit = res.get("nit")
        if nit is not None and not cfg.method.counts_evaluations:
            # Some methods skip the callback on their last iteration
            while len(tracker.history) < int(nit):
                tracker.record(final, float(res.fun))
            del tracker.history[int(nit) :]
        if float(res.fun) < tracker.best_cost:
            tracker.best_cost = float(res.fun)
            tracker.best_params = final
        status = (
            OptimizationStatus.CONVERGED
            if res.success
            else OptimizationStatus.NON_CONVERGENCE
        )
        return tracker, status, str(res.message)
