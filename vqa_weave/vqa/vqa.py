from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import jax.numpy as jnp

from vqa_weave.exceptions import InvalidCostMode
from vqa_weave.vqa.blocks import ParameterizedBlock
from vqa_weave.vqa.circuit import Circuit
from vqa_weave.vqa.cost import CostEvaluator, CostMode, CostSpec
from vqa_weave.vqa.optimizer import (
    InitialPolicy,
    Optimizer,
    OptimizerConfig,
    initial_parameters,
)
from vqa_weave.vqa.result import OptimizationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VQAConfig:
    """
    Global hyperparameters of a variational problem

    Attributes
    ----------
    num_qubits: int
        Size of the register
    num_layers: int
        How often the layered blocks are repeated
    cost_method: CostMode
        Cost mode, fixed for the lifetime of the problem
    initial_state: Optional[str]
        Bitstring label of the initial register state, all zeros if None
    optimizer: OptimizerConfig
        Default optimizer settings, overridden per call of
        :meth:`VQA.optimize_parameters`
    """

    num_qubits: int
    num_layers: int = 1
    cost_method: CostMode = CostMode.OBSERVABLE
    initial_state: Optional[str] = None
    optimizer: OptimizerConfig = dataclasses.field(default_factory=OptimizerConfig)

    def __post_init__(self) -> None:
        method = self.cost_method
        try:
            method = CostMode(method.upper() if isinstance(method, str) else method)
        except ValueError:
            raise InvalidCostMode(f"Unknown cost mode {self.cost_method!r}")
        object.__setattr__(self, "cost_method", method)
        if self.num_qubits < 1:
            raise ValueError(f"num_qubits must be positive, got {self.num_qubits}")
        if self.num_layers < 1:
            raise ValueError(f"num_layers must be positive, got {self.num_layers}")
        if self.initial_state is not None and (
            len(self.initial_state) != self.num_qubits
            or any(c not in "01" for c in self.initial_state)
        ):
            raise ValueError(
                f"Initial state {self.initial_state!r} is not a bitstring of "
                f"{self.num_qubits} qubit(s)"
            )


class VQA:
    """
    Variational problem definition and entry point of the optimization

    Example:
        vqa = VQA(VQAConfig(num_qubits=3, num_layers=2, cost_method="OBSERVABLE"))
        for block in qaoa_blocks(h_p, 3):
            vqa.add_block(block)
        vqa.set_cost(ObservableCost(h_p))
        result = vqa.optimize_parameters(method="bfgs", initial="ones")
    """

    def __init__(
        self,
        config: VQAConfig,
        blocks: Optional[List[ParameterizedBlock]] = None,
        cost: Optional[CostSpec] = None,
    ) -> None:
        self.config = config
        self._blocks: List[ParameterizedBlock] = []
        self._cost: Optional[CostSpec] = None
        for block in blocks or []:
            self.add_block(block)
        if cost is not None:
            self.set_cost(cost)

    def __repr__(self) -> str:
        return (
            f"VQA(qubits={self.config.num_qubits}, layers={self.config.num_layers}, "
            f"cost={self.config.cost_method.value}, blocks={len(self._blocks)})"
        )

    @property
    def blocks(self) -> Tuple[ParameterizedBlock, ...]:
        return tuple(self._blocks)

    @property
    def cost(self) -> Optional[CostSpec]:
        return self._cost

    def add_block(self, block: ParameterizedBlock) -> None:
        if max(block.targets) >= self.config.num_qubits:
            raise ValueError(
                f"Block '{block.name}' targets {list(block.targets)} do not fit "
                f"into {self.config.num_qubits} qubit(s)"
            )
        if any(b.name == block.name for b in self._blocks):
            raise ValueError(f"A block named '{block.name}' already exists")
        self._blocks.append(block)
        logger.debug("Added %r", block)

    def set_cost(self, cost: CostSpec) -> None:
        """
        Raises
        ------
        InvalidCostMode
            If `cost` does not belong to the configured cost method
        """
        mode = getattr(cost, "mode", None)
        if mode is not self.config.cost_method:
            raise InvalidCostMode(
                f"Cost {cost!r} does not match the configured "
                f"{self.config.cost_method.value} cost method"
            )
        self._cost = cost

    @property
    def circuit(self) -> Circuit:
        return Circuit(self.config.num_qubits, self._blocks, self.config.num_layers)

    @property
    def num_params(self) -> int:
        return self.circuit.num_params

    def evaluator(self, circuit: Optional[Circuit] = None) -> CostEvaluator:
        if self._cost is None:
            raise ValueError("No cost defined, call set_cost first")
        return CostEvaluator(
            circuit if circuit is not None else self.circuit,
            self.config.cost_method,
            self._cost,
            self.config.initial_state,
        )

    def get_initial_params(
        self, policy: InitialPolicy = "random", key: jnp.ndarray | None = None
    ) -> jnp.ndarray:
        return initial_parameters(self.num_params, policy, key)

    def unitary(self, params: Any) -> jnp.ndarray:
        return self.circuit.unitary(params)

    def final_state(self, params: Any) -> jnp.ndarray:
        return self.circuit.final_state(params, self.config.initial_state)

    def evaluate_parameters(self, params: Any, key: jnp.ndarray | None = None) -> float:
        """
        Cost of a parameter vector under the configured cost method
        """
        return self.evaluator().evaluate(params, key=key)

    def optimize_parameters(
        self,
        config: Optional[OptimizerConfig] = None,
        **overrides: Any,
    ) -> OptimizationResult:
        """
        Runs the optimizer

        Parameters
        ----------
        config: Optional[OptimizerConfig]
            Optimizer settings, `VQAConfig.optimizer` when None
        **overrides: Any
            Fields of :class:`OptimizerConfig` replacing those of `config`

        Returns
        -------
        OptimizationResult
        """
        config = config if config is not None else self.config.optimizer
        if overrides:
            config = dataclasses.replace(config, **overrides)
        circuit = self.circuit
        optimizer = Optimizer(circuit, self.evaluator(circuit), config)
        return optimizer.run()
