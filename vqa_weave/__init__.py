"""Top-level vqa_weave helpers."""

# Keep JAX RNG behavior stable across versions by pinning the legacy PRNG
# implementation. This needs to run before importing modules that draw keys.

import jax

jax.config.update("jax_default_prng_impl", "threefry2x32")
jax.config.update("jax_enable_x64", True)

from vqa_weave import _math, core, extra, operation, state, vqa  # noqa: E402
from vqa_weave.exceptions import (  # noqa: E402
    ArityMismatch,
    InvalidCostMode,
    UndifferentiableBlock,
    VQAError,
)
from vqa_weave.vqa import (  # noqa: E402
    VQA,
    BitstringCost,
    Circuit,
    CostEvaluator,
    CostMode,
    GateBlock,
    GradientMethod,
    HamiltonianBlock,
    ObservableCost,
    OptimizationMethod,
    OptimizationResult,
    OptimizationStatus,
    Optimizer,
    OptimizerConfig,
    ParameterizedBlock,
    StateCost,
    VQAConfig,
)
from vqa_weave.vqa_weave import Config, Session  # noqa: E402

__all__ = [
    "core",
    "extra",
    "_math",
    "operation",
    "state",
    "vqa",
    "Config",
    "Session",
    "VQA",
    "VQAConfig",
    "ParameterizedBlock",
    "GateBlock",
    "HamiltonianBlock",
    "Circuit",
    "CostEvaluator",
    "CostMode",
    "BitstringCost",
    "StateCost",
    "ObservableCost",
    "GradientMethod",
    "Optimizer",
    "OptimizerConfig",
    "OptimizationMethod",
    "OptimizationResult",
    "OptimizationStatus",
    "ArityMismatch",
    "InvalidCostMode",
    "UndifferentiableBlock",
    "VQAError",
]
