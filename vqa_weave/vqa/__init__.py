# flake8: noqa

from .blocks import (  # noqa: F401
    DerivativeMethod,
    GateBlock,
    HamiltonianBlock,
    ParameterizedBlock,
)
from .circuit import BlockInstance, Circuit  # noqa: F401
from .cost import (  # noqa: F401
    BitstringCost,
    CostEvaluator,
    CostMode,
    CostSpec,
    GradientMethod,
    ObservableCost,
    StateCost,
)
from .optimizer import (  # noqa: F401
    OptimizationMethod,
    Optimizer,
    OptimizerConfig,
    initial_parameters,
)
from .result import OptimizationResult, OptimizationStatus  # noqa: F401
from .vqa import VQA, VQAConfig  # noqa: F401
