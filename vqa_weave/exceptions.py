"""
Errors raised by the variational layer.

Configuration errors (arity, cost mode, missing derivatives) are raised
before any simulation work starts. Running out of iterations is not an
error, it is reported through ``OptimizationStatus.NON_CONVERGENCE``.
"""


class VQAError(Exception):
    pass


class ArityMismatch(VQAError, ValueError):
    """
    Raised when a parameter vector does not match the number of free
    parameters a block or circuit declares
    """

    def __init__(self, name: str, expected: int, received: int) -> None:
        self.name = name
        self.expected = expected
        self.received = received
        super().__init__(
            f"'{name}' expects {expected} parameter(s), received {received}"
        )


class InvalidCostMode(VQAError, ValueError):
    """
    Raised when a cost definition does not fit the configured cost mode
    """


class UndifferentiableBlock(VQAError):
    """
    Raised when a gradient is requested for a block that has neither an
    analytic derivative nor a numerical fallback
    """

    def __init__(self, name: str, reason: str | None = None) -> None:
        self.name = name
        message = f"Block '{name}' does not provide derivative operators"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
