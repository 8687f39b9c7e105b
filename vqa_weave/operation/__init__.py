# flake8: noqa

from .gate_operation import GateType  # noqa: F401
from .operation import Operation  # noqa: F401
