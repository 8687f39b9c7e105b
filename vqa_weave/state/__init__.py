# flake8: noqa

from .register import QubitRegister  # noqa: F401
