"""
Core tensor kernels and adapters for JIT/vmap-friendly simulation steps.

These functions operate purely on arrays plus the subsystem dimensions and
target indices, and avoid any register state.
"""

from vqa_weave.core import adapters, kernels, rng

__all__ = ["kernels", "adapters", "rng"]
