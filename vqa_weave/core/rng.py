"""
PRNG key helper for sampled costs.
"""

from __future__ import annotations

import jax.numpy as jnp

from vqa_weave.vqa_weave import Config


def ensure_key(key: jnp.ndarray | None) -> jnp.ndarray:
    """
    Use the provided key or draw a fresh one from Config.
    """
    return key if key is not None else Config().random_key
