import random
import sys
from typing import Any

import jax
import jax.numpy as jnp


class Config:
    _instance = None

    def __new__(cls, *args: Any, **kwargs: Any) -> "Config":
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls, *args, **kwargs)
        return cls._instance

    def __init__(self) -> None:
        if not hasattr(self, "_initialized"):
            self._initialized = True  # Prevents reinitialization
            self._random_seed = random.randint(0, sys.maxsize)
            self._key = jax.random.PRNGKey(self._random_seed)
            self._contractions = True
            self._workers = 1

    def set_seed(self, seed: int) -> None:
        """
        For reproducability one can set a seed for random operations
        (parameter initialization and shot sampling)

        Parameters
        ----------
        seed: int
            Seed to be used by random processes
        """
        self._random_seed = seed
        self._key = jax.random.PRNGKey(seed)

    @property
    def random_seed(self) -> int:
        return self._random_seed

    @property
    def random_key(self) -> jnp.ndarray:
        """
        Splits the current key and returns a new one for random operations
        """
        key, self._key = jax.random.split(self._key)
        return key

    def set_contraction(self, cs: bool) -> None:
        self._contractions = cs

    @property
    def contractions(self) -> bool:
        return self._contractions

    @property
    def workers(self) -> int:
        return self._workers

    def set_workers(self, workers: int) -> None:
        """
        Default number of worker threads used for independent gradient
        components (finite difference, parameter shift)
        """
        if int(workers) < 1:
            raise ValueError(f"At least one worker is required, got {workers}")
        self._workers = int(workers)


class Session:
    """
    Lightweight context manager to scope Config settings per run.

    Example:
        with Session(seed=0, workers=4):
            ...
    Restores previous Config values on exit so tests/runs stay isolated.
    """

    def __init__(
        self,
        *,
        seed: int | None = None,
        contractions: bool | None = None,
        workers: int | None = None,
    ) -> None:
        cfg = Config()
        self._prev = {
            "seed": cfg.random_seed,
            "key": cfg._key,  # type: ignore[attr-defined]
            "contractions": cfg.contractions,
            "workers": cfg.workers,
        }
        self._seed = seed
        self._contractions = contractions
        self._workers = workers
        self._cfg = cfg

    def __enter__(self) -> "Config":
        if self._seed is not None:
            self._cfg.set_seed(self._seed)
        if self._contractions is not None:
            self._cfg.set_contraction(self._contractions)
        if self._workers is not None:
            self._cfg.set_workers(self._workers)
        return self._cfg

    def __exit__(self, exc_type, exc, tb) -> None:
        self._cfg._random_seed = self._prev["seed"]  # type: ignore[attr-defined]
        self._cfg._key = self._prev["key"]  # type: ignore[attr-defined]
        self._cfg.set_contraction(self._prev["contractions"])
        self._cfg.set_workers(self._prev["workers"])
