"""Injectable pseudo-random sources for path simulation."""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np


class RandomSource(ABC):
    """Hands out one independent generator per simulated path.

    Giving every path its own stream keeps paths free of shared mutable
    state, so they can run on any thread in any order.
    """

    @abstractmethod
    def path_generators(self, n_paths: int) -> List[np.random.Generator]:
        """Return `n_paths` statistically independent generators."""
        ...


class NumpyRandomSource(RandomSource):
    """
    PCG64 generators spawned from a numpy SeedSequence.

    With a seed, every call replays the same child streams, so identical
    inputs always produce identical results. Without a seed each call draws
    fresh entropy from the OS.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed

    @property
    def is_seeded(self) -> bool:
        return self.seed is not None

    def path_generators(self, n_paths: int) -> List[np.random.Generator]:
        root = np.random.SeedSequence(self.seed)
        return [np.random.Generator(np.random.PCG64(child)) for child in root.spawn(n_paths)]
