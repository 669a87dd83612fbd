from typing import Sequence
import numpy as np


class SwarmSampler():
    """
    Draws the initial positions and velocities of a particle swarm.

    Positions are uniform within [lower, upper] in every dimension, velocities
    are uniform within [0, velocity_fraction * (upper - lower)].
    """

    def __init__(self,
                 seed,
                 lower_bounds: Sequence[float],
                 upper_bounds: Sequence[float],
                 velocity_fraction: float = 0.25):
        self.lower_bounds = np.asarray(lower_bounds, dtype=float)
        self.upper_bounds = np.asarray(upper_bounds, dtype=float)
        self.velocity_fraction = velocity_fraction
        self.seed = seed

        self._rng = None

    @property
    def rng(self) -> np.random.Generator:
        if self._rng is None:
            self._rng = np.random.default_rng(seed=self.seed)
        return self._rng

    @property
    def n_dims(self) -> int:
        return len(self.lower_bounds)

    def random_positions(self, n: int) -> np.ndarray:
        return self.rng.uniform(self.lower_bounds,
                                self.upper_bounds,
                                size=(n, self.n_dims))

    def random_velocities(self, n: int) -> np.ndarray:
        span = self.velocity_fraction * (self.upper_bounds -
                                         self.lower_bounds)
        return self.rng.uniform(0, span, size=(n, self.n_dims))
