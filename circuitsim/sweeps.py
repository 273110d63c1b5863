"""Sweeps: ordered sets of points for AC (and any other swept) analyses

    LinearSweep(start, stop, points)      evenly spaced points
    DecadeSweep(start, stop, per_decade)  logarithmic, points per decade
    OctaveSweep(start, stop, per_octave)  logarithmic, points per octave
    ListSweep(values)                     explicit points

All sweeps are iterable and convert to a float64 numpy array with
``numpy.asarray(sweep)``.
"""

from typing import Iterable, Iterator

import jax.numpy as jnp
import numpy as np

from circuitsim.errors import ConfigurationError


class Sweep:
    """Base class of all sweeps"""

    def points(self) -> np.ndarray:
        raise NotImplementedError

    def __iter__(self) -> Iterator[float]:
        return iter(float(p) for p in self.points())

    def __len__(self) -> int:
        return len(self.points())

    def __array__(self, dtype=None, copy=None):
        points = self.points()
        return points if dtype is None else points.astype(dtype)


class LinearSweep(Sweep):
    """``points`` evenly spaced values from ``start`` to ``stop`` (inclusive)"""

    def __init__(self, start: float, stop: float, points: int):
        if points < 1:
            raise ConfigurationError(f"Invalid number of points {points}")
        if points == 1 and start != stop:
            raise ConfigurationError("A single-point linear sweep needs start == stop")
        self.start = start
        self.stop = stop
        self.count = points

    def points(self) -> np.ndarray:
        return np.asarray(jnp.linspace(self.start, self.stop, self.count), dtype=np.float64)


class _LogarithmicSweep(Sweep):
    base = 10.0

    def __init__(self, start: float, stop: float, points_per_interval: int):
        if start <= 0 or stop <= 0:
            raise ConfigurationError(f"Logarithmic sweep bounds must be positive: {start}, {stop}")
        if stop < start:
            raise ConfigurationError(f"Sweep stop {stop} is below start {start}")
        if points_per_interval < 1:
            raise ConfigurationError(f"Invalid number of points {points_per_interval}")
        self.start = start
        self.stop = stop
        self.points_per_interval = points_per_interval

    def points(self) -> np.ndarray:
        intervals = jnp.log(self.stop / self.start) / jnp.log(self.base)
        count = int(round(float(intervals) * self.points_per_interval)) + 1
        exponents = jnp.linspace(
            jnp.log(self.start) / jnp.log(self.base),
            jnp.log(self.stop) / jnp.log(self.base),
            count,
        )
        return np.asarray(jnp.power(self.base, exponents), dtype=np.float64)


class DecadeSweep(_LogarithmicSweep):
    """Logarithmic sweep with a fixed number of points per decade"""

    base = 10.0


class OctaveSweep(_LogarithmicSweep):
    """Logarithmic sweep with a fixed number of points per octave"""

    base = 2.0


class ListSweep(Sweep):
    """Explicit list of points, swept in the given order"""

    def __init__(self, values: Iterable[float]):
        self.values = [float(v) for v in values]
        if not self.values:
            raise ConfigurationError("A list sweep needs at least one point")

    def points(self) -> np.ndarray:
        return np.asarray(jnp.asarray(self.values), dtype=np.float64)
