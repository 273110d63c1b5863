"""Counters and timers collected while a simulation runs"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, fields


@dataclass
class Statistics:
    """Per-simulation statistics

    Attributes:
        iterations: Newton iterations (all analyses)
        transient_iterations: Newton iterations spent on timepoints
        time_points: Timepoints attempted
        accepted: Timepoints accepted
        rejected: Timepoints rejected (non-convergence or truncation error)
        homotopy_steps: Continuation steps taken by gmin/source stepping
        load_time: Seconds spent loading behaviors
        solve_time: Seconds spent in the linear solver
    """
    iterations: int = 0
    transient_iterations: int = 0
    time_points: int = 0
    accepted: int = 0
    rejected: int = 0
    homotopy_steps: int = 0
    load_time: float = 0.0
    solve_time: float = 0.0

    def reset(self) -> None:
        for f in fields(self):
            setattr(self, f.name, f.default)

    @contextmanager
    def timed(self, attribute: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            setattr(self, attribute, getattr(self, attribute) + time.perf_counter() - start)
