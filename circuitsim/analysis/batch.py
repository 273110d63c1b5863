"""Run independent simulations of one circuit concurrently

Each job gets its own simulation object (and with it its own state,
equation store and integration history); the circuit is only read.
Typical uses are Monte-Carlo corners or splitting a large sweep.

Example:
    >>> results = run_parallel(
    ...     circuit,
    ...     lambda temperature: OP("op", BaseConfiguration(temperature=temperature)),
    ...     [250.0, 300.15, 350.0],
    ...     exports=lambda: [RealVoltageExport("out")],
    ... )
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, Sequence

from circuitsim.logging import get_logger

logger = get_logger("batch")


def run_parallel(
    circuit,
    factory: Callable[[Any], Any],
    configurations: Iterable[Any],
    exports: Optional[Callable[[], Sequence]] = None,
    max_workers: Optional[int] = None,
) -> List[Any]:
    """Build a simulation per configuration and run them on a thread pool.

    Args:
        circuit: Circuit shared (read-only) by all simulations
        factory: Creates a fresh simulation from one configuration
        configurations: One entry per simulation to run
        exports: Creates a fresh export list for each simulation
        max_workers: Thread pool size (None lets the executor decide)

    Returns:
        Results in the order of ``configurations``. A job that raised
        contributes its exception object instead of a result.
    """
    configurations = list(configurations)

    def job(configuration):
        simulation = factory(configuration)
        return simulation.run(circuit, exports() if exports is not None else ())

    results: List[Any] = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(job, configuration) for configuration in configurations]
        for index, future in enumerate(futures):
            try:
                results.append(future.result())
            except Exception as e:
                logger.warning(f"Parallel job {index} failed: {e}")
                results.append(e)
    return results
