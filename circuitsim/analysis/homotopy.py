"""Homotopy algorithms for DC operating point convergence.

When plain Newton-Raphson fails to find an operating point, these
continuation methods solve a sequence of easier problems, each starting
from the solution of the previous one.

The default homotopy chain is: gdev -> gshunt -> src
- gdev: Extra GMIN across nonlinear junctions (stepped down by decades)
- gshunt: Shunt conductance from all nodes to ground (stepped down)
- src: Source stepping from 0->100% (with GMIN fallback at factor=0)

Every strategy restores the last good solution before retrying a failed
step, and leaves gmin and the source factor at their nominal values when
it returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

from circuitsim.analysis.state import InitializationMode
from circuitsim.errors import ConfigurationError
from circuitsim.logging import get_logger

if TYPE_CHECKING:
    from circuitsim.analysis.simulation import BaseSimulation

logger = get_logger("homotopy")


@dataclass
class HomotopyConfig:
    """Configuration for homotopy algorithms."""

    # GMIN stepping parameters (gdev/gshunt modes)
    gmin_start: float = 1e-3
    gmin_target: float = 1e-13
    gmin_factor: float = 10.0
    gmin_factor_min: float = 1.1
    gmin_max: float = 1.0
    gmin_max_steps: int = 100

    # Source stepping parameters
    source_step: float = 0.1
    source_step_min: float = 0.001
    source_scale: float = 2.0
    source_max_steps: int = 100

    # Homotopy chain (default: gdev -> gshunt -> src)
    chain: Tuple[str, ...] = ("gdev", "gshunt", "src")


@dataclass
class HomotopyResult:
    """Result from a homotopy algorithm."""

    converged: bool
    method: str = ""
    iterations: int = 0
    homotopy_steps: int = 0
    final_gmin: float = 0.0
    final_source_factor: float = 1.0


def _apply_gmin(simulation: BaseSimulation, mode: str, extra: float) -> None:
    state = simulation.state
    nominal = simulation.configuration.gmin
    if mode == "gdev":
        state.gmin = nominal + extra
        state.diagonal_gmin = 0.0
    else:
        state.gmin = nominal
        state.diagonal_gmin = extra


def _step(simulation: BaseSimulation, max_iterations: int) -> bool:
    simulation.statistics.homotopy_steps += 1
    return simulation.try_iterate(max_iterations)


def gmin_stepping(
    simulation: BaseSimulation,
    max_iterations: int,
    config: HomotopyConfig,
    mode: str = "gdev",
) -> HomotopyResult:
    """Adaptive GMIN stepping.

    Gradually reduces GMIN from a high starting value down to the target,
    with adaptive step adjustment based on convergence behavior, then
    solves once more at the nominal GMIN.

    Args:
        simulation: Simulation whose state is iterated
        max_iterations: Newton iteration cap per step
        config: Homotopy configuration
        mode: "gdev" (junction GMIN) or "gshunt" (shunt to ground)

    Returns:
        HomotopyResult; on success the solution is in the simulation state
    """
    state = simulation.state
    at_gmin = config.gmin_start
    target_gmin = config.gmin_target
    factor = config.gmin_factor

    initial = state.solution.copy()
    good = initial
    good_gmin = at_gmin
    continuation = False
    total_iterations = 0
    homotopy_steps = 0

    logger.info(f"Homotopy: Starting {mode} stepping from {at_gmin:.2e}")

    for _ in range(config.gmin_max_steps):
        homotopy_steps += 1
        _apply_gmin(simulation, mode, at_gmin)
        state.init = InitializationMode.NONE if continuation else simulation.initial_mode()
        converged = _step(simulation, max_iterations)
        total_iterations += simulation.last_iterations

        if converged:
            continuation = True
            good = state.solution.copy()
            good_gmin = at_gmin
            logger.debug(
                f"Homotopy: {mode}={at_gmin:.2e}, step {homotopy_steps} "
                f"converged in {simulation.last_iterations} iterations"
            )

            if at_gmin <= target_gmin:
                break

            # Converging slowly - decrease step size
            if simulation.last_iterations > max_iterations * 3 // 4:
                factor = max(factor ** 0.5, config.gmin_factor_min)

            if at_gmin / factor < target_gmin:
                factor = at_gmin / target_gmin
                at_gmin = target_gmin
            else:
                at_gmin = at_gmin / factor
        else:
            logger.debug(
                f"Homotopy: {mode}={at_gmin:.2e}, step {homotopy_steps} "
                f"failed to converge in {simulation.last_iterations} iterations"
            )

            if not continuation:
                # No good solution yet, increase gmin
                state.solution[:] = initial
                at_gmin = at_gmin * factor
                if at_gmin > config.gmin_max:
                    logger.info(f"Homotopy: {mode} stepping failed (gmin too large)")
                    break
            else:
                # Have a good solution, decrease factor and backtrack
                state.solution[:] = good
                factor = factor ** 0.25
                if factor < config.gmin_factor_min:
                    logger.info(f"Homotopy: {mode} stepping failed (factor exhausted)")
                    break
                at_gmin = max(good_gmin / factor, target_gmin)

    _apply_gmin(simulation, mode, 0.0)
    if not continuation:
        state.solution[:] = initial
        return HomotopyResult(
            converged=False,
            method=f"{mode}_stepping",
            iterations=total_iterations,
            homotopy_steps=homotopy_steps,
            final_gmin=at_gmin,
        )

    # Final solve at the nominal gmin
    state.solution[:] = good
    state.init = InitializationMode.NONE
    converged = _step(simulation, max_iterations)
    total_iterations += simulation.last_iterations
    homotopy_steps += 1
    if not converged:
        state.solution[:] = good

    logger.info(
        f"Homotopy: {mode} final step "
        f"{'converged' if converged else 'failed'} in {simulation.last_iterations} iterations"
    )
    return HomotopyResult(
        converged=converged,
        method=f"{mode}_stepping",
        iterations=total_iterations,
        homotopy_steps=homotopy_steps,
        final_gmin=simulation.configuration.gmin,
    )


def source_stepping(
    simulation: BaseSimulation,
    max_iterations: int,
    config: HomotopyConfig,
) -> HomotopyResult:
    """Adaptive source stepping with GMIN fallback.

    Ramps all independent sources from 0 to 100%. If the initial solve
    at source_factor=0 fails, GMIN stepping is tried there first.

    Args:
        simulation: Simulation whose state is iterated
        max_iterations: Newton iteration cap per step
        config: Homotopy configuration

    Returns:
        HomotopyResult; on success the solution is in the simulation state
    """
    state = simulation.state
    raise_step = config.source_step
    initial = state.solution.copy()
    good_factor = 0.0
    total_iterations = 0
    homotopy_steps = 1

    logger.info("Homotopy: Starting source stepping")

    try:
        state.source_factor = 0.0
        state.init = simulation.initial_mode()
        converged = _step(simulation, max_iterations)
        total_iterations += simulation.last_iterations

        if not converged:
            state.solution[:] = initial
            for mode in ("gdev", "gshunt"):
                logger.info(f"Homotopy: Trying {mode} stepping at source_factor=0")
                gmin_result = gmin_stepping(simulation, max_iterations, config, mode)
                total_iterations += gmin_result.iterations
                homotopy_steps += gmin_result.homotopy_steps
                if gmin_result.converged:
                    break
            else:
                logger.info("Homotopy: Source stepping failed (could not solve at source=0)")
                state.solution[:] = initial
                return HomotopyResult(
                    converged=False,
                    method="source_stepping",
                    iterations=total_iterations,
                    homotopy_steps=homotopy_steps,
                    final_source_factor=0.0,
                )

        good = state.solution.copy()
        for _ in range(config.source_max_steps):
            new_factor = min(good_factor + raise_step, 1.0)
            state.source_factor = new_factor
            state.init = InitializationMode.NONE
            converged = _step(simulation, max_iterations)
            total_iterations += simulation.last_iterations
            homotopy_steps += 1

            if converged:
                good = state.solution.copy()
                good_factor = new_factor
                logger.debug(
                    f"Homotopy: srcfact={new_factor:.2f}, step {homotopy_steps} "
                    f"converged in {simulation.last_iterations} iterations"
                )
                if good_factor >= 1.0:
                    logger.info("Homotopy: Source stepping succeeded")
                    return HomotopyResult(
                        converged=True,
                        method="source_stepping",
                        iterations=total_iterations,
                        homotopy_steps=homotopy_steps,
                        final_source_factor=1.0,
                    )
                if simulation.last_iterations <= max_iterations // 4:
                    raise_step *= config.source_scale
                elif simulation.last_iterations > max_iterations * 3 // 4:
                    raise_step = max(raise_step / config.source_scale, config.source_step_min)
            else:
                logger.debug(
                    f"Homotopy: srcfact={new_factor:.2f}, step {homotopy_steps} "
                    f"failed to converge in {simulation.last_iterations} iterations"
                )
                state.solution[:] = good
                raise_step *= 0.5
                if raise_step < config.source_step_min:
                    logger.info("Homotopy: Source stepping failed (step too small)")
                    break
    finally:
        state.source_factor = 1.0

    state.solution[:] = initial
    return HomotopyResult(
        converged=False,
        method="source_stepping",
        iterations=total_iterations,
        homotopy_steps=homotopy_steps,
        final_source_factor=good_factor,
    )


def run_homotopy_chain(
    simulation: BaseSimulation,
    max_iterations: int,
    config: HomotopyConfig,
) -> HomotopyResult:
    """Run the configured homotopy chain until one algorithm succeeds."""
    total_iterations = 0
    homotopy_steps = 0

    for method in config.chain:
        if method in ("gdev", "gshunt"):
            result = gmin_stepping(simulation, max_iterations, config, mode=method)
        elif method == "src":
            result = source_stepping(simulation, max_iterations, config)
        else:
            raise ConfigurationError(f"Unknown homotopy method '{method}'")

        total_iterations += result.iterations
        homotopy_steps += result.homotopy_steps
        if result.converged:
            result.iterations = total_iterations
            result.homotopy_steps = homotopy_steps
            return result

    return HomotopyResult(
        converged=False,
        method="chain",
        iterations=total_iterations,
        homotopy_steps=homotopy_steps,
    )
