from SercaTools.inputs import RateTable
from SercaTools.util.sampler import SwarmSampler
from SercaTools.util.exceptions import (ConfigurationError,
                                        NumericalDegeneracyError)

from monty.json import MSONable
from scipy.optimize import Bounds
from joblib import Parallel, delayed
from collections.abc import Callable
from typing import Optional, Sequence
import numpy as np
import logging


def get_bounds(rate_table: RateTable) -> Bounds:
    """
    Get the Bounds of the free parameters of a rate table, in the order of
    the optimizer's position vector.
    """
    if rate_table.n_free == 0:
        raise ConfigurationError('The rate table has no free parameters')
    return Bounds(rate_table.lower_bounds, rate_table.upper_bounds)


def partition_particles(n_particles: int,
                        n_workers: int) -> list[tuple[int, int]]:
    """
    Split the swarm into contiguous ranges, one per worker. Worker k owns
    particles [k*P//W, (k+1)*P//W).

    Returns:
        list[tuple[int, int]]: The (start, stop) of every worker's range.
    """
    if n_workers < 1:
        raise ConfigurationError(
            f'n_workers must be at least 1, got {n_workers}')
    return [(k * n_particles // n_workers, (k + 1) * n_particles // n_workers)
            for k in range(n_workers)]


def gather_partitions(
    n_particles: int, n_dims: int, partitions: list[dict]
) -> tuple[np.ndarray, np.ndarray, np.ndarray, list[tuple[int, str]]]:
    """
    Combine the output of every worker into swarm-wide arrays.

    Every worker only contributes the particles of its own range. A range
    that is missing, or a particle claimed by two workers, is an error.

    Args:
        n_particles: The size of the swarm.
        n_dims: The number of free parameters.
        partitions: The output of `evaluate_partition` for every worker.

    Returns:
        tuple: (positions, velocities, residuals, failures)
    """
    positions = np.empty((n_particles, n_dims))
    velocities = np.empty((n_particles, n_dims))
    residuals = np.empty(n_particles)
    owner = np.full(n_particles, -1)
    failures = []

    for k, part in enumerate(partitions):
        start, stop = part['start'], part['stop']
        if not 0 <= start <= stop <= n_particles:
            raise RuntimeError(
                f'Worker {k} returned an invalid range [{start}, {stop})')
        if len(part['residuals']) != stop - start:
            raise RuntimeError(
                f'Worker {k} returned {len(part["residuals"])} residuals for '
                f'the range [{start}, {stop})')
        claimed = owner[start:stop]
        if np.any(claimed != -1):
            raise RuntimeError(
                f'Particles {np.flatnonzero(claimed != -1) + start} were '
                f'returned by more than one worker')
        owner[start:stop] = k
        positions[start:stop] = part['positions']
        velocities[start:stop] = part['velocities']
        residuals[start:stop] = part['residuals']
        failures.extend(part['failures'])

    if np.any(owner == -1):
        raise RuntimeError(
            f'Particles {np.flatnonzero(owner == -1)} were not returned by '
            'any worker')
    return positions, velocities, residuals, failures


def safe_evaluate(objective: Callable, x: np.ndarray,
                  rng: np.random.Generator) -> tuple[float, Optional[str]]:
    """
    Evaluate the objective once. A degenerate evaluation is reported and
    scored as infinity, so it can never become a personal or global best.

    Returns:
        tuple: (residual, None) or (inf, reason)
    """
    try:
        residual = float(objective(x, rng))
    except NumericalDegeneracyError as e:
        return np.inf, f'{type(e).__name__}: {e}'
    if not np.isfinite(residual):
        return np.inf, f'objective returned {residual}'
    return residual, None


def evaluate_partition(objective: Callable,
                       start: int,
                       stop: int,
                       positions: np.ndarray,
                       velocities: np.ndarray,
                       seed: np.random.SeedSequence,
                       best_positions: Optional[np.ndarray] = None,
                       global_best: Optional[np.ndarray] = None,
                       w: float = 1.0,
                       c1: float = 1.05,
                       c2: float = 1.05,
                       bounds: Optional[tuple[np.ndarray, np.ndarray]] = None,
                       move: bool = True) -> dict:
    """
    The work of one worker for one generation: move its particles and
    evaluate them.

    Args:
        objective: Callable with the signature objective(x, rng) -> float.
        start: The index of the first particle of this worker.
        stop: One past the index of the last particle of this worker.
        positions: The positions of this worker's particles.
        velocities: The velocities of this worker's particles.
        seed: The random stream of this worker.
        best_positions: The personal best positions of this worker's
            particles.
        global_best: The global best position.
        w: The inertia weight.
        c1: The cognitive coefficient.
        c2: The social coefficient.
        bounds: (lower, upper). If given, positions are clipped into them.
        move: If False the particles are only evaluated. Used for the
            initial generation.

    Returns:
        dict: with the keys ['start', 'stop', 'positions', 'velocities',
            'residuals', 'failures']
    """
    rng = np.random.default_rng(seed)
    positions = np.array(positions, dtype=float)
    velocities = np.array(velocities, dtype=float)
    residuals = np.empty(stop - start)
    failures = []

    for i in range(stop - start):
        if move:
            r1 = rng.random(positions.shape[1])
            r2 = rng.random(positions.shape[1])
            velocities[i] = (w * velocities[i] + c1 * r1 *
                             (best_positions[i] - positions[i]) + c2 * r2 *
                             (global_best - positions[i]))
            positions[i] = positions[i] + velocities[i]
            if bounds is not None:
                positions[i] = np.clip(positions[i], *bounds)

        residuals[i], reason = safe_evaluate(objective, positions[i], rng)
        if reason is not None:
            failures.append((start + i, reason))

    return dict(start=start,
                stop=stop,
                positions=positions,
                velocities=velocities,
                residuals=residuals,
                failures=failures)


class Particle():
    """
    One candidate solution of the swarm.
    """

    def __init__(self, position: np.ndarray, velocity: np.ndarray,
                 residual: float):
        self.position = np.asarray(position, dtype=float)
        self.velocity = np.asarray(velocity, dtype=float)
        self.residual = residual
        self.best_position = self.position.copy()
        self.best_residual = residual

    def __repr__(self) -> str:
        return (f'Particle(residual={self.residual:.4g}, '
                f'best_residual={self.best_residual:.4g})')


class SwarmState():
    """
    The particles of the swarm and the global best.
    """

    def __init__(self, particles: list[Particle],
                 global_best_position: np.ndarray,
                 global_best_residual: float,
                 iteration: int = 0):
        self.particles = particles
        self.global_best_position = np.asarray(global_best_position)
        self.global_best_residual = global_best_residual
        self.iteration = iteration

    @property
    def positions(self) -> np.ndarray:
        return np.array([p.position for p in self.particles])

    @property
    def velocities(self) -> np.ndarray:
        return np.array([p.velocity for p in self.particles])

    @property
    def residuals(self) -> np.ndarray:
        return np.array([p.residual for p in self.particles])

    @property
    def best_positions(self) -> np.ndarray:
        return np.array([p.best_position for p in self.particles])

    @property
    def best_residuals(self) -> np.ndarray:
        return np.array([p.best_residual for p in self.particles])


class OptimizationHistory(MSONable):
    """
    The record of an optimization run. Entry 0 is the initial generation.

    Args:
        global_best: The global best residual after every generation.
        positions: The particle positions of every generation.
        residuals: The particle residuals of every generation.
        failed_evaluations: The number of evaluations that failed.
        parameter_names: The names of the dimensions of the positions.
    """

    def __init__(self,
                 global_best: Optional[list[float]] = None,
                 positions: Optional[list] = None,
                 residuals: Optional[list] = None,
                 failed_evaluations: int = 0,
                 parameter_names: Optional[list[str]] = None):
        self.global_best = [] if global_best is None else list(global_best)
        self.positions = [] if positions is None else list(positions)
        self.residuals = [] if residuals is None else list(residuals)
        self.failed_evaluations = failed_evaluations
        self.parameter_names = parameter_names

    def record(self, state: SwarmState, n_failures: int = 0):
        self.global_best.append(float(state.global_best_residual))
        self.positions.append(state.positions)
        self.residuals.append(state.residuals)
        self.failed_evaluations += n_failures

    @property
    def iterations(self) -> list[int]:
        return list(range(len(self.global_best)))

    def __len__(self) -> int:
        return len(self.global_best)


class SwarmOptimizer():
    """
    Particle swarm optimization of a (possibly stochastic) objective.

    Every particle and every dimension is updated as
    `v = w*v + c1*r1*(pbest - x) + c2*r2*(gbest - x)`, `x = x + v`, with the
    inertia weight w decreasing linearly from w_max to w_min over the
    iterations. The swarm runs for a fixed number of iterations.

    The particles are split into contiguous ranges over `n_workers` joblib
    workers. Each worker draws from its own random stream. Personal and
    global bests are only updated once every worker has returned.

    Args:
        objective: Callable with the signature objective(x, rng) -> float.
            It must raise NumericalDegeneracyError for evaluations that
            cannot be scored.
        bounds: The bounds used to draw the initial swarm. Either a
            scipy.optimize.Bounds or a (lower, upper) tuple.
        n_particles: The size of the swarm.
        n_iterations: The number of iterations after the initial generation.
        w_max: The inertia weight of the first iteration.
        w_min: The inertia weight of the last iteration.
        c1: The cognitive coefficient.
        c2: The social coefficient.
        n_workers: The number of joblib workers.
        seed: The seed of the swarm. Worker streams are spawned from it.
        clamp_to_bounds: Whether to clip positions into the bounds after
            every move. Particles are free to leave the bounds by default.
        callbacks: Callables invoked with the optimizer after the initial
            generation and after every iteration.
        parameter_names: The names of the dimensions, used for reporting.
        backend: The joblib backend.
    """

    def __init__(self,
                 objective: Callable,
                 bounds: Bounds | tuple[Sequence[float], Sequence[float]],
                 n_particles: int = 100,
                 n_iterations: int = 100,
                 w_max: float = 1.0,
                 w_min: float = 0.3,
                 c1: float = 1.05,
                 c2: float = 1.05,
                 n_workers: int = 1,
                 seed=None,
                 clamp_to_bounds: bool = False,
                 callbacks: Optional[list[Callable]] = None,
                 parameter_names: Optional[list[str]] = None,
                 backend: Optional[str] = None):
        if isinstance(bounds, Bounds):
            lower, upper = bounds.lb, bounds.ub
        else:
            lower, upper = bounds
        lower = np.atleast_1d(np.asarray(lower, dtype=float))
        upper = np.atleast_1d(np.asarray(upper, dtype=float))

        if lower.shape != upper.shape or lower.ndim != 1:
            raise ConfigurationError(
                f'Bounds do not match: {lower.shape} and {upper.shape}')
        if not (np.all(np.isfinite(lower)) and np.all(np.isfinite(upper))):
            raise ConfigurationError('Bounds must be finite')
        if np.any(lower > upper):
            raise ConfigurationError(
                f'Lower bounds {lower} exceed upper bounds {upper}')
        if n_particles < 1:
            raise ConfigurationError(
                f'n_particles must be at least 1, got {n_particles}')
        if n_iterations < 0:
            raise ConfigurationError(
                f'n_iterations must not be negative, got {n_iterations}')
        if n_workers < 1:
            raise ConfigurationError(
                f'n_workers must be at least 1, got {n_workers}')
        if parameter_names is not None and len(parameter_names) != len(lower):
            raise ConfigurationError(
                f'Got {len(parameter_names)} parameter names for '
                f'{len(lower)} dimensions')

        self.objective = objective
        self.lower_bounds = lower
        self.upper_bounds = upper
        self.n_particles = n_particles
        self.n_iterations = n_iterations
        self.w_max = w_max
        self.w_min = w_min
        self.c1 = c1
        self.c2 = c2
        self.n_workers = min(n_workers, n_particles)
        self.seed = seed
        self.clamp_to_bounds = clamp_to_bounds
        self.callbacks = [] if callbacks is None else callbacks
        self.parameter_names = parameter_names
        self.backend = backend

        self._seed_sequence = np.random.SeedSequence(seed)
        self.sampler = SwarmSampler(self._seed_sequence.spawn(1)[0], lower,
                                    upper)
        self.state = None
        self.history = OptimizationHistory(parameter_names=parameter_names)

    @property
    def n_dims(self) -> int:
        return len(self.lower_bounds)

    @property
    def partitions(self) -> list[tuple[int, int]]:
        return partition_particles(self.n_particles, self.n_workers)

    def inertia_weight(self, iteration: int) -> float:
        """
        The inertia weight of an iteration, decreasing linearly from w_max
        at iteration 0 to w_min at the last iteration.
        """
        if self.n_iterations <= 1:
            return self.w_max
        return self.w_max - (self.w_max - self.w_min) * iteration / (
            self.n_iterations - 1)

    def _run_workers(self,
                     positions: np.ndarray,
                     velocities: np.ndarray,
                     best_positions: Optional[np.ndarray] = None,
                     global_best: Optional[np.ndarray] = None,
                     w: float = 1.0,
                     move: bool = True):
        seeds = self._seed_sequence.spawn(self.n_workers)
        bounds = None
        if self.clamp_to_bounds:
            bounds = (self.lower_bounds, self.upper_bounds)

        jobs = []
        for (start, stop), seed in zip(self.partitions, seeds):
            jobs.append(
                delayed(evaluate_partition)(
                    self.objective,
                    start,
                    stop,
                    positions[start:stop],
                    velocities[start:stop],
                    seed,
                    best_positions=None if best_positions is None else
                    best_positions[start:stop],
                    global_best=global_best,
                    w=w,
                    c1=self.c1,
                    c2=self.c2,
                    bounds=bounds,
                    move=move))
        # The Parallel call returns once every worker has finished
        parts = Parallel(n_jobs=self.n_workers, backend=self.backend)(jobs)
        positions, velocities, residuals, failures = gather_partitions(
            self.n_particles, self.n_dims, parts)

        iteration = 0 if self.state is None else self.state.iteration + 1
        for index, reason in failures:
            logging.warning(f'Evaluation of particle {index} in iteration '
                            f'{iteration} failed and was scored as inf: '
                            f'{reason}')
        return positions, velocities, residuals, failures

    def initialize(self) -> SwarmState:
        """
        Draw the initial swarm and evaluate every particle once.
        """
        positions = self.sampler.random_positions(self.n_particles)
        velocities = self.sampler.random_velocities(self.n_particles)

        positions, velocities, residuals, failures = self._run_workers(
            positions, velocities, move=False)

        particles = [
            Particle(x, v, r)
            for x, v, r in zip(positions, velocities, residuals)
        ]
        best = int(np.argmin(residuals))
        self.state = SwarmState(particles, positions[best].copy(),
                                float(residuals[best]), iteration=0)
        self.history.record(self.state, len(failures))
        logging.info(f'Initial swarm: global best residual '
                     f'{self.state.global_best_residual:.6g}')
        self._callback()
        return self.state

    def step(self) -> SwarmState:
        """
        Run one iteration: move and evaluate every particle, then update the
        global and personal bests.
        """
        if self.state is None:
            self.initialize()
        state = self.state
        w = self.inertia_weight(state.iteration)

        positions, velocities, residuals, failures = self._run_workers(
            state.positions,
            state.velocities,
            best_positions=state.best_positions,
            global_best=state.global_best_position,
            w=w)

        best = int(np.argmin(residuals))
        # Failed evaluations never move a best position
        if (np.isfinite(residuals[best])
                and residuals[best] <= state.global_best_residual):
            state.global_best_residual = float(residuals[best])
            state.global_best_position = positions[best].copy()

        for particle, x, v, r in zip(state.particles, positions, velocities,
                                     residuals):
            particle.position = x
            particle.velocity = v
            particle.residual = float(r)
            if np.isfinite(r) and r <= particle.best_residual:
                particle.best_residual = float(r)
                particle.best_position = x.copy()

        state.iteration += 1
        self.history.record(state, len(failures))
        logging.info(f'Iteration {state.iteration}/{self.n_iterations} '
                     f'(w={w:.3f}): global best residual '
                     f'{state.global_best_residual:.6g}')
        self._callback()
        return state

    def run(self) -> SwarmState:
        """
        Run the whole fixed iteration budget.

        Returns:
            SwarmState: The final swarm. Its global best is the fit.
        """
        if self.state is None:
            self.initialize()
        while self.state.iteration < self.n_iterations:
            self.step()
        return self.state

    @property
    def best_position(self) -> np.ndarray:
        return self.state.global_best_position

    @property
    def best_residual(self) -> float:
        return self.state.global_best_residual

    def _callback(self):
        for fn in self.callbacks:
            fn(self)
