from SercaTools.inputs import (ReactionNetwork, RateTable,
                               EnvironmentConditions)
from SercaTools.state_machine import StateMachine
from SercaTools.util.exceptions import ConfigurationError, SimulationCancelled
from SercaTools.util.conversions import steps_to_time

from monty.json import MSONable
from joblib import Parallel, delayed, cpu_count
from typing import Optional
import numpy as np
import logging


class SimulationConfig(MSONable):
    """
    The immutable settings of one ensemble simulation.

    Occupancy is recorded every `bin_width` steps, giving
    `n_steps // bin_width` bins. The steady-state occupancy is the average of
    the last `window` bins.

    Args:
        n_molecules: The number of independent molecules M.
        n_steps: The number of timesteps T.
        dt: The timestep in seconds.
        bin_width: The number of timesteps per recorded bin B.
        window: The number of trailing bins W averaged for the steady state.
        initial_state: The state every molecule starts in. Defaults to the
            initial state of the network.
        n_jobs: The number of chunks the ensemble is split into and run with
            joblib. -1 uses every core.
    """

    def __init__(self,
                 n_molecules: int = 10000,
                 n_steps: int = 100001,
                 dt: float = 1e-7,
                 bin_width: int = 1000,
                 window: int = 10,
                 initial_state: Optional[int] = None,
                 n_jobs: int = 1):
        self._n_molecules = n_molecules
        self._n_steps = n_steps
        self._dt = dt
        self._bin_width = bin_width
        self._window = window
        self._initial_state = initial_state
        self._n_jobs = n_jobs
        self.validate()

    @property
    def n_molecules(self) -> int:
        return self._n_molecules

    @property
    def n_steps(self) -> int:
        return self._n_steps

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def bin_width(self) -> int:
        return self._bin_width

    @property
    def window(self) -> int:
        return self._window

    @property
    def initial_state(self) -> Optional[int]:
        return self._initial_state

    @property
    def n_jobs(self) -> int:
        return self._n_jobs

    @property
    def n_bins(self) -> int:
        return self.n_steps // self.bin_width

    @property
    def simulated_time(self) -> float:
        return steps_to_time(self.n_steps, self.dt)

    def validate(self) -> bool:
        for name in ['n_molecules', 'n_steps', 'bin_width', 'window']:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(
                    value, (int, np.integer)):
                raise ConfigurationError(
                    f'{name} must be an integer, got {value!r}')
            if value < 1:
                raise ConfigurationError(
                    f'{name} must be at least 1, got {value}')
        if not (np.isfinite(self.dt) and self.dt > 0):
            raise ConfigurationError(f'dt must be positive, got {self.dt}')
        if self.n_jobs == 0:
            raise ConfigurationError('n_jobs must not be 0')
        if self.bin_width > self.n_steps:
            raise ConfigurationError(
                f'bin_width ({self.bin_width}) is larger than n_steps '
                f'({self.n_steps}); no occupancy would be recorded')
        if self.window > self.n_bins:
            raise ConfigurationError(
                f'The trailing window of {self.window} bins starts before '
                f'the histogram does: {self.n_steps} steps with a bin width '
                f'of {self.bin_width} only record {self.n_bins} bins')
        return True

    def replace(self, **kwargs) -> 'SimulationConfig':
        """
        Get a copy of this configuration with some settings replaced.
        """
        settings = dict(n_molecules=self.n_molecules,
                        n_steps=self.n_steps,
                        dt=self.dt,
                        bin_width=self.bin_width,
                        window=self.window,
                        initial_state=self.initial_state,
                        n_jobs=self.n_jobs)
        settings.update(kwargs)
        return SimulationConfig(**settings)

    def __str__(self) -> str:
        return (f'SimulationConfig(M={self.n_molecules}, T={self.n_steps}, '
                f'dt={self.dt:g}, B={self.bin_width}, W={self.window})')

    def __repr__(self) -> str:
        return self.__str__()


class SimulationResult(MSONable):
    """
    The output of one ensemble simulation.

    Args:
        steady_state: The steady-state occupation fraction of each state.
        window_counts: The occupancy counts of the trailing window, shape
            (window, n_states), oldest bin first.
        n_molecules: The ensemble size.
        bin_width: The number of timesteps per bin.
        dt: The timestep in seconds.
        history: The occupancy counts of every bin, shape
            (n_bins, n_states). Only present if the history was recorded.
        environment: The conditions the simulation was run at.
    """

    def __init__(self,
                 steady_state: np.ndarray,
                 window_counts: np.ndarray,
                 n_molecules: int,
                 bin_width: int,
                 dt: float,
                 history: Optional[np.ndarray] = None,
                 environment: Optional[EnvironmentConditions] = None):
        self.steady_state = np.asarray(steady_state)
        self.window_counts = np.asarray(window_counts)
        self.n_molecules = n_molecules
        self.bin_width = bin_width
        self.dt = dt
        self.history = None if history is None else np.asarray(history)
        self.environment = environment

    @property
    def n_states(self) -> int:
        return len(self.steady_state)

    @property
    def bin_times(self) -> np.ndarray:
        """
        The simulated time at which each bin of the history was recorded.
        """
        if self.history is None:
            raise ValueError('The history of this simulation was not recorded')
        n = np.arange(1, len(self.history) + 1)
        return steps_to_time(n * self.bin_width, self.dt)

    def weighted_occupancy(self, weights: np.ndarray) -> float:
        return float(np.dot(weights, self.steady_state))


def steady_state_from_window(window_counts: np.ndarray,
                             n_molecules: int) -> np.ndarray:
    """
    Reduce the trailing occupancy bins to steady-state fractions.

    Args:
        window_counts: The occupancy counts, shape (window, n_states).
        n_molecules: The ensemble size.

    Returns:
        np.ndarray: The mean occupancy of each state divided by the ensemble
            size, shape (n_states,).
    """
    return np.asarray(window_counts).mean(axis=0) / n_molecules


def simulate_chunk(state_machine: StateMachine,
                   n_molecules: int,
                   config: SimulationConfig,
                   initial_state: int,
                   rng: np.random.Generator,
                   record_history: bool = False,
                   cancel_event=None) -> tuple[np.ndarray, np.ndarray | None]:
    """
    Advance a group of molecules through every timestep.

    The molecules move in lockstep, so a single global step counter decides
    when occupancy is recorded. Only the trailing window of bins is kept in
    a ring buffer unless the full history is requested.

    Returns:
        tuple: (window counts oldest first, history or None)
    """
    n_states = state_machine.n_states
    n_bins = config.n_bins
    window = config.window

    states = np.full(n_molecules, initial_state, dtype=np.int64)
    ring = np.zeros((window, n_states), dtype=np.int64)
    history = None
    if record_history:
        history = np.zeros((n_bins, n_states), dtype=np.int64)

    for b in range(n_bins):
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled(
                f'Simulation cancelled after {b * config.bin_width} steps')
        for _ in range(config.bin_width):
            states = state_machine.step_ensemble(states,
                                                 rng.random(n_molecules))
        counts = np.bincount(states, minlength=n_states)
        ring[b % window] = counts
        if history is not None:
            history[b] = counts

    # Steps after the last recorded bin cannot change the histogram.
    return np.roll(ring, -(n_bins % window), axis=0), history


class EnsembleSimulator():
    """
    Runs an ensemble of independent molecules through a reaction network and
    reduces the binned occupancy to steady-state fractions.

    Args:
        network: The topology of the cycle.
        config: The simulation settings.
    """

    def __init__(self,
                 network: ReactionNetwork,
                 config: Optional[SimulationConfig] = None):
        if config is None:
            config = SimulationConfig()
        if config.initial_state is not None and not (
                0 <= config.initial_state < network.n_states):
            raise ConfigurationError(
                f'Initial state {config.initial_state} is not a state of '
                f'network {network.name}')
        self.network = network
        self.config = config

    @property
    def initial_state(self) -> int:
        if self.config.initial_state is None:
            return self.network.initial_state
        return self.config.initial_state

    def get_state_machine(self, rate_table: RateTable,
                          environment: EnvironmentConditions) -> StateMachine:
        return StateMachine(self.network, rate_table, environment,
                            self.config.dt)

    def _n_chunks(self) -> int:
        n_jobs = self.config.n_jobs
        if n_jobs < 0:
            n_jobs = cpu_count() + 1 + n_jobs
        return max(1, min(n_jobs, self.config.n_molecules))

    def run(self,
            rate_table: RateTable,
            environment: EnvironmentConditions,
            rng: np.random.Generator | int | None = None,
            record_history: bool = False,
            cancel_event=None) -> SimulationResult:
        """
        Simulate the ensemble at one set of conditions.

        Args:
            rate_table: The rate constants.
            environment: The ligand concentrations.
            rng: A numpy Generator or a seed.
            record_history: Whether to keep the occupancy of every bin,
                rather than only the trailing window.
            cancel_event: An object with an `is_set()` method (such as
                threading.Event) checked at every bin. If set, the
                simulation raises SimulationCancelled.

        Returns:
            SimulationResult: The steady-state occupancy of every state.
        """
        rng = np.random.default_rng(rng)
        state_machine = self.get_state_machine(rate_table, environment)

        n_chunks = self._n_chunks()
        if n_chunks == 1:
            results = [
                simulate_chunk(state_machine, self.config.n_molecules,
                               self.config, self.initial_state, rng,
                               record_history, cancel_event)
            ]
        else:
            sizes = [
                len(c) for c in np.array_split(
                    np.arange(self.config.n_molecules), n_chunks)
            ]
            chunk_rngs = rng.spawn(n_chunks)
            prefer = 'threads' if cancel_event is not None else None
            results = Parallel(n_jobs=n_chunks, prefer=prefer)(
                delayed(simulate_chunk)(state_machine, size, self.config,
                                        self.initial_state, chunk_rng,
                                        record_history, cancel_event)
                for size, chunk_rng in zip(sizes, chunk_rngs))

        window_counts = sum(r[0] for r in results)
        history = None
        if record_history:
            history = sum(r[1] for r in results)

        totals = window_counts.sum(axis=1)
        if np.any(totals != self.config.n_molecules):
            raise RuntimeError(
                f'Occupancy is not conserved: bins hold {totals} molecules, '
                f'expected {self.config.n_molecules}')

        steady_state = steady_state_from_window(window_counts,
                                                self.config.n_molecules)
        logging.debug(f'Simulated {self.config} at {environment}')
        return SimulationResult(steady_state,
                                window_counts,
                                n_molecules=self.config.n_molecules,
                                bin_width=self.config.bin_width,
                                dt=self.config.dt,
                                history=history,
                                environment=environment)
