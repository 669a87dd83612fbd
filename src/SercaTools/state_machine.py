from SercaTools.inputs import (ReactionNetwork, RateTable,
                               EnvironmentConditions)
from SercaTools.util.exceptions import (ConfigurationError,
                                        BranchProbabilityWarning)

import numpy as np
import warnings


class StateMachine():
    """
    Advances one molecule (or many in lockstep) by one fixed timestep.

    The outgoing transitions of every state are compiled into a table of
    cumulative branch probabilities. A uniform draw u in [0, 1) selects the
    first branch whose cumulative probability exceeds u. If u is larger than
    all of them the molecule stays in its state.

    The probabilities are not renormalized. If the cumulative probability out
    of a state exceeds 1 the later branches are under-sampled, which is
    reported with a BranchProbabilityWarning.

    Args:
        network: The topology of the cycle.
        rate_table: The rate constants of the network.
        environment: The ligand concentrations gating transitions.
        dt: The timestep in seconds.
        warn: Whether to warn about states whose branch probabilities sum to
            more than 1.
    """

    def __init__(self,
                 network: ReactionNetwork,
                 rate_table: RateTable,
                 environment: EnvironmentConditions,
                 dt: float,
                 warn: bool = True):
        if not dt > 0:
            raise ConfigurationError(f'dt must be positive, got {dt}')
        rate_table.check_complete(network.rate_names)
        rate_table.check_values()

        self.network = network
        self.rate_table = rate_table
        self.environment = environment
        self.dt = dt

        self._compile()

        if warn:
            overflow = self.branch_probability_overflow()
            if overflow:
                totals = {
                    s: round(float(self.total_probability[s]), 4)
                    for s in overflow
                }
                warnings.warn(
                    f'Network {network.name}: cumulative transition '
                    f'probability exceeds 1 for states {totals} at '
                    f'dt={dt}. Later branches of these states are '
                    'under-sampled; reduce dt.', BranchProbabilityWarning)

    def _compile(self):
        n_states = self.network.n_states
        n_branches = max(self.network.max_branches, 1)

        probabilities = np.zeros((n_states, n_branches))
        # Unused branches point back to the source state
        targets = np.tile(np.arange(n_states)[:, None], (1, n_branches))
        counts = np.zeros(n_states, dtype=int)

        for state, edges in enumerate(self.network.edges):
            for k, edge in enumerate(edges):
                p = self.rate_table[edge.rate] * self.dt
                if edge.species is not None:
                    p *= self.environment[edge.species]
                probabilities[state, k] = p
                targets[state, k] = edge.target
            counts[state] = len(edges)

        cumulative = np.cumsum(probabilities, axis=1)
        # Padding must never be selected: u >= 0 is never below 0
        for state in range(n_states):
            cumulative[state, counts[state]:] = 0

        self.probabilities = probabilities
        self.cumulative_probabilities = cumulative
        self.targets = targets
        self.n_branches = counts

    @property
    def n_states(self) -> int:
        return self.network.n_states

    @property
    def total_probability(self) -> np.ndarray:
        """
        The probability of leaving each state in one timestep.
        """
        return self.probabilities.sum(axis=1)

    def branch_probability_overflow(self) -> list[int]:
        return [int(s) for s in np.flatnonzero(self.total_probability > 1)]

    def step(self, state: int, u: float) -> int:
        """
        Advance a single molecule.

        Args:
            state: The current state.
            u: A uniform random number in [0, 1).

        Returns:
            int: The next state.
        """
        cumulative = self.cumulative_probabilities[state]
        for k in range(self.n_branches[state]):
            if u < cumulative[k]:
                return int(self.targets[state, k])
        return state

    def draw_step(self, state: int, rng: np.random.Generator) -> int:
        return self.step(state, rng.random())

    def step_ensemble(self, states: np.ndarray, u: np.ndarray) -> np.ndarray:
        """
        Advance every molecule of an ensemble by one timestep.

        Args:
            states: An integer array of shape (M,) with the current states.
            u: An array of shape (M,) of uniform random numbers in [0, 1).

        Returns:
            np.ndarray: The next states, shape (M,).
        """
        hit = u[:, None] < self.cumulative_probabilities[states]
        branch = hit.argmax(axis=1)
        moved = hit[np.arange(len(states)), branch]
        return np.where(moved, self.targets[states, branch], states)
