from SercaTools.inputs.conditions import SPECIES
from SercaTools.util.exceptions import ConfigurationError, DeadEndStateWarning

from monty.json import MSONable
from functools import lru_cache
from collections import deque
from typing import Optional
import numpy as np
import warnings

UNIMOLECULAR = 'unimolecular'
CONCENTRATION_GATED = 'concentration_gated'


class Transition(MSONable):
    """
    A directed edge of the reaction cycle.

    The probability of taking this edge in one timestep is `rate * dt` for a
    unimolecular edge, or `rate * [species] * dt` for a concentration gated
    (pseudo-first-order) edge.

    Args:
        source (int): The index of the state the edge leaves.
        target (int): The index of the state the edge enters.
        rate (str): The name of the rate constant in the RateTable.
        species (str, None): The ligand gating the edge, one of
            ['ca_cyt', 'ca_sr', 'atp', 'adp', 'pi']. None for a
            unimolecular edge.
    """

    def __init__(self,
                 source: int,
                 target: int,
                 rate: str,
                 species: Optional[str] = None):
        self.source = int(source)
        self.target = int(target)
        self.rate = rate
        self.species = species

    @property
    def kind(self) -> str:
        if self.species is None:
            return UNIMOLECULAR
        return CONCENTRATION_GATED

    @property
    def units(self) -> str:
        if self.species is None:
            return 's^-1'
        return 'M^-1 s^-1'

    def __str__(self) -> str:
        if self.species is None:
            return f'{self.source} -> {self.target} ({self.rate})'
        return (f'{self.source} -> {self.target} '
                f'({self.rate} * [{self.species}])')

    def __repr__(self) -> str:
        return self.__str__()


class ReactionNetwork(MSONable):
    """
    The declarative topology of a pump cycle.

    Each state owns an ordered list of outgoing transitions. The order is the
    order in which branch probabilities are accumulated by the StateMachine,
    so it is part of the model and is preserved exactly as given.

    Args:
        name: The name of the model variant.
        states: The labels of the discrete states. A state's index in this
            list is its integer tag.
        transitions: The transitions, in branch order for each source state.
        observables: Named weightings of the states, used to reduce
            occupancies to a single measurable quantity. For example
            {'bound_calcium': {1: 1, 3: 2}} counts one calcium for state 1
            and two for state 3.
        initial_state: The state every molecule starts in.
        description: Free text description of the model.
        notes: Free text notes about the model.
    """

    def __init__(self,
                 name: str,
                 states: list[str],
                 transitions: list[Transition],
                 observables: Optional[dict[str, dict[int, float]]] = None,
                 initial_state: int = 0,
                 description: str = '',
                 notes: Optional[list[str]] = None):
        if observables is None:
            observables = {}
        if notes is None:
            notes = []

        self.name = name
        self.states = list(states)
        self.transitions = [
            t if isinstance(t, Transition) else Transition(**t)
            for t in transitions
        ]
        # JSON object keys are always strings
        self.observables = {
            key: {int(state): float(weight)
                  for state, weight in weights.items()}
            for key, weights in observables.items()
        }
        self.initial_state = int(initial_state)
        self.description = description
        self.notes = notes

        self.validate()

    @property
    def n_states(self) -> int:
        return len(self.states)

    def validate(self) -> bool:
        """
        Check the structural consistency of the network.

        Raises:
            ConfigurationError: If a transition references a state outside
                of the network, a species that is not known, or if an
                observable weights a state that does not exist.
        """
        if self.n_states == 0:
            raise ConfigurationError(f'Network {self.name} has no states')
        if not 0 <= self.initial_state < self.n_states:
            raise ConfigurationError(
                f'Initial state {self.initial_state} is not a state of '
                f'network {self.name}')
        for transition in self.transitions:
            for idx in (transition.source, transition.target):
                if not 0 <= idx < self.n_states:
                    raise ConfigurationError(
                        f'Transition {transition} references state {idx}, '
                        f'but network {self.name} has {self.n_states} states')
            if transition.source == transition.target:
                raise ConfigurationError(
                    f'Transition {transition} is a self loop')
            if (transition.species is not None
                    and transition.species not in SPECIES):
                raise ConfigurationError(
                    f'Transition {transition} is gated by unknown species '
                    f'{transition.species}')
        for key, weights in self.observables.items():
            for state in weights:
                if not 0 <= state < self.n_states:
                    raise ConfigurationError(
                        f'Observable {key} weights state {state}, which is '
                        f'not a state of network {self.name}')
        return True

    @property
    @lru_cache
    def edges(self) -> list[list[Transition]]:
        """
        The ordered outgoing transitions of every state.
        """
        edges = [[] for _ in range(self.n_states)]
        for transition in self.transitions:
            edges[transition.source].append(transition)
        return edges

    @property
    def max_branches(self) -> int:
        return max(len(e) for e in self.edges)

    @property
    def rate_names(self) -> list[str]:
        """
        The names of every rate constant the network requires, in order of
        first use.
        """
        names = []
        for transition in self.transitions:
            if transition.rate not in names:
                names.append(transition.rate)
        return names

    def rate_units(self) -> dict[str, str]:
        return {t.rate: t.units for t in self.transitions}

    def observable_weights(self, observable: str) -> np.ndarray:
        """
        Get the weight of every state for an observable.

        Args:
            observable: The name of the observable, e.g. 'bound_calcium'.

        Returns:
            np.ndarray: An array of shape (n_states,)
        """
        if observable not in self.observables:
            raise ConfigurationError(
                f'Network {self.name} has no observable {observable}. '
                f'Available: {list(self.observables.keys())}')
        weights = np.zeros(self.n_states)
        for state, weight in self.observables[observable].items():
            weights[state] = weight
        return weights

    def _reachable_from(self, start: int, reverse: bool = False) -> set[int]:
        neighbours = [[] for _ in range(self.n_states)]
        for t in self.transitions:
            if reverse:
                neighbours[t.target].append(t.source)
            else:
                neighbours[t.source].append(t.target)

        seen = {start}
        queue = deque([start])
        while queue:
            state = queue.popleft()
            for other in neighbours[state]:
                if other not in seen:
                    seen.add(other)
                    queue.append(other)
        return seen

    def dead_end_states(self) -> list[int]:
        """
        States with no outgoing transitions.
        """
        return [i for i, e in enumerate(self.edges) if len(e) == 0]

    def unreachable_states(self) -> list[int]:
        """
        States that can never be visited by a molecule starting in the
        initial state.
        """
        reachable = self._reachable_from(self.initial_state)
        return [i for i in range(self.n_states) if i not in reachable]

    def trapping_states(self) -> list[int]:
        """
        Reachable states from which the initial state can never be reached
        again. A molecule entering one of these leaves the cycle for good.
        """
        reachable = self._reachable_from(self.initial_state)
        returning = self._reachable_from(self.initial_state, reverse=True)
        return sorted(reachable - returning)

    def check_topology(self) -> bool:
        """
        Warn about states that break the cycle.

        Returns:
            bool: True if the topology has no dead-end, unreachable or
                trapping states.
        """
        ok = True
        dead_ends = self.dead_end_states()
        if dead_ends:
            ok = False
            warnings.warn(
                f'Network {self.name}: states {self._labels(dead_ends)} have '
                'no outgoing transitions; molecules entering them are '
                'trapped permanently', DeadEndStateWarning)
        unreachable = self.unreachable_states()
        if unreachable:
            ok = False
            warnings.warn(
                f'Network {self.name}: states {self._labels(unreachable)} '
                f'are unreachable from state {self.initial_state}',
                DeadEndStateWarning)
        trapping = [s for s in self.trapping_states() if s not in dead_ends]
        if trapping:
            ok = False
            warnings.warn(
                f'Network {self.name}: states {self._labels(trapping)} '
                f'cannot return to state {self.initial_state}',
                DeadEndStateWarning)
        return ok

    def _labels(self, states: list[int]) -> list[str]:
        return [f'{i} ({self.states[i]})' for i in states]

    def __str__(self) -> str:
        lines = [f'ReactionNetwork {self.name} ({self.n_states} states)']
        for i, edges in enumerate(self.edges):
            branches = '; '.join(str(e) for e in edges)
            lines.append(f'  {i:>2} {self.states[i]:<15} {branches}')
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return f'ReactionNetwork({self.name}, n_states={self.n_states})'
