from SercaTools.core import (SimulationConfig, SimulationResult,
                             EnsembleSimulator, steady_state_from_window)
from SercaTools.inputs import (ReactionNetwork, Transition, RateTable,
                               EnvironmentConditions)
from SercaTools.util.exceptions import ConfigurationError, SimulationCancelled

import numpy as np
import threading
import pytest


@pytest.fixture
def two_state():
    network = ReactionNetwork('two_state', ['open', 'closed'],
                              [Transition(0, 1, 'k_on'),
                               Transition(1, 0, 'k_off')])
    rates = RateTable({'k_on': 0.01, 'k_off': 0.03})
    return network, rates


@pytest.fixture
def three_state():
    network = ReactionNetwork('three_state', ['A', 'B', 'C'], [
        Transition(0, 1, 'k_01', 'ca_cyt'),
        Transition(0, 2, 'k_02'),
        Transition(1, 0, 'k_10'),
        Transition(2, 0, 'k_20')
    ])
    rates = RateTable({'k_01': 1e4, 'k_02': 0.02, 'k_10': 0.05, 'k_20': 0.1})
    return network, rates


def test_default_config():
    config = SimulationConfig()
    assert config.n_molecules == 10000
    assert config.n_steps == 100001
    assert config.dt == 1e-7
    assert config.bin_width == 1000
    assert config.window == 10
    assert config.n_bins == 100
    assert config.simulated_time == pytest.approx(0.0100001)


def test_config_is_immutable():
    config = SimulationConfig()
    with pytest.raises(AttributeError):
        config.n_molecules = 5

    new_config = config.replace(n_molecules=5)
    assert new_config.n_molecules == 5
    assert config.n_molecules == 10000


def test_invalid_config():
    # The trailing window would start before the first bin
    with pytest.raises(ConfigurationError, match='window'):
        SimulationConfig(n_steps=5000, bin_width=1000, window=10)
    with pytest.raises(ConfigurationError):
        SimulationConfig(n_molecules=0)
    with pytest.raises(ConfigurationError):
        SimulationConfig(n_steps=-1)
    with pytest.raises(ConfigurationError):
        SimulationConfig(n_steps=100, bin_width=1000, window=1)
    with pytest.raises(ConfigurationError):
        SimulationConfig(window=0)
    with pytest.raises(ConfigurationError):
        SimulationConfig(dt=0)
    with pytest.raises(ConfigurationError):
        SimulationConfig(n_molecules=10.5)
    with pytest.raises(ConfigurationError):
        SimulationConfig(n_jobs=0)


def test_config_serialization():
    config = SimulationConfig(n_molecules=100, n_steps=1000, bin_width=10)
    new_config = SimulationConfig.from_dict(config.as_dict())
    assert new_config.n_molecules == 100
    assert new_config.n_bins == 100


def test_steady_state_from_window():
    window = np.array([[3, 1], [1, 3]])
    assert np.allclose(steady_state_from_window(window, 4), [0.5, 0.5])


def test_occupancy_is_conserved(three_state):
    network, rates = three_state
    config = SimulationConfig(n_molecules=200,
                              n_steps=505,
                              dt=1.0,
                              bin_width=10,
                              window=5)
    simulator = EnsembleSimulator(network, config)
    result = simulator.run(rates,
                           EnvironmentConditions(ca_cyt=1e-6),
                           rng=0,
                           record_history=True)

    assert isinstance(result, SimulationResult)
    assert result.history.shape == (50, 3)
    assert np.all(result.history.sum(axis=1) == 200)
    assert np.all(result.window_counts.sum(axis=1) == 200)
    # The ring buffer holds the last bins, oldest first
    assert np.array_equal(result.window_counts, result.history[-5:])
    assert result.steady_state.sum() == pytest.approx(1.0)
    assert np.allclose(result.bin_times, np.arange(1, 51) * 10)


def test_chunked_run(three_state):
    network, rates = three_state
    config = SimulationConfig(n_molecules=301,
                              n_steps=200,
                              dt=1.0,
                              bin_width=20,
                              window=3,
                              n_jobs=3)
    simulator = EnsembleSimulator(network, config)
    result = simulator.run(rates,
                           EnvironmentConditions(ca_cyt=1e-6),
                           rng=1,
                           record_history=True)
    assert np.all(result.history.sum(axis=1) == 301)
    assert np.array_equal(result.window_counts, result.history[-3:])


def test_reproducible(three_state):
    network, rates = three_state
    config = SimulationConfig(n_molecules=100,
                              n_steps=300,
                              dt=1.0,
                              bin_width=10,
                              window=5)
    simulator = EnsembleSimulator(network, config)
    env = EnvironmentConditions(ca_cyt=1e-6)
    a = simulator.run(rates, env, rng=7)
    b = simulator.run(rates, env, rng=7)
    assert np.array_equal(a.window_counts, b.window_counts)


def test_two_state_steady_state(two_state):
    network, rates = two_state
    config = SimulationConfig(n_molecules=2000,
                              n_steps=2000,
                              dt=1.0,
                              bin_width=100,
                              window=10)
    result = EnsembleSimulator(network, config).run(rates,
                                                    EnvironmentConditions(),
                                                    rng=3)
    # k_on / (k_on + k_off)
    assert result.steady_state[1] == pytest.approx(0.25, abs=0.03)
    assert result.weighted_occupancy(np.array([0, 1
                                               ])) == result.steady_state[1]


def test_absorbing_state():
    network = ReactionNetwork('absorbing', ['A', 'B'],
                              [Transition(0, 1, 'k')])
    config = SimulationConfig(n_molecules=50,
                              n_steps=20,
                              dt=1.0,
                              bin_width=5,
                              window=2)
    result = EnsembleSimulator(network, config).run(RateTable({'k': 1.0}),
                                                    EnvironmentConditions(),
                                                    rng=0)
    assert np.allclose(result.steady_state, [0, 1])


def test_initial_state(two_state):
    network, rates = two_state
    config = SimulationConfig(n_molecules=10,
                              n_steps=10,
                              dt=1.0,
                              bin_width=5,
                              window=2,
                              initial_state=1)
    result = EnsembleSimulator(network, config).run(
        rates.with_rates(k_off=0), EnvironmentConditions(), rng=0)
    assert np.allclose(result.steady_state, [0, 1])

    with pytest.raises(ConfigurationError):
        EnsembleSimulator(network, config.replace(initial_state=2))


def test_cancellation(two_state):
    network, rates = two_state
    config = SimulationConfig(n_molecules=10,
                              n_steps=100,
                              dt=1.0,
                              bin_width=10,
                              window=2)
    event = threading.Event()
    event.set()
    with pytest.raises(SimulationCancelled):
        EnsembleSimulator(network, config).run(rates,
                                               EnvironmentConditions(),
                                               cancel_event=event)


def test_history_not_recorded(two_state):
    network, rates = two_state
    config = SimulationConfig(n_molecules=10,
                              n_steps=100,
                              dt=1.0,
                              bin_width=10,
                              window=2)
    result = EnsembleSimulator(network, config).run(rates,
                                                    EnvironmentConditions(),
                                                    rng=0)
    assert result.history is None
    with pytest.raises(ValueError):
        result.bin_times
