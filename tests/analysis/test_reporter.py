from SercaTools.analysis import ResidualEvaluator, BestRunReporter
from SercaTools.core import SimulationConfig
from SercaTools.inputs import (ReactionNetwork, Transition, RateTable,
                               FreeParameter, EnvironmentConditions,
                               ReferenceCurve)

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def evaluator():
    network = ReactionNetwork('binding', ['E', 'E.Ca'], [
        Transition(0, 1, 'k_on', 'ca_cyt'),
        Transition(1, 0, 'k_off'),
    ],
                              observables={'bound_calcium': {
                                  1: 1
                              }})
    rates = RateTable({
        'k_on': 1e4,
        'k_off': 0.02
    },
                      free_parameters=[FreeParameter('k_on', 1e3, 1e5)])
    reference = ReferenceCurve('test', 'ca_cyt', 'bound_calcium',
                               [1e-6, 2e-6, 4e-6, 8e-6],
                               [0.4, 0.6, 0.8, 1.0])
    config = SimulationConfig(n_molecules=1000,
                              n_steps=1000,
                              dt=1.0,
                              bin_width=50,
                              window=5)
    return ResidualEvaluator(network, rates, reference, config,
                             EnvironmentConditions(ca_cyt=2e-6))


def test_report(evaluator):
    report = BestRunReporter(evaluator).report([1e4], rng=0)

    assert report.rate_table['k_on'] == 1e4
    assert report.residual == pytest.approx(
        evaluator.residual_from_curve(report.curve))
    assert report.diagnostic_concentration == 2e-6
    assert report.state_labels == ['E', 'E.Ca']
    assert report.steady_state.sum() == pytest.approx(1.0)
    # k_on [Ca] / (k_on [Ca] + k_off) = 1/2
    assert report.steady_state[1] == pytest.approx(0.5, abs=0.05)
    assert report.diagnostic.history.shape == (20, 2)

    summary = report.summary()
    assert summary.startswith('Best fit to test: residual')
    assert 'k_on = 10000' in summary
    assert 'E.Ca' in summary


def test_diagnostic_options(evaluator):
    reporter = BestRunReporter(evaluator, diagnostic_bin_width=10)
    report = reporter.report(evaluator.rate_table,
                             rng=0,
                             diagnostic_concentration=8e-6)
    assert report.diagnostic_concentration == 8e-6
    assert report.diagnostic.history.shape == (100, 2)
    assert report.steady_state[1] == pytest.approx(0.8, abs=0.05)

    # The curve itself keeps the binning of the fit
    assert evaluator.config.bin_width == 50


def test_write_csv(evaluator, tmp_path):
    report = BestRunReporter(evaluator).report([1e4], rng=0)
    paths = report.write_csv(tmp_path / 'best')
    assert set(paths) == {'curve', 'steady_state', 'time'}

    curve = pd.read_csv(paths['curve'])
    assert list(curve.columns) == [
        'concentration', 'pCa', 'raw', 'normalized', 'reference'
    ]
    assert np.allclose(curve['pCa'], -np.log10([1e-6, 2e-6, 4e-6, 8e-6]))
    assert curve['normalized'].max() == 1.0

    steady_state = pd.read_csv(paths['steady_state'])
    assert list(steady_state['state']) == ['S0', 'S1']
    assert list(steady_state['label']) == ['E', 'E.Ca']

    time = pd.read_csv(paths['time'])
    assert list(time.columns) == ['Time', 'S0', 'S1']
    assert len(time) == 20
    assert time['Time'].iloc[0] == pytest.approx(50.0)
    assert np.all(time['S0'] + time['S1'] == 1000)


def test_diagnostic_window_spans_same_steps(evaluator):
    config = evaluator.config
    for bin_width in [10, 25, 50, 125]:
        diagnostic = BestRunReporter(
            evaluator, diagnostic_bin_width=bin_width).diagnostic_simulator
        assert (diagnostic.config.window * diagnostic.config.bin_width ==
                config.window * config.bin_width)

    default_evaluator = ResidualEvaluator(evaluator.network,
                                          evaluator.rate_table,
                                          evaluator.reference_curve,
                                          SimulationConfig())
    diagnostic = BestRunReporter(default_evaluator,
                                 diagnostic_bin_width=100).diagnostic_simulator
    assert diagnostic.config.bin_width == 100
    assert diagnostic.config.window == 100
    assert diagnostic.config.n_bins == 1000

    # A wider bin than the trailing span still averages one bin
    diagnostic = BestRunReporter(
        evaluator, diagnostic_bin_width=500).diagnostic_simulator
    assert diagnostic.config.window == 1
