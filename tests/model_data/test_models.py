from SercaTools.model_data import (available_models, load_network,
                                   load_rate_table, load_environment,
                                   load_model, available_reference_curves,
                                   load_reference_curve)
from SercaTools.util.exceptions import ConfigurationError

import numpy as np
import warnings
import pytest


def test_available_models():
    assert available_models() == ['inesi12', 'inesi13', 'inesi16']
    assert available_reference_curves() == [
        'calcium_binding', 'phosphate_binding'
    ]


@pytest.mark.parametrize('name, n_states', [('inesi12', 12), ('inesi13', 13),
                                            ('inesi16', 16)])
def test_load_model(name, n_states):
    network, rate_table, environment = load_model(name)
    assert network.n_states == n_states
    assert network.initial_state == 0
    assert rate_table.check_complete(network.rate_names)
    assert rate_table.check_values()
    assert rate_table.free_parameter_names == [
        'k_S0_S1', 'k_S2_S3', 'k_S7_S8', 'k_S9_S10'
    ]
    assert environment.ca_sr == 1.3e-3

    # Every state can be reached and every state returns to the start
    with warnings.catch_warnings():
        warnings.simplefilter('error')
        assert network.check_topology()

    for observable in ['bound_calcium', 'phosphorylated']:
        weights = network.observable_weights(observable)
        assert weights.shape == (n_states, )
        assert weights[0] == 0


def test_inesi13_topology():
    network = load_network('inesi13')
    # E'~P.ADP.Ca2 has three branches in a fixed order
    assert [(e.target, e.rate) for e in network.edges[5]] == [
        (6, 'k_S5_S6a'), (8, 'k_S5_S4'), (4, 'k_S5_S6')
    ]
    assert network.edges[0][0].species == 'ca_cyt'
    assert network.edges[0][1].species == 'pi'
    assert np.allclose(
        network.observable_weights('bound_calcium'),
        [0, 1, 1, 2, 2, 2, 2, 2, 2, 2, 1, 0, 0])
    assert np.allclose(network.observable_weights('phosphorylated'),
                       [0] * 5 + [1] * 8)


def test_inesi16_side_path():
    network = load_network('inesi16')
    assert network.states[13:] == ['E.ATP', 'E.ATP.Ca', "E'.ATP.Ca"]
    assert [e.target for e in network.edges[0]] == [1, 12, 13]
    assert [e.target for e in network.edges[14]] == [15, 13, 1]
    assert network.max_branches == 3


def test_load_rate_table_with_names():
    rate_table = load_rate_table('inesi13', ['k_S5_S6a', 'k_S0_S11'])
    assert rate_table.free_parameter_names == ['k_S5_S6a', 'k_S0_S11']
    assert np.allclose(rate_table.lower_bounds, [80, 1.5e3])
    assert np.allclose(rate_table.upper_bounds, [8000, 1.5e5])
    assert rate_table.free_parameters[0].reference == 800
    assert rate_table.units['k_S0_S11'] == 'M^-1 s^-1'

    rate_table = load_rate_table('inesi13', [{
        'name': 'k_S6_S7',
        'lower': 0.5,
        'upper': 1.5
    }])
    assert rate_table.free_parameters[0].reference == 1

    with pytest.raises(ConfigurationError):
        load_rate_table('inesi13', ['k_S3_S9'])
    with pytest.raises(ConfigurationError):
        load_rate_table('inesi12', ['k_S5_S6a'])


def test_unknown_model():
    with pytest.raises(ConfigurationError):
        load_network('inesi99')
    with pytest.raises(ConfigurationError):
        load_reference_curve('magnesium_binding')


def test_load_environment():
    environment = load_environment('inesi16')
    assert environment.atp == 5e-3
    assert environment.adp == 36e-6


@pytest.mark.parametrize('name, n_points, analyte', [
    ('calcium_binding', 16, 'ca_cyt'),
    ('phosphate_binding', 13, 'pi'),
])
def test_reference_curves(name, n_points, analyte):
    curve = load_reference_curve(name)
    assert len(curve) == n_points
    assert curve.analyte == analyte
    assert curve.response[-1] == 1.0
    assert np.all(np.diff(curve.concentrations) > 0)
    assert np.all(np.diff(curve.response) > 0)
