from SercaTools.inputs.conditions import EnvironmentConditions
from SercaTools.util.exceptions import ConfigurationError

import pytest


def test_default_conditions():
    env = EnvironmentConditions()
    assert env.ca_cyt == 1e-6
    assert env.ca_sr == 1.3e-3
    assert env.atp == 5e-3
    assert env.adp == 36e-6
    assert env.pi == 1e-3
    assert env['atp'] == 5e-3


def test_with_concentration():
    env = EnvironmentConditions()
    new_env = env.with_concentration('ca_cyt', 2e-7)

    assert new_env.ca_cyt == 2e-7
    assert new_env.pi == env.pi
    # The original is untouched
    assert env.ca_cyt == 1e-6

    with pytest.raises(ConfigurationError):
        env.with_concentration('mg', 1e-3)
    with pytest.raises(ConfigurationError):
        env['mg']


def test_invalid_concentrations():
    with pytest.raises(ConfigurationError):
        EnvironmentConditions(ca_cyt=-1)
    with pytest.raises(ConfigurationError):
        EnvironmentConditions(pi=float('nan'))


def test_serialization():
    env = EnvironmentConditions(ca_cyt=3e-7, pi=2e-5)
    d = env.as_dict()
    assert d['ca_cyt'] == 3e-7
    assert EnvironmentConditions.from_dict(d) == env


def test_hashable():
    env = EnvironmentConditions()
    same = EnvironmentConditions().with_concentration('atp', 5e-3)
    other = env.with_concentration('ca_cyt', 1e-5)

    assert hash(env) == hash(same)
    assert len({env, same, other}) == 2
    results = {env: 'resting'}
    assert results[same] == 'resting'
