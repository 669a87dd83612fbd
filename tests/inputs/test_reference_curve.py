from SercaTools.inputs.reference_curve import ReferenceCurve
from SercaTools.util.exceptions import ConfigurationError

import pytest


def test_reference_curve():
    curve = ReferenceCurve('test', 'ca_cyt', 'bound_calcium',
                           [1e-7, 1e-6, 1e-5], [0.1, 0.5, 1.0])
    assert len(curve) == 3
    assert curve.response[-1] == 1.0


def test_invalid_reference_curve():
    with pytest.raises(ConfigurationError, match='3 concentrations'):
        ReferenceCurve('test', 'ca_cyt', 'bound_calcium', [1e-7, 1e-6, 1e-5],
                       [0.1, 1.0])
    with pytest.raises(ConfigurationError):
        ReferenceCurve('test', 'mg', 'bound_calcium', [1e-7], [1.0])
    with pytest.raises(ConfigurationError):
        ReferenceCurve('test', 'pi', 'phosphorylated', [], [])
    with pytest.raises(ConfigurationError):
        ReferenceCurve('test', 'pi', 'phosphorylated', [-1e-6], [1.0])
