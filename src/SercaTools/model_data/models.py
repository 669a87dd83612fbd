from SercaTools.inputs import (ReactionNetwork, RateTable, FreeParameter,
                               EnvironmentConditions, ReferenceCurve)
from SercaTools.util.exceptions import ConfigurationError

from functools import lru_cache
from pathlib import Path
from typing import Optional
import json
import os

MODEL_DATA_PATH = os.path.join(str(Path(__file__).absolute().parent), 'data')
REFERENCE_CURVES_FILE = 'reference_curves.json'


def available_models() -> list[str]:
    return sorted(
        f[:-len('.json')] for f in os.listdir(MODEL_DATA_PATH)
        if f.endswith('.json') and f != REFERENCE_CURVES_FILE)


@lru_cache
def model_data(name: str) -> dict:
    """
    Loads the data of a model variant from its json file. The data is cached
    using lru_cache, so the returned dictionary must not be modified.

    Args:
        name: The name of the model, one of `available_models()`.

    Returns:
        dict: The model data with the keys:
            ['name', 'description', 'states', 'initial_state', 'transitions',
            'reference_rates', 'observables', 'free_parameters',
            'environment', 'notes']
    """
    if name not in available_models():
        raise ConfigurationError(
            f'Unknown model {name}, expected one of {available_models()}')
    with open(os.path.join(MODEL_DATA_PATH, f'{name}.json'), 'r') as f:
        data = json.load(f)
    return data


def load_network(name: str) -> ReactionNetwork:
    data = model_data(name)
    return ReactionNetwork(name=data['name'],
                           states=data['states'],
                           transitions=data['transitions'],
                           observables=data['observables'],
                           initial_state=data.get('initial_state', 0),
                           description=data.get('description', ''),
                           notes=list(data.get('notes', [])))


def load_rate_table(name: str,
                    free_parameters: Optional[list] = None) -> RateTable:
    """
    Build the rate table of a model at its literature reference values.

    Args:
        name: The name of the model.
        free_parameters: The rates to fit. May be given as FreeParameter
            objects, dictionaries with the keys ['name', 'lower', 'upper'],
            or names, in which case the bounds are 0.1x to 10x the
            reference value. Defaults to the free parameters of the model
            file.
    """
    data = model_data(name)
    network = load_network(name)
    reference_rates = dict(data['reference_rates'])

    if free_parameters is None:
        free_parameters = data.get('free_parameters', [])

    params = []
    for p in free_parameters:
        if isinstance(p, str):
            if p not in reference_rates:
                raise ConfigurationError(
                    f'Model {name} has no rate {p} to fit')
            reference = reference_rates[p]
            p = FreeParameter(p, 0.1 * reference, 10 * reference,
                              reference)
        elif isinstance(p, dict):
            p = dict(p)
            p.setdefault('reference', reference_rates.get(p['name']))
            p = FreeParameter(**p)
        params.append(p)

    rate_table = RateTable(reference_rates,
                           units=network.rate_units(),
                           free_parameters=params,
                           reference_rates=reference_rates)
    rate_table.check_complete(network.rate_names)
    return rate_table


def load_environment(name: str) -> EnvironmentConditions:
    return EnvironmentConditions(**model_data(name).get('environment', {}))


def load_model(
    name: str,
    free_parameters: Optional[list] = None
) -> tuple[ReactionNetwork, RateTable, EnvironmentConditions]:
    """
    Convenience function to load everything needed to simulate a model.

    Returns:
        tuple: (ReactionNetwork, RateTable, EnvironmentConditions)
    """
    return (load_network(name), load_rate_table(name, free_parameters),
            load_environment(name))


@lru_cache
def _reference_curve_data() -> dict:
    with open(os.path.join(MODEL_DATA_PATH, REFERENCE_CURVES_FILE), 'r') as f:
        return json.load(f)


def available_reference_curves() -> list[str]:
    return sorted(_reference_curve_data().keys())


def load_reference_curve(name: str) -> ReferenceCurve:
    """
    Load one of the published reference curves.

    Args:
        name: One of ['calcium_binding', 'phosphate_binding']
    """
    data = _reference_curve_data()
    if name not in data:
        raise ConfigurationError(
            f'Unknown reference curve {name}, expected one of '
            f'{available_reference_curves()}')
    return ReferenceCurve(name=name, **data[name])
