from SercaTools.inputs.conditions import SPECIES
from SercaTools.util.exceptions import ConfigurationError

from monty.json import MSONable
from typing import Sequence
import numpy as np


class ReferenceCurve(MSONable):
    """
    An experimental dose-response curve which the simulation is fit to.

    Args:
        name: The name of the curve.
        analyte: The species swept across the concentration grid.
        observable: The network observable the response is compared to,
            e.g. 'bound_calcium'.
        concentrations: The ordered grid of analyte concentrations in M.
        response: The normalized response at each concentration.
        description: Free text description of the data.
    """

    def __init__(self,
                 name: str,
                 analyte: str,
                 observable: str,
                 concentrations: Sequence[float],
                 response: Sequence[float],
                 description: str = ''):
        self.name = name
        self.analyte = analyte
        self.observable = observable
        self.concentrations = np.asarray(concentrations, dtype=float)
        self.response = np.asarray(response, dtype=float)
        self.description = description

        if analyte not in SPECIES:
            raise ConfigurationError(
                f'Unknown analyte {analyte} for curve {name}')
        if self.concentrations.ndim != 1 or len(self.concentrations) == 0:
            raise ConfigurationError(
                f'Curve {name} needs a non-empty 1D concentration grid')
        if self.concentrations.shape != self.response.shape:
            raise ConfigurationError(
                f'Curve {name} has {len(self.concentrations)} concentrations '
                f'but {len(self.response)} response values')
        if np.any(self.concentrations < 0):
            raise ConfigurationError(
                f'Curve {name} has negative concentrations')

    def __len__(self) -> int:
        return len(self.concentrations)

    def __str__(self) -> str:
        return (f'ReferenceCurve {self.name}: {len(self)} points of '
                f'{self.observable} vs {self.analyte}')

    def __repr__(self) -> str:
        return self.__str__()
