from SercaTools.util.exceptions import ConfigurationError

from monty.json import MSONable
import numpy as np

SPECIES = ('ca_cyt', 'ca_sr', 'atp', 'adp', 'pi')


class EnvironmentConditions(MSONable):
    """
    The concentrations of every ligand that gates a transition in the pump
    cycle. One of these (the analyte) is swept across an experimental grid
    while the others are held fixed.

    Args:
        ca_cyt: Cytosolic free calcium in M.
        ca_sr: Luminal (sarcoplasmic reticulum) calcium in M.
        atp: MgATP in M.
        adp: MgADP in M.
        pi: Inorganic phosphate in M.
    """

    def __init__(self,
                 ca_cyt: float = 1e-6,
                 ca_sr: float = 1.3e-3,
                 atp: float = 5e-3,
                 adp: float = 36e-6,
                 pi: float = 1e-3):
        self._concentrations = {
            'ca_cyt': float(ca_cyt),
            'ca_sr': float(ca_sr),
            'atp': float(atp),
            'adp': float(adp),
            'pi': float(pi)
        }
        for name, value in self._concentrations.items():
            if not np.isfinite(value) or value < 0:
                raise ConfigurationError(
                    f'Concentration of {name} must be a finite, non-negative'
                    f' number, got {value}')

    @property
    def ca_cyt(self) -> float:
        return self._concentrations['ca_cyt']

    @property
    def ca_sr(self) -> float:
        return self._concentrations['ca_sr']

    @property
    def atp(self) -> float:
        return self._concentrations['atp']

    @property
    def adp(self) -> float:
        return self._concentrations['adp']

    @property
    def pi(self) -> float:
        return self._concentrations['pi']

    def __getitem__(self, species: str) -> float:
        try:
            return self._concentrations[species]
        except KeyError:
            raise ConfigurationError(
                f'Unknown species {species}, expected one of {SPECIES}'
            ) from None

    def with_concentration(self, species: str,
                           value: float) -> 'EnvironmentConditions':
        """
        Get a copy of these conditions with a single concentration replaced.

        Args:
            species: The species to replace, one of
                ['ca_cyt', 'ca_sr', 'atp', 'adp', 'pi']
            value: The new concentration in M.
        """
        if species not in SPECIES:
            raise ConfigurationError(
                f'Unknown species {species}, expected one of {SPECIES}')
        concentrations = dict(self._concentrations)
        concentrations[species] = value
        return EnvironmentConditions(**concentrations)

    def as_dict(self) -> dict:
        d = {
            '@module': self.__class__.__module__,
            '@class': self.__class__.__name__
        }
        d.update(self._concentrations)
        return d

    def __eq__(self, other) -> bool:
        if not isinstance(other, EnvironmentConditions):
            return NotImplemented
        return self._concentrations == other._concentrations

    def __hash__(self) -> int:
        return hash(tuple(self._concentrations.items()))

    def __str__(self) -> str:
        return ', '.join(f'{k}={v:.3g} M'
                         for k, v in self._concentrations.items())

    def __repr__(self) -> str:
        return f'EnvironmentConditions({self.__str__()})'
