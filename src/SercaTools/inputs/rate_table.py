from SercaTools.util.exceptions import ConfigurationError, InvalidRateError

from monty.json import MSONable
from typing import Optional, Sequence
import numpy as np


class FreeParameter(MSONable):
    """
    A rate constant that is varied by the optimizer.

    Args:
        name (str): The name of the rate constant.
        lower (float): The lower bound used to initialize the swarm.
        upper (float): The upper bound used to initialize the swarm.
        reference (float, None): The literature value of the rate constant.
    """

    def __init__(self,
                 name: str,
                 lower: float,
                 upper: float,
                 reference: Optional[float] = None):
        if not (np.isfinite(lower) and np.isfinite(upper)):
            raise ConfigurationError(
                f'Bounds of {name} must be finite, got [{lower}, {upper}]')
        if lower > upper:
            raise ConfigurationError(
                f'Lower bound of {name} ({lower}) is larger than the upper '
                f'bound ({upper})')
        self.name = name
        self.lower = float(lower)
        self.upper = float(upper)
        self.reference = reference

    @property
    def span(self) -> float:
        return self.upper - self.lower

    def __str__(self) -> str:
        return f'{self.name} in [{self.lower:.4g}, {self.upper:.4g}]'

    def __repr__(self) -> str:
        return self.__str__()


class RateTable(MSONable):
    """
    The values of every rate constant of a reaction network, along with the
    subset of rates which are free to be fit.

    Rates of unimolecular transitions are in s^-1, rates of concentration
    gated transitions are in M^-1 s^-1.

    Args:
        rates: Mapping from rate name to value.
        units: Mapping from rate name to its units. Only used for reporting.
        free_parameters: The rates varied by the optimizer, in the order of
            the optimizer's position vector.
        reference_rates: The literature values of the rates. Defaults to a
            copy of `rates`.
    """

    def __init__(self,
                 rates: dict[str, float],
                 units: Optional[dict[str, str]] = None,
                 free_parameters: Optional[list[FreeParameter]] = None,
                 reference_rates: Optional[dict[str, float]] = None):
        if units is None:
            units = {}
        if free_parameters is None:
            free_parameters = []
        if reference_rates is None:
            reference_rates = dict(rates)

        self.rates = {k: float(v) for k, v in rates.items()}
        self.units = units
        self.free_parameters = [
            p if isinstance(p, FreeParameter) else FreeParameter(**p)
            for p in free_parameters
        ]
        self.reference_rates = reference_rates

        for p in self.free_parameters:
            if p.name not in self.rates:
                raise ConfigurationError(
                    f'Free parameter {p.name} is not a rate of this table')
        names = self.free_parameter_names
        if len(set(names)) != len(names):
            raise ConfigurationError(f'Duplicate free parameters in {names}')

    def __getitem__(self, name: str) -> float:
        return self.rates[name]

    def __contains__(self, name: str) -> bool:
        return name in self.rates

    def __len__(self) -> int:
        return len(self.rates)

    @property
    def free_parameter_names(self) -> list[str]:
        return [p.name for p in self.free_parameters]

    @property
    def n_free(self) -> int:
        return len(self.free_parameters)

    @property
    def lower_bounds(self) -> np.ndarray:
        return np.array([p.lower for p in self.free_parameters])

    @property
    def upper_bounds(self) -> np.ndarray:
        return np.array([p.upper for p in self.free_parameters])

    @property
    def free_values(self) -> np.ndarray:
        """
        The current values of the free parameters, as a position vector.
        """
        return np.array([self.rates[p.name] for p in self.free_parameters])

    def with_free_values(self, x: Sequence[float]) -> 'RateTable':
        """
        Get a copy of this table with the free parameters replaced by a
        position vector of the optimizer.

        Args:
            x: The new values, ordered as `free_parameters`.
        """
        x = np.asarray(x, dtype=float)
        if x.shape != (self.n_free, ):
            raise ConfigurationError(
                f'Expected {self.n_free} free parameter values '
                f'{self.free_parameter_names}, got shape {x.shape}')
        return self.with_rates(**dict(zip(self.free_parameter_names, x)))

    def with_rates(self, **kwargs) -> 'RateTable':
        unknown = [k for k in kwargs if k not in self.rates]
        if unknown:
            raise ConfigurationError(f'Unknown rates {unknown}')
        rates = dict(self.rates)
        rates.update({k: float(v) for k, v in kwargs.items()})
        return RateTable(rates,
                         units=self.units,
                         free_parameters=self.free_parameters,
                         reference_rates=self.reference_rates)

    def with_free_parameters(
            self, free_parameters: list[FreeParameter]) -> 'RateTable':
        return RateTable(self.rates,
                         units=self.units,
                         free_parameters=free_parameters,
                         reference_rates=self.reference_rates)

    def missing_rates(self, required: Sequence[str]) -> list[str]:
        return [name for name in required if name not in self.rates]

    def check_complete(self, required: Sequence[str]) -> bool:
        """
        Check that the table defines every rate in `required`.

        Raises:
            ConfigurationError: If any required rate is missing.
        """
        missing = self.missing_rates(required)
        if missing:
            raise ConfigurationError(
                f'Rate table is missing rates required by the network: '
                f'{missing}')
        return True

    def check_values(self) -> bool:
        """
        Check that every rate is finite and non-negative.

        Raises:
            InvalidRateError: If a rate is negative, NaN or infinite.
        """
        bad = {
            k: v
            for k, v in self.rates.items() if not np.isfinite(v) or v < 0
        }
        if bad:
            raise InvalidRateError(
                f'Rates must be finite and non-negative, got {bad}')
        return True

    def summary(self) -> str:
        """
        A human readable summary of the free parameters, with the literature
        value each one was started from.
        """
        lines = []
        for p in self.free_parameters:
            units = self.units.get(p.name, '')
            line = f'{p.name} = {self.rates[p.name]:.6g} {units}'.rstrip()
            reference = self.reference_rates.get(p.name, p.reference)
            if reference is not None:
                line += f'  (literature value {reference:.6g})'
            lines.append(line)
        return '\n'.join(lines)
