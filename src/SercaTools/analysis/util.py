from SercaTools.util.exceptions import NumericalDegeneracyError

from monty.json import MSONable
from typing import Sequence
import numpy as np


def weighted_occupancy(occupancy: np.ndarray, weights: np.ndarray) -> float:
    """
    Reduce state occupancies to one observable, e.g. the number of calcium
    ions bound per pump.

    Args:
        occupancy: The occupation fraction of each state. The last axis is
            the state axis.
        weights: The weight (ligand multiplicity) of each state.
    """
    return np.asarray(occupancy) @ np.asarray(weights)


def normalize_curve(curve: Sequence[float]) -> np.ndarray:
    """
    Normalize a curve by its own maximum.

    Args:
        curve: The raw curve.

    Returns:
        np.ndarray: The curve divided by its maximum. The largest element is
            exactly 1.

    Raises:
        NumericalDegeneracyError: If the maximum is zero (or not finite), in
            which case the curve carries no information.
    """
    curve = np.asarray(curve, dtype=float)
    if curve.size == 0:
        raise NumericalDegeneracyError('Cannot normalize an empty curve')
    maximum = curve.max()
    if not np.isfinite(maximum) or maximum <= 0:
        raise NumericalDegeneracyError(
            f'Cannot normalize a curve with a maximum of {maximum}')
    normalized = curve / maximum
    # Guard against x / x != 1 from rounding
    normalized[curve == maximum] = 1.0
    return normalized


def curve_residual(reference: Sequence[float],
                   simulated: Sequence[float]) -> float:
    """
    The root of the summed squared deviations between two curves.

    Raises:
        NumericalDegeneracyError: If the residual is NaN or infinite.
    """
    reference = np.asarray(reference, dtype=float)
    simulated = np.asarray(simulated, dtype=float)
    if reference.shape != simulated.shape:
        raise ValueError(
            f'Curve shapes do not match: {reference.shape} and '
            f'{simulated.shape}')
    residual = float(np.sqrt(np.sum((reference - simulated)**2)))
    if not np.isfinite(residual):
        raise NumericalDegeneracyError(
            f'Residual evaluated to {residual}')
    return residual


class DoseResponseCurve(MSONable):
    """
    A simulated dose-response curve.

    Args:
        analyte: The species varied across the grid.
        observable: The observable of the network that was measured.
        concentrations: The grid of analyte concentrations in M.
        raw: The observable at each concentration.
        occupancies: The steady-state occupancy of every state at every
            concentration, shape (n_points, n_states).
    """

    def __init__(self,
                 analyte: str,
                 observable: str,
                 concentrations: Sequence[float],
                 raw: Sequence[float],
                 occupancies: np.ndarray | None = None):
        self.analyte = analyte
        self.observable = observable
        self.concentrations = np.asarray(concentrations, dtype=float)
        self.raw = np.asarray(raw, dtype=float)
        self.occupancies = None if occupancies is None else np.asarray(
            occupancies)

    @property
    def normalized(self) -> np.ndarray:
        return normalize_curve(self.raw)

    def __len__(self) -> int:
        return len(self.concentrations)
