from SercaTools.util.conversions import molar_to_pca

from typing import Optional, Sequence, TYPE_CHECKING
from pathlib import Path
import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from SercaTools.core import SimulationResult
    from SercaTools.analysis.util import DoseResponseCurve
    from SercaTools.optimization.swarm import OptimizationHistory


def history_to_dataframe(history: 'OptimizationHistory') -> pd.DataFrame:
    """
    The global best residual after every generation. Generation 0 is the
    initial swarm.
    """
    return pd.DataFrame({
        'iteration': history.iterations,
        'global_best_residual': history.global_best
    })


def curve_to_dataframe(curve: 'DoseResponseCurve',
                       reference: Optional[Sequence[float]] = None
                       ) -> pd.DataFrame:
    df = pd.DataFrame({
        'concentration': curve.concentrations,
        'raw': curve.raw,
        'normalized': curve.normalized
    })
    if curve.analyte == 'ca_cyt':
        df.insert(1, 'pCa', molar_to_pca(curve.concentrations))
    if reference is not None:
        df['reference'] = np.asarray(reference)
    return df


def steady_state_to_dataframe(
        steady_state: Sequence[float],
        labels: Optional[Sequence[str]] = None) -> pd.DataFrame:
    steady_state = np.asarray(steady_state)
    states = [f'S{i}' for i in range(len(steady_state))]
    df = pd.DataFrame({'state': states, 'steady_state': steady_state})
    if labels is not None:
        df.insert(1, 'label', list(labels))
    return df


def occupancy_history_to_dataframe(
        result: 'SimulationResult') -> pd.DataFrame:
    """
    The per-state occupancy counts of every recorded bin, with the simulated
    time of the bin in the first column.
    """
    df = pd.DataFrame(result.history,
                      columns=[f'S{i}' for i in range(result.n_states)])
    df.insert(0, 'Time', result.bin_times)
    return df


def write_csv(df: pd.DataFrame, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
