import matplotlib.pyplot as plt
import numpy as np
from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from SercaTools.core import SimulationResult
    from SercaTools.analysis.util import DoseResponseCurve
    from SercaTools.optimization.swarm import OptimizationHistory


def plot_dose_response(curve: 'DoseResponseCurve',
                       reference: Sequence[float] | None = None,
                       ax: plt.Axes = None,
                       dpi: int = 150):
    """
    Plot a normalized simulated curve, and optionally the experimental
    reference, against the analyte concentration on a log axis.
    """
    if ax is None:
        fig = plt.figure(figsize=(5, 4), dpi=dpi)
        ax = fig.subplots()
    else:
        fig = ax.figure

    ax.plot(curve.concentrations, curve.normalized, 'o-', label='Simulated')
    if reference is not None:
        ax.plot(curve.concentrations,
                reference,
                's',
                mfc='none',
                label='Experimental')
    ax.set_xscale('log')
    ax.set_xlabel(f'[{curve.analyte}] (M)')
    ax.set_ylabel(f'Normalized {curve.observable}')
    ax.legend()
    return fig


def plot_history(history: 'OptimizationHistory',
                 ax: plt.Axes = None,
                 dpi: int = 150):
    if ax is None:
        fig = plt.figure(figsize=(5, 4), dpi=dpi)
        ax = fig.subplots()
    else:
        fig = ax.figure

    ax.step(history.iterations, history.global_best, where='post')
    ax.set_xlabel('Iteration')
    ax.set_ylabel('Global best residual')
    return fig


def plot_occupancy(result: 'SimulationResult',
                   labels: Sequence[str] | None = None,
                   ax: plt.Axes = None,
                   dpi: int = 150):
    """
    Plot the occupancy fraction of every state over the recorded bins of a
    simulation.
    """
    if ax is None:
        fig = plt.figure(figsize=(6, 4), dpi=dpi)
        ax = fig.subplots()
    else:
        fig = ax.figure

    if labels is None:
        labels = [f'S{i}' for i in range(result.n_states)]
    fractions = np.asarray(result.history) / result.n_molecules
    for i, label in enumerate(labels):
        ax.plot(result.bin_times, fractions[:, i], label=label)
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Occupancy')
    ax.legend(loc='upper left', bbox_to_anchor=(1.0, 1.0), fontsize='small')
    plt.tight_layout()
    return fig
