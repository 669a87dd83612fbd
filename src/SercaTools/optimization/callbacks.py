from SercaTools.util.export import history_to_dataframe, write_csv

from maggma.stores import Store

from collections.abc import Callable
from pathlib import Path
import numpy as np
import logging

from uuid import uuid4


def _finite_or_none(x: float) -> float | None:
    return float(x) if np.isfinite(x) else None


def save_to_store(store: Store, metadata: dict | None = None) -> Callable:
    """
    A helper function which saves the iteration history of a swarm
    optimization to a database. One document is written per generation.

    Args:
        store: The maggma store to which the data will be saved. It must
            already be connected.
        metadata: Metadata to be added to the saved data.
    """
    if metadata is None:
        metadata = {}

    def save_fn(optimizer):
        state = optimizer.state
        _d = dict(
            uuid=str(uuid4()),
            iteration=state.iteration,
            global_best_residual=_finite_or_none(state.global_best_residual),
            global_best_position=state.global_best_position.tolist(),
            positions=state.positions.tolist(),
            residuals=[_finite_or_none(r) for r in state.residuals],
            parameter_names=optimizer.parameter_names,
            inertia_weight=optimizer.inertia_weight(state.iteration),
            metadata=metadata,
        )
        store.update(_d, key='uuid')

    return save_fn


def log_particles(parameter_names: list[str] | None = None) -> Callable:
    """
    Log the position and residual of every particle after each generation.
    """

    def log_fn(optimizer):
        names = parameter_names or optimizer.parameter_names
        state = optimizer.state
        for i, particle in enumerate(state.particles):
            if names is None:
                values = ', '.join(f'{v:.6g}' for v in particle.position)
            else:
                values = ', '.join(f'{n}={v:.6g}'
                                   for n, v in zip(names, particle.position))
            logging.info(f'Iteration {state.iteration} particle {i}: '
                         f'{values} residual={particle.residual:.6g}')

    return log_fn


def write_history(path: str | Path) -> Callable:
    """
    Rewrite a CSV of the global best residual of every generation each time
    a generation finishes.
    """

    def write_fn(optimizer):
        write_csv(history_to_dataframe(optimizer.history), path)

    return write_fn
