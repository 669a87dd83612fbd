import numpy as np


def molar_to_pca(concentration: float) -> float:
    """
    Convert a free calcium concentration in M to a pCa value.

    Args:
        concentration: A calcium concentration in M

    Returns:
        The pCa of the provided concentration
    """
    return -np.log10(concentration)


def steps_to_time(n_steps: int, dt: float) -> float:
    """
    Convert a number of timesteps into simulated time in seconds.
    """
    return n_steps * dt
