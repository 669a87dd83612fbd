class ConfigurationError(ValueError):
    """
    Raised when a run is misconfigured. These are always raised before any
    simulation work begins.
    """


class NumericalDegeneracyError(ArithmeticError):
    """
    Raised when an evaluation produces a value that cannot be used as a
    residual, such as a curve with a maximum of zero or a NaN residual.
    """


class InvalidRateError(NumericalDegeneracyError):
    """
    Raised when a rate constant is negative or not finite. This typically
    happens when a swarm particle drifts outside of its bounds.
    """


class SimulationCancelled(RuntimeError):
    pass


class DeadEndStateWarning(UserWarning):
    """
    Warns about states that trap molecules: states with no outgoing
    transitions, or states from which the initial state cannot be reached.
    """


class BranchProbabilityWarning(UserWarning):
    """
    Warns when the cumulative transition probability out of a state exceeds 1
    for the configured rates, concentrations and timestep. Later ordered
    branches of such a state are under-sampled or unreachable.
    """
