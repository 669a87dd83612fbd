from SercaTools.core import (EnsembleSimulator, SimulationConfig,
                             SimulationResult)
from SercaTools.inputs import (ReactionNetwork, RateTable,
                               EnvironmentConditions, ReferenceCurve)
from SercaTools.analysis.util import (DoseResponseCurve, weighted_occupancy,
                                      curve_residual)
from SercaTools.util.exceptions import ConfigurationError

from typing import Optional, Sequence
import numpy as np
import logging


class ResidualEvaluator():
    """
    Scores a set of rate constants against an experimental dose-response
    curve.

    For every concentration of the reference grid the analyte is set, the
    ensemble is simulated and the steady-state occupancies are reduced to the
    curve's observable. The resulting curve is normalized by its maximum and
    compared to the reference.

    Args:
        network: The topology of the cycle.
        rate_table: The rates held fixed, along with the free parameters
            that position vectors are mapped onto.
        reference_curve: The experimental curve.
        config: The simulation settings.
        environment: The concentrations of the non-analyte species.
    """

    def __init__(self,
                 network: ReactionNetwork,
                 rate_table: RateTable,
                 reference_curve: ReferenceCurve,
                 config: Optional[SimulationConfig] = None,
                 environment: Optional[EnvironmentConditions] = None):
        if environment is None:
            environment = EnvironmentConditions()

        rate_table.check_complete(network.rate_names)
        weights = network.observable_weights(reference_curve.observable)
        if not np.any(weights):
            raise ConfigurationError(
                f'Observable {reference_curve.observable} of network '
                f'{network.name} has no weighted states')
        network.check_topology()

        self.network = network
        self.rate_table = rate_table
        self.reference_curve = reference_curve
        self.environment = environment
        self.weights = weights
        self.simulator = EnsembleSimulator(network, config)

    @property
    def config(self) -> SimulationConfig:
        return self.simulator.config

    def get_rate_table(self, x: RateTable | Sequence[float]) -> RateTable:
        """
        Map a position vector of the optimizer onto a full rate table.
        """
        if isinstance(x, RateTable):
            return x
        return self.rate_table.with_free_values(x)

    def simulate_grid(self,
                      x: RateTable | Sequence[float],
                      rng: np.random.Generator | int | None = None,
                      record_history: bool = False) -> list[SimulationResult]:
        """
        Run the ensemble once at every concentration of the reference grid.
        """
        rate_table = self.get_rate_table(x)
        rate_table.check_values()
        rng = np.random.default_rng(rng)

        results = []
        for concentration in self.reference_curve.concentrations:
            environment = self.environment.with_concentration(
                self.reference_curve.analyte, concentration)
            results.append(
                self.simulator.run(rate_table,
                                   environment,
                                   rng=rng,
                                   record_history=record_history))
        return results

    def curve_from_results(
            self, results: list[SimulationResult]) -> DoseResponseCurve:
        occupancies = np.array([r.steady_state for r in results])
        return DoseResponseCurve(
            analyte=self.reference_curve.analyte,
            observable=self.reference_curve.observable,
            concentrations=self.reference_curve.concentrations,
            raw=weighted_occupancy(occupancies, self.weights),
            occupancies=occupancies)

    def compute_curve(
            self,
            x: RateTable | Sequence[float],
            rng: np.random.Generator | int | None = None
    ) -> DoseResponseCurve:
        return self.curve_from_results(self.simulate_grid(x, rng))

    def residual_from_curve(self, curve: DoseResponseCurve) -> float:
        """
        Compare a simulated curve to the reference.

        Raises:
            NumericalDegeneracyError: If the simulated curve is zero
                everywhere or the residual is not finite.
        """
        return curve_residual(self.reference_curve.response,
                              curve.normalized)

    def evaluate(self,
                 x: RateTable | Sequence[float],
                 rng: np.random.Generator | int | None = None) -> float:
        """
        Get the residual of a set of rates.

        Args:
            x: A full rate table, or a position vector of free parameter
                values.
            rng: The random stream of this evaluation.

        Returns:
            float: sqrt(sum((reference - normalized simulated)^2))
        """
        rate_table = self.get_rate_table(x)
        residual = self.residual_from_curve(self.compute_curve(rate_table, rng))
        logging.debug(f'Residual {residual:.6f} for '
                      f'{rate_table.free_parameter_names} = '
                      f'{rate_table.free_values}')
        return residual

    def __call__(self,
                 x: RateTable | Sequence[float],
                 rng: np.random.Generator | int | None = None) -> float:
        return self.evaluate(x, rng)
