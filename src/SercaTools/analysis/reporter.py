from SercaTools.analysis.residual import ResidualEvaluator
from SercaTools.analysis.util import DoseResponseCurve
from SercaTools.core import EnsembleSimulator, SimulationResult
from SercaTools.inputs import RateTable, ReferenceCurve
from SercaTools.util.export import (curve_to_dataframe,
                                    steady_state_to_dataframe,
                                    occupancy_history_to_dataframe,
                                    write_csv)

from monty.json import MSONable
from pathlib import Path
from typing import Optional, Sequence
import numpy as np
import logging


class BestRunReport(MSONable):
    """
    The final simulation of a fit.

    Args:
        curve: The dose-response curve of the best rates.
        residual: The residual of the curve against the reference.
        rate_table: The best rates.
        reference_curve: The experimental curve.
        state_labels: The labels of the states of the network.
        diagnostic: A single simulation with the full occupancy history.
        diagnostic_concentration: The analyte concentration of the
            diagnostic simulation.
    """

    def __init__(self,
                 curve: DoseResponseCurve,
                 residual: float,
                 rate_table: RateTable,
                 reference_curve: ReferenceCurve,
                 state_labels: list[str],
                 diagnostic: SimulationResult,
                 diagnostic_concentration: float):
        self.curve = curve
        self.residual = residual
        self.rate_table = rate_table
        self.reference_curve = reference_curve
        self.state_labels = state_labels
        self.diagnostic = diagnostic
        self.diagnostic_concentration = diagnostic_concentration

    @property
    def steady_state(self) -> np.ndarray:
        return self.diagnostic.steady_state

    def write_csv(self, directory: str | Path) -> dict[str, Path]:
        """
        Write the best-fit curve, the steady-state occupancy and the
        time-binned occupancy of the diagnostic run.

        Returns:
            dict: The path of every file written.
        """
        directory = Path(directory)
        return {
            'curve':
            write_csv(
                curve_to_dataframe(self.curve, self.reference_curve.response),
                directory / 'best_fit_curve.csv'),
            'steady_state':
            write_csv(
                steady_state_to_dataframe(self.steady_state,
                                          self.state_labels),
                directory / 'SS_Data_gbest.csv'),
            'time':
            write_csv(occupancy_history_to_dataframe(self.diagnostic),
                      directory / 'Time_Data_gbest.csv')
        }

    def summary(self) -> str:
        lines = [
            f'Best fit to {self.reference_curve.name}: residual '
            f'{self.residual:.6g}',
            self.rate_table.summary(), 'Steady state at '
            f'[{self.reference_curve.analyte}] = '
            f'{self.diagnostic_concentration:.4g} M:'
        ]
        for label, value in zip(self.state_labels, self.steady_state):
            lines.append(f'  {label:<15} {value:.4f}')
        return '\n'.join(lines)


class BestRunReporter():
    """
    Re-runs the simulation with the final rates of an optimization.

    Args:
        evaluator: The evaluator used during the optimization.
        diagnostic_bin_width: The bin width of the diagnostic run, which
            records the occupancy of every bin. Defaults to the bin width of
            the evaluator. The steady state of the diagnostic run still
            averages the same trailing number of steps as the evaluator.
    """

    def __init__(self,
                 evaluator: ResidualEvaluator,
                 diagnostic_bin_width: Optional[int] = None):
        self.evaluator = evaluator
        config = evaluator.config
        if diagnostic_bin_width is not None:
            window = config.window
            if diagnostic_bin_width > 0:
                window = max(1, config.window * config.bin_width //
                             diagnostic_bin_width)
            config = config.replace(bin_width=diagnostic_bin_width,
                                    window=window)
        self.diagnostic_simulator = EnsembleSimulator(evaluator.network,
                                                      config)

    def report(self,
               best: RateTable | Sequence[float],
               rng: np.random.Generator | int | None = None,
               diagnostic_concentration: Optional[float] = None
               ) -> BestRunReport:
        """
        Compute the final dose-response curve and a diagnostic run.

        Args:
            best: The best rate table or position vector.
            rng: The random stream.
            diagnostic_concentration: The analyte concentration of the
                diagnostic run. Defaults to the evaluator's environment.
        """
        rng = np.random.default_rng(rng)
        evaluator = self.evaluator
        rate_table = evaluator.get_rate_table(best)
        analyte = evaluator.reference_curve.analyte

        curve = evaluator.curve_from_results(
            evaluator.simulate_grid(rate_table, rng))
        residual = evaluator.residual_from_curve(curve)

        if diagnostic_concentration is None:
            diagnostic_concentration = evaluator.environment[analyte]
        environment = evaluator.environment.with_concentration(
            analyte, diagnostic_concentration)
        diagnostic = self.diagnostic_simulator.run(rate_table,
                                                   environment,
                                                   rng=rng,
                                                   record_history=True)

        report = BestRunReport(curve=curve,
                               residual=residual,
                               rate_table=rate_table,
                               reference_curve=evaluator.reference_curve,
                               state_labels=evaluator.network.states,
                               diagnostic=diagnostic,
                               diagnostic_concentration=float(
                                   diagnostic_concentration))
        logging.info(report.summary())
        return report
