from SercaTools.core import SimulationConfig
from SercaTools.analysis import ResidualEvaluator, BestRunReporter
from SercaTools.inputs import SPECIES
from SercaTools.model_data import (available_models,
                                   available_reference_curves, load_model,
                                   load_reference_curve)
from SercaTools.optimization.swarm import SwarmOptimizer, get_bounds
from SercaTools.optimization.callbacks import log_particles, write_history

from monty.json import MontyEncoder
from datetime import datetime
from pathlib import Path
from typing import Optional
import argparse
import json
import logging


def get_pso_parser():
    parser = argparse.ArgumentParser(
        description='Fit SERCA rate constants to a reference curve with a '
        'particle swarm')

    parser.add_argument('-m',
                        '--model',
                        help='The reaction network to simulate',
                        choices=available_models(),
                        default='inesi13')
    parser.add_argument('-c',
                        '--curve',
                        help='The experimental curve to fit',
                        choices=available_reference_curves(),
                        default='calcium_binding')
    parser.add_argument(
        '-f',
        '--free_parameters',
        help=('The rates to fit. Bounds are 0.1x to 10x the literature'
              ' value. Defaults to the free parameters of the model'),
        nargs='+',
        type=str,
        default=None)

    parser.add_argument('-p',
                        '--n_particles',
                        help='The number of particles in the swarm',
                        type=int,
                        default=100)
    parser.add_argument('-i',
                        '--n_iterations',
                        help='The number of swarm iterations',
                        type=int,
                        default=100)
    parser.add_argument('-n',
                        '--n_molecules',
                        help='The number of simulated molecules',
                        type=int,
                        default=10000)
    parser.add_argument('-t',
                        '--n_steps',
                        help='The number of timesteps per simulation',
                        type=int,
                        default=100001)
    parser.add_argument('--dt',
                        help='The timestep in seconds',
                        type=float,
                        default=1e-7)
    parser.add_argument('--bin_width',
                        help='The number of timesteps per occupancy bin',
                        type=int,
                        default=1000)
    parser.add_argument(
        '--window',
        help='The number of trailing bins averaged for the steady state',
        type=int,
        default=10)
    parser.add_argument('-w',
                        '--n_workers',
                        help='The number of parallel swarm workers',
                        type=int,
                        default=1)
    parser.add_argument('-s', '--seed', help='The seed', type=int,
                        default=None)

    parser.add_argument('--w_max',
                        help='The inertia weight of the first iteration',
                        type=float,
                        default=1.0)
    parser.add_argument('--w_min',
                        help='The inertia weight of the last iteration',
                        type=float,
                        default=0.3)
    parser.add_argument('--c1',
                        help='The cognitive coefficient',
                        type=float,
                        default=1.05)
    parser.add_argument('--c2',
                        help='The social coefficient',
                        type=float,
                        default=1.05)
    parser.add_argument('--clamp',
                        help='Clip particle positions into the bounds',
                        action='store_true')

    for species in SPECIES:
        parser.add_argument(f'--{species}',
                            help=f'Override the concentration of {species}'
                            ' in M',
                            type=float,
                            default=None)

    parser.add_argument(
        '--diagnostic_bin_width',
        help='The bin width of the time-resolved run of the best fit',
        type=int,
        default=100)
    parser.add_argument(
        '-o',
        '--output_dir',
        help='The directory to write the results to',
        type=str,
        default=f'pso_{datetime.now().strftime("%Y%m%d_%H_%M_%S_%f")}')
    parser.add_argument('-v',
                        '--verbose',
                        help='Log every particle of every iteration',
                        action='store_true')

    return parser


def run_fit(model: str = 'inesi13',
            curve: str = 'calcium_binding',
            free_parameters: Optional[list[str]] = None,
            n_particles: int = 100,
            n_iterations: int = 100,
            n_molecules: int = 10000,
            n_steps: int = 100001,
            dt: float = 1e-7,
            bin_width: int = 1000,
            window: int = 10,
            n_workers: int = 1,
            seed: Optional[int] = None,
            w_max: float = 1.0,
            w_min: float = 0.3,
            c1: float = 1.05,
            c2: float = 1.05,
            clamp: bool = False,
            diagnostic_bin_width: Optional[int] = 100,
            output_dir: Optional[str] = None,
            verbose: bool = False,
            **concentrations) -> dict:
    """
    Fit the free rates of a model to a reference curve and re-run the best
    fit.

    Every setting is validated before the first simulation.

    Returns:
        dict: with the keys ['optimizer', 'report', 'rate_table']
    """
    network, rate_table, environment = load_model(model, free_parameters)
    for species, value in concentrations.items():
        if value is not None:
            environment = environment.with_concentration(species, value)
    reference = load_reference_curve(curve)
    config = SimulationConfig(n_molecules=n_molecules,
                              n_steps=n_steps,
                              dt=dt,
                              bin_width=bin_width,
                              window=window)

    evaluator = ResidualEvaluator(network, rate_table, reference, config,
                                  environment)
    reporter = BestRunReporter(evaluator,
                               diagnostic_bin_width=diagnostic_bin_width)

    callbacks = []
    if verbose:
        callbacks.append(log_particles())
    if output_dir is not None:
        output_dir = Path(output_dir)
        callbacks.append(
            write_history(output_dir / 'iterations_vs_global_best.csv'))

    optimizer = SwarmOptimizer(evaluator,
                               get_bounds(rate_table),
                               n_particles=n_particles,
                               n_iterations=n_iterations,
                               w_max=w_max,
                               w_min=w_min,
                               c1=c1,
                               c2=c2,
                               n_workers=n_workers,
                               seed=seed,
                               clamp_to_bounds=clamp,
                               callbacks=callbacks,
                               parameter_names=rate_table.free_parameter_names)

    logging.info(f'Fitting {rate_table.free_parameter_names} of {model} to '
                 f'{curve} with {n_particles} particles for {n_iterations} '
                 f'iterations ({config})')
    state = optimizer.run()

    best = rate_table.with_free_values(state.global_best_position)
    report = reporter.report(best, rng=seed)

    if output_dir is not None:
        report.write_csv(output_dir)
        with open(output_dir / 'fit.json', 'w') as f:
            json.dump(
                {
                    'model': model,
                    'curve': curve,
                    'config': config,
                    'environment': environment,
                    'rate_table': best,
                    'global_best_residual': state.global_best_residual,
                    'history': optimizer.history,
                    'report': report
                },
                f,
                cls=MontyEncoder)

    return {'optimizer': optimizer, 'report': report, 'rate_table': best}
