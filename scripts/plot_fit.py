from SercaTools.util.visualization import (plot_history, plot_dose_response,
                                           plot_occupancy)

from monty.json import MontyDecoder
from pathlib import Path
import argparse
import json

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('output_dir',
                        help='The output directory of run_pso.py',
                        type=str)
    args = parser.parse_args()

    output_dir = Path(args.output_dir)
    with open(output_dir / 'fit.json', 'r') as f:
        fit = json.load(f, cls=MontyDecoder)
    report = fit['report']

    fig = plot_history(fit['history'])
    fig.savefig(output_dir / 'global_best.png')

    fig = plot_dose_response(report.curve,
                             reference=report.reference_curve.response)
    fig.savefig(output_dir / 'best_fit_curve.png')

    fig = plot_occupancy(report.diagnostic, labels=report.state_labels)
    fig.savefig(output_dir / 'occupancy_gbest.png')
