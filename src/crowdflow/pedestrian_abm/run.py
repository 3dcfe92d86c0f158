"""
Run a pedestrian scenario headless and print its metrics table.

usage:
    crowdflow-run                                   # Bidirectional Flow, 1000 steps
    crowdflow-run --scenario "Bottleneck" --steps 2000 --every 100
    crowdflow-run --list
"""
import argparse
import logging
import sys

import pandas as pd

from crowdflow.pedestrian_abm.metrics import MetricsRecorder
from crowdflow.pedestrian_abm.scenarios import create_scenario, get_scenario_names
from crowdflow.pedestrian_abm.utils import configure_logging, log_params

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run a vision-based pedestrian scenario without graphics')
    parser.add_argument('--scenario', default='Bidirectional Flow', help='Scenario name (see --list)')
    parser.add_argument('--steps', type=int, default=1000, help='Number of time steps to simulate')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for pedestrian placement')
    parser.add_argument('--every', type=int, default=50, help='Record metrics every N steps')
    parser.add_argument('--list', dest='list_only', action='store_true', help='Print scenario names and exit')
    parser.add_argument('--verbose', dest='verbose', action='store_true', help='Enable verbose logging')
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    if args.list_only:
        for name in get_scenario_names():
            print(name)
        return 0

    configure_logging(verbose=args.verbose)

    try:
        scenario = create_scenario(args.scenario)
    except ValueError as exc:
        print(f'error: {exc}', file=sys.stderr)
        return 2
    if args.steps < 0 or args.every < 1:
        print('error: --steps must be >= 0 and --every >= 1', file=sys.stderr)
        return 2

    sim = scenario.create(seed=args.seed)
    log_params(sim.params)
    recorder = MetricsRecorder(every=args.every)
    recorder.record(sim)
    sim.on_step(recorder)

    logger.info('running %r for %d steps (dt=%.3f s)', scenario.name, args.steps, sim.params.dt)
    sim.step_n(args.steps)
    logger.info('finished at t=%.2f s', sim.time)

    with pd.option_context('display.max_columns', None, 'display.width', 160):
        print(recorder.to_frame().to_string(float_format=lambda v: f'{v:.4f}'))
    return 0


if __name__ == '__main__':
    sys.exit(main())
