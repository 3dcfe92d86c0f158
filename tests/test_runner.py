import logging

from crowdflow.pedestrian_abm import run
from crowdflow.pedestrian_abm.utils import configure_logging


def test_list_prints_scenarios(capsys):
    assert run.main(['--list']) == 0
    out = capsys.readouterr().out
    assert 'Bidirectional Flow' in out
    assert 'Evacuation' in out


def test_unknown_scenario_exit_code(capsys):
    assert run.main(['--scenario', 'Nowhere', '--steps', '1']) == 2
    err = capsys.readouterr().err
    assert 'unknown scenario' in err


def test_bad_step_arguments(capsys):
    assert run.main(['--scenario', 'Single Pedestrian', '--every', '0']) == 2


def test_headless_run_prints_table(capsys):
    code = run.main(['--scenario', 'Single Pedestrian', '--steps', '10', '--every', '5', '--seed', '3'])
    assert code == 0
    out = capsys.readouterr().out
    assert 'average_speed' in out
    assert 'occupancy' in out


def test_configure_logging_is_idempotent():
    log = configure_logging()
    n = len(log.handlers)
    configure_logging(verbose=True)
    assert len(log.handlers) == n
    assert log.level == logging.DEBUG
