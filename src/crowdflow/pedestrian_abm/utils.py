"""
utils.py

Logging helpers shared by the runner and interactive sessions.

- `configure_logging(level=logging.INFO, verbose=False)` : console handler on
  the `crowdflow` logger, installed once
- `log_params(params)` : one INFO line per simulation parameter
"""
from typing import Optional
import logging
import math
import sys

LOGGER_NAME = 'crowdflow'
LOG_FORMAT = '[%(levelname)s] %(message)s'


def configure_logging(level: int = logging.INFO, verbose: bool = False) -> logging.Logger:
    """Attach a stdout StreamHandler to the package logger.

    Calling this more than once adjusts the level but never adds a second
    handler. `verbose` forces DEBUG.
    """
    log = logging.getLogger(LOGGER_NAME)
    if verbose:
        level = logging.DEBUG
    if not log.handlers:                                 # avoid duplicate handlers
        h = logging.StreamHandler(sys.stdout)            # console only
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(h)
    for h in log.handlers:
        h.setLevel(level)
    log.setLevel(level)
    # numba's compiler chatter is noise at DEBUG
    logging.getLogger('numba').setLevel(logging.WARNING)
    return log


def log_params(params, log: Optional[logging.Logger] = None) -> None:
    log = log or logging.getLogger(LOGGER_NAME)
    for name, value in params.as_dict().items():
        if name in ('phi', 'angular_resolution'):
            log.info('  %-18s %.4f rad (%.1f deg)', name, value, math.degrees(value))
        else:
            log.info('  %-18s %g', name, value)
