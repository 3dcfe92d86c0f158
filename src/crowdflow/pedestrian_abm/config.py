# -*- coding: utf-8 -*-

"""
pedestrian_abm/config.py

This module centralizes the configuration constants of the vision-based
pedestrian model. Keeping the defaults in one place keeps the simulation,
the scenarios and the headless runner consistent.

Contents:
---------
1. SIMULATION_DEFAULTS:
   - Relaxation time, vision half-angle, horizon distance, contact stiffness,
     integration time step and angular sampling resolution.
   - Scenarios override a subset of these through their own `params` dict.

2. PEDESTRIAN_DEFAULTS:
   - Body mass range, the mass -> radius scaling and the desired-speed
     distribution used when the caller does not give explicit values.

3. PLACEMENT:
   - Rejection-sampling settings for populating an area.

4. NUMERICS:
   - Epsilon thresholds used by the vision and contact kernels.

5. METRICS_DEFAULTS:
   - Kernel radii and grid resolutions for the analysis metrics.

Usage:
------
    from crowdflow.pedestrian_abm.config import SIMULATION_DEFAULTS, PEDESTRIAN_DEFAULTS
"""
import numpy as np

# ───────────────────────────────────────────────────────────────────────────────
# 1) MODEL PARAMETERS (SI units: meters, kilograms, seconds, radians)
# ───────────────────────────────────────────────────────────────────────────────
SIMULATION_DEFAULTS = {
    'tau': 0.5,                              # relaxation time (s)
    'phi': np.radians(75.0),                 # vision half-angle (rad)
    'd_max': 10.0,                           # horizon distance (m)
    'k': 5000.0,                             # contact stiffness (N/m)
    'dt': 0.02,                              # integration time step (s)
    'angular_resolution': np.radians(1.0),   # heading sampling step (rad)
}

# ───────────────────────────────────────────────────────────────────────────────
# 2) PEDESTRIAN ATTRIBUTES
# ───────────────────────────────────────────────────────────────────────────────
PEDESTRIAN_DEFAULTS = {
    'mass_min': 60.0,            # kg
    'mass_max': 100.0,           # kg
    'mass_to_radius': 320.0,     # radius = mass / 320 (m)
    'speed_mean': 1.3,           # desired speed mean (m/s)
    'speed_std': 0.2,            # desired speed std (m/s)
    'speed_min': 0.5,            # sampled desired speeds are clamped here (m/s)
    'direction': 1,              # +1 walks toward +x under periodic flow
}

# ───────────────────────────────────────────────────────────────────────────────
# 3) PLACEMENT
# ───────────────────────────────────────────────────────────────────────────────
PLACEMENT = {
    'margin': 0.05,              # extra clearance between bodies (m)
    'attempts_per_agent': 100,   # max attempts = count * attempts_per_agent
}

# ───────────────────────────────────────────────────────────────────────────────
# 4) NUMERICS
# ───────────────────────────────────────────────────────────────────────────────
NUMERICS = {
    'eps': 1e-10,                # zero test for lengths, cross products, A coefficient
    'root_eps': 1e-6,            # smallest accepted time-to-contact (s)
    'arrival_tolerance': 0.1,    # heading falls back to velocity inside this (m)
    'moving_speed': 0.01,        # below this the velocity angle is not used (m/s)
}

# ───────────────────────────────────────────────────────────────────────────────
# 5) ANALYSIS METRICS
# ───────────────────────────────────────────────────────────────────────────────
METRICS_DEFAULTS = {
    'band_width': 0.3,           # band index strip height (m)
    'band_step': 0.1,            # band index strip offset (m)
    'speed_resolution': 0.2,     # local speed field sampling (m)
    'speed_kernel': 0.7,         # local speed Gaussian radius (m)
    'field_resolution': 0.5,     # compression / pressure grid spacing (m)
    'field_kernel': 1.0,         # compression / pressure Gaussian radius (m)
    'stop_threshold': 0.05,      # speed under which a pedestrian is stopped (m/s)
    'min_displacement': 0.01,    # shorter stop-to-stop moves are ignored (m)
    'history_length': 1000,      # band index samples kept
    'space_time_length': 500,    # local speed fields kept
}
