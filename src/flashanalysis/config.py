"""
Configuration & Global Defaults
===============================
This module serves as the central registry for numeric defaults and physical
constants shared by every analysis run.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (grid densities, tolerances, safety
   factors) from being scattered throughout the solvers and optimisers.
2. Concurrency: Independent runs execute in parallel worker processes. The only
   data they share are the read-only values below; per-run settings are copied
   into explicit objects (see ``flashanalysis.search.settings``) and never
   written back here.

Exports:
    Grid, scheme, optimiser and physical constants (all treated as immutable).
"""
from typing import Final

# ---- Grid & discretisation ----
TIME_STEP_SAFETY_FACTOR: Final[float] = 0.95
TAU_FACTOR_REDUCTION: Final[float] = 1.5
MAX_GRID_ADJUSTMENTS: Final[int] = 100
GRID_DENSITY_INCREMENT: Final[int] = 5
WIDTH_TOLERANCE_FACTOR: Final[int] = 10000
PULSE_AREA_SEGMENTS: Final[int] = 2000

# ---- Heating curve ----
DEFAULT_NUM_POINTS: Final[int] = 200
RELATIVE_TIME_MARGIN: Final[float] = 1.01

# ---- Nonlinear / coupled schemes ----
DEFAULT_NONLINEAR_PRECISION: Final[float] = 1e-3
MAX_FIXED_POINT_ITERATIONS: Final[int] = 200
DIVERGENCE_THRESHOLD: Final[float] = 1e10

# ---- Optimiser ----
DEFAULT_GRADIENT_RESOLUTION: Final[float] = 1e-4
DISCRETE_GRADIENT_RESOLUTION: Final[float] = 5e-2
DEFAULT_LINEAR_RESOLUTION: Final[float] = 1e-4
DEFAULT_ERROR_TOLERANCE: Final[float] = 1e-3
DEFAULT_ITERATION_LIMIT: Final[int] = 50
DEFAULT_BUFFER_SIZE: Final[int] = 4
DEFAULT_DAMPING_RATIO: Final[float] = 0.5
MAX_FAILED_ATTEMPTS: Final[int] = 4
COST_EPSILON: Final[float] = 1e-14
REGULARISATION_STRENGTH: Final[float] = 1e-4
RANGE_PENALTY_STRENGTH: Final[float] = 0.1

# ---- Physics ----
PARKERS_COEFFICIENT: Final[float] = 0.1388
STEFAN_BOLTZMANN: Final[float] = 5.6703e-8
CRUDE_AVERAGE_REDUCTION: Final[int] = 32
HALF_RISE_FAIL_SAFE_FACTOR: Final[float] = 3.0
TRUNCATION_CUTOFF_FACTOR: Final[float] = 7.2
