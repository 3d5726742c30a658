# bulk_flux/__init__.py
from . import constants
from . import roughness
from . import solver
from . import stability
from . import thermodynamics
from . import utils

from .constants import FluxConstants, SolverConfig, StabilityRegime, ProfileKind
from .solver import BulkFluxSolver, compute_fluxes, OUTPUT_COLUMNS
from .stability import classify_stability, psi

__version__ = "0.1.0"
