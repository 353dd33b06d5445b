"""
Barnes-Hut N-body gravity core.

Per step: rebuild an octree over the bodies, accumulate approximate
gravitational forces on every body in parallel, then integrate.
"""

from .body import Body, BodySystem, color_for_body
from .config import GRAVITATIONAL_CONSTANT, NBODY, PRESETS, SimulationConfig
from .errors import (
    GravTreeError,
    InvalidBodyError,
    InvalidConfigError,
    InvalidTimeStepError,
    NumericalInstabilityError,
    StaleTreeError,
    ValidationError,
)
from .forces import ForceEvaluator
from .integrator import Integrator
from .octree import SpatialNode, SpatialTree
from .scheduler import StepScheduler, StepStats

__version__ = "0.1.0"

__all__ = [
    "Body",
    "BodySystem",
    "ForceEvaluator",
    "GRAVITATIONAL_CONSTANT",
    "GravTreeError",
    "Integrator",
    "InvalidBodyError",
    "InvalidConfigError",
    "InvalidTimeStepError",
    "NBODY",
    "NumericalInstabilityError",
    "PRESETS",
    "SimulationConfig",
    "SpatialNode",
    "SpatialTree",
    "StaleTreeError",
    "StepScheduler",
    "StepStats",
    "ValidationError",
    "color_for_body",
]
