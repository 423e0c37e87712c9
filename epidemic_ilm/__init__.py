"""Individual-level epidemic simulation and data-augmentation MCMC"""

from . import core
from . import spatial
from . import inference
from .errors import (
    EpidemicError,
    ConfigurationError,
    HazardError,
    InvalidRealizationError,
    InitializationError,
    ChainError,
)

__version__ = "0.1.0"

__all__ = [
    'core',
    'spatial',
    'inference',
    'EpidemicError',
    'ConfigurationError',
    'HazardError',
    'InvalidRealizationError',
    'InitializationError',
    'ChainError',
]
