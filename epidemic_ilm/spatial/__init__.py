"""Distance kernels and ready-made risk functions"""

from .distance_kernel import (
    takes,
    exponential_kernel,
    power_law_kernel,
    gaussian_kernel,
    constant,
    constant_risk,
    zero_risk,
    parameter_risk,
    covariate_risk,
    power_law_transmissibility,
    exponential_transmissibility,
    gaussian_transmissibility,
)

__all__ = [
    'takes',
    'exponential_kernel',
    'power_law_kernel',
    'gaussian_kernel',
    'constant',
    'constant_risk',
    'zero_risk',
    'parameter_risk',
    'covariate_risk',
    'power_law_transmissibility',
    'exponential_transmissibility',
    'gaussian_transmissibility',
]
