"""
Distance Kernels and Ready-Made Risk Functions
==============================================
Distance-dependent transmission kernels, and risk functions built on them
that plug directly into a RiskFunctions bundle.

Every risk function here has the slot signature
``fn(params, population, i[, j])`` and an ``n_params`` attribute giving the
length of the parameter vector it expects (``None`` when it depends on the
population, e.g. the number of covariates).
"""

from typing import Callable, Optional

import numpy as np

from ..core.population import Population


def takes(n_params: Optional[int]) -> Callable:
    """Annotate a risk function with the parameter-vector length it expects"""
    def decorate(fn: Callable) -> Callable:
        fn.n_params = n_params
        return fn
    return decorate


def exponential_kernel(distance, scale: float):
    """
    Exponential decay kernel
    K ∝ exp(-distance / scale)

    Args:
        distance: Distance between individuals
        scale: Characteristic distance (higher = longer range)
    """
    return np.exp(-np.asarray(distance) / scale)


def power_law_kernel(distance, exponent: float, offset: float = 1.0):
    """
    Power law decay kernel
    K ∝ 1 / (distance + offset)^exponent

    Args:
        distance: Distance between individuals
        exponent: Decay exponent (typical: 1-3)
        offset: Offset to avoid division by zero
    """
    return 1.0 / ((np.asarray(distance) + offset) ** exponent)


def gaussian_kernel(distance, sigma: float):
    """
    Gaussian kernel
    K ∝ exp(-distance² / (2σ²))
    """
    return np.exp(-(np.asarray(distance) ** 2) / (2 * sigma ** 2))


@takes(0)
def constant_risk(params, population: Population, *individuals) -> float:
    """Always 1; usable in any slot"""
    return 1.0


@takes(0)
def zero_risk(params, population: Population, *individuals) -> float:
    """Always 0, e.g. sparks for a closed population"""
    return 0.0


@takes(1)
def parameter_risk(params, population: Population, *individuals) -> float:
    """The single parameter itself, e.g. a homogeneous removal rate"""
    return params[0]


def constant(value: float) -> Callable:
    """Parameter-free risk function returning ``value``"""
    @takes(0)
    def risk(params, population: Population, *individuals) -> float:
        return value
    risk.__name__ = f"constant_{value}"
    return risk


@takes(None)
def covariate_risk(params, population: Population, i: int) -> float:
    """Linear combination of individual i's covariates"""
    return float(np.dot(params, population.covariates[i]))


@takes(2)
def power_law_transmissibility(params, population: Population, i: int, j: int) -> float:
    """params = (scale, exponent): scale / (d_ji + 1)^exponent"""
    return params[0] * float(power_law_kernel(population.distances[j, i], params[1]))


@takes(2)
def exponential_transmissibility(params, population: Population, i: int, j: int) -> float:
    """params = (scale, length): scale * exp(-d_ji / length)"""
    return params[0] * float(exponential_kernel(population.distances[j, i], params[1]))


@takes(2)
def gaussian_transmissibility(params, population: Population, i: int, j: int) -> float:
    """params = (scale, sigma): scale * exp(-d_ji² / 2σ²)"""
    return params[0] * float(gaussian_kernel(population.distances[j, i], params[1]))
