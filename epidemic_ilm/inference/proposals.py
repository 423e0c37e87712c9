"""
Parameter Proposals
===================
Gaussian random-walk proposals for each risk-parameter group, with
optional log-scale moves and Haario-style adaptive covariance
"""

from typing import Dict, Tuple, Union

import numpy as np

from ..core.risk import SLOTS, RiskParameters
from ..errors import ConfigurationError

# Haario et al. (2001) scaling, and diagonal jitter keeping the adapted
# covariance positive definite
HAARIO_SCALE = 2.38
ADAPTIVE_EPSILON = 1.0e-6

StepSize = Union[float, np.ndarray]


def group_covariances(step_size: StepSize, template: RiskParameters) -> Dict[str, np.ndarray]:
    """
    Split a proposal step size into one covariance matrix per slot

    Args:
        step_size: a scalar standard deviation shared by every parameter, a
            vector of per-parameter standard deviations, or a full covariance
            matrix over the flattened parameter vector
        template: parameters defining the slot layout

    Returns:
        slot -> covariance matrix, for every slot with parameters
    """
    lengths = template.lengths()
    total = sum(lengths.values())
    given = np.asarray(step_size, dtype=float)

    if given.ndim == 0:
        full = np.eye(total) * float(given) ** 2
    elif given.ndim == 1:
        if given.size != total:
            raise ConfigurationError(
                f"Expected {total} per-parameter step sizes, got {given.size}"
            )
        full = np.diag(given ** 2)
    elif given.ndim == 2:
        if given.shape != (total, total):
            raise ConfigurationError(
                f"Expected a {total}x{total} proposal covariance, got {given.shape}"
            )
        if not np.allclose(given, given.T):
            raise ConfigurationError("Proposal covariance must be symmetric")
        full = given
    else:
        raise ConfigurationError("step_size must be a scalar, vector or matrix")

    if np.any(np.diag(full) < 0):
        raise ConfigurationError("Proposal variances must be non-negative")

    covariances, start = {}, 0
    for slot in SLOTS:
        size = lengths[slot]
        if size:
            covariances[slot] = full[start:start + size, start:start + size].copy()
        start += size
    return covariances


def adaptive_covariance(samples: np.ndarray) -> np.ndarray:
    """Haario-scaled empirical covariance of a (sweeps x d) sample matrix"""
    d = samples.shape[1]
    scaling = HAARIO_SCALE ** 2 / d
    cov = np.atleast_2d(np.cov(samples, rowvar=False))
    return scaling * cov + scaling * ADAPTIVE_EPSILON * np.eye(d)


def propose_group(current: np.ndarray,
                  covariance: np.ndarray,
                  rng: np.random.Generator,
                  log_scale: bool = False) -> Tuple[np.ndarray, float]:
    """
    Random-walk move of one parameter group

    Returns:
        (proposal, log Jacobian correction); the correction is non-zero
        only for log-scale moves
    """
    step = rng.multivariate_normal(np.zeros(current.size), covariance)
    if not log_scale:
        return current + step, 0.0
    if np.any(current <= 0):
        raise ConfigurationError(
            "Log-scale proposals need strictly positive parameters; "
            f"got {current.tolist()}"
        )
    proposal = current * np.exp(step)
    return proposal, float(np.sum(step))
