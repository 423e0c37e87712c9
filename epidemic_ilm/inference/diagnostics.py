"""
Convergence Diagnostics
=======================
"""

from typing import Dict, List

import numpy as np

from .trace import Trace


def r_hat(chains: List[np.ndarray]) -> float:
    """
    Gelman-Rubin potential scale reduction for a single parameter.
    Chains may have different lengths; each needs at least two samples.
    """
    chains = [np.asarray(c, dtype=float) for c in chains]
    m = len(chains)
    if m < 2 or any(c.size < 2 for c in chains):
        return np.nan

    means = np.array([c.mean() for c in chains])
    lengths = np.array([c.size for c in chains])
    overall = np.concatenate(chains).mean()

    # between-chain variation (B / n)
    b_over_n = np.sum((means - overall) ** 2) / (m - 1)
    variation = np.array([np.sum((c - c.mean()) ** 2) for c in chains])
    w = np.mean(variation / (lengths - 1))
    if w == 0:
        return np.nan
    var_hat = np.mean(variation / lengths) + b_over_n
    return float(np.sqrt(var_hat / w))


def gelman_rubin(traces: List[Trace], burnin: int = 0) -> Dict[str, float]:
    """R-hat of every parameter across chains"""
    if not traces:
        return {}
    names = traces[0][0].params.names()
    matrices = [t.parameter_matrix(burnin) for t in traces]
    return {
        name: r_hat([m[:, k] for m in matrices if m.size])
        for k, name in enumerate(names)
    }
