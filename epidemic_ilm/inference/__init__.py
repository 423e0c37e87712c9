"""Data-augmentation MCMC for individual-level epidemic models"""

from .augmentation import EventAugmentation
from .diagnostics import r_hat, gelman_rubin
from .mcmc import MCMC, MCMCConfig, MarkovChain, ChainStatus
from .proposals import group_covariances, adaptive_covariance, propose_group
from .trace import NetworkProbabilities, Trace, TraceSample, plot_trace

__all__ = [
    'EventAugmentation',
    'r_hat',
    'gelman_rubin',
    'MCMC',
    'MCMCConfig',
    'MarkovChain',
    'ChainStatus',
    'group_covariances',
    'adaptive_covariance',
    'propose_group',
    'NetworkProbabilities',
    'Trace',
    'TraceSample',
    'plot_trace',
]
