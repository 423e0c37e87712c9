"""
Markov Chain Traces
===================
Per-chain record of sampled parameters, event histories and transmission
networks, addressable by sweep index (index 0 is the initial state)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..core.events import Events
from ..core.network import TransmissionNetwork
from ..core.risk import RiskParameters


@dataclass
class TraceSample:
    """State of a chain after one sweep"""
    params: RiskParameters
    events: Events
    network: TransmissionNetwork
    loglikelihood: float
    logprior: float
    network_logprob: float

    @property
    def logposterior(self) -> float:
        return self.loglikelihood + self.logprior


@dataclass
class NetworkProbabilities:
    """
    Posterior edge probabilities: ``internal[j, i]`` is the fraction of
    samples in which j infected i, ``external[i]`` the fraction in which i
    was infected by a spark
    """
    external: np.ndarray
    internal: np.ndarray

    def infected(self) -> np.ndarray:
        """Posterior probability that each individual was infected at all"""
        return self.external + self.internal.sum(axis=0)

    def to_dataframe(self) -> pd.DataFrame:
        """Edge list of every cause with non-zero posterior probability"""
        rows = [{"target": int(i), "source": None, "external": True, "probability": float(p)}
                for i, p in enumerate(self.external) if p > 0]
        rows += [{"target": int(i), "source": int(j), "external": False,
                  "probability": float(self.internal[j, i])}
                 for j, i in np.argwhere(self.internal > 0)]
        return pd.DataFrame(rows, columns=["target", "source", "external", "probability"])


class Trace:
    """Ordered samples of one chain"""

    def __init__(self):
        self.samples: List[TraceSample] = []
        self.acceptance: List[Dict[str, float]] = []

    def append(self, sample: TraceSample, acceptance: Optional[Dict[str, float]] = None):
        self.samples.append(sample)
        self.acceptance.append(acceptance or {})

    def __len__(self) -> int:
        return len(self.samples)

    def __getitem__(self, sweep: int) -> TraceSample:
        return self.samples[sweep]

    def __iter__(self):
        return iter(self.samples)

    @property
    def params(self) -> List[RiskParameters]:
        return [s.params for s in self.samples]

    @property
    def events(self) -> List[Events]:
        return [s.events for s in self.samples]

    @property
    def networks(self) -> List[TransmissionNetwork]:
        return [s.network for s in self.samples]

    @property
    def loglikelihood(self) -> np.ndarray:
        return np.array([s.loglikelihood for s in self.samples])

    def parameter_matrix(self, burnin: int = 0) -> np.ndarray:
        """Sweeps x parameters array of flattened parameter vectors"""
        samples = self.samples[burnin:]
        if not samples:
            return np.zeros((0, 0))
        return np.vstack([s.params.flatten() for s in samples])

    def mean_network(self, burnin: int = 0) -> NetworkProbabilities:
        """Edge probabilities averaged over the samples after ``burnin``"""
        samples = self.samples[burnin:]
        if not samples:
            raise ValueError(f"No samples after a burn-in of {burnin}")
        return NetworkProbabilities(
            external=np.mean([s.network.external for s in samples], axis=0),
            internal=np.mean([s.network.internal for s in samples], axis=0),
        )

    def acceptance_rates(self) -> pd.DataFrame:
        """Per-sweep acceptance rate of each update step"""
        df = pd.DataFrame(self.acceptance[1:])
        df.index = pd.RangeIndex(1, len(self.acceptance), name="sweep")
        return df

    def to_dataframe(self) -> pd.DataFrame:
        """One row per sweep: parameter values and log densities"""
        if not self.samples:
            return pd.DataFrame()
        names = self.samples[0].params.names()
        df = pd.DataFrame(self.parameter_matrix(), columns=names)
        df["loglikelihood"] = [s.loglikelihood for s in self.samples]
        df["logprior"] = [s.logprior for s in self.samples]
        df["network_logprob"] = [s.network_logprob for s in self.samples]
        df.index.name = "sweep"
        return df


def plot_trace(trace: Trace, burnin: int = 0, title: str = "MCMC Trace"):
    """
    Plot parameter and log-likelihood traces

    Args:
        trace: Chain trace
        burnin: Sweeps to shade as burn-in
        title: Figure title
    """
    import matplotlib.pyplot as plt

    df = trace.to_dataframe()
    columns = [c for c in df.columns if c not in ("logprior", "network_logprob")]

    fig, axes = plt.subplots(len(columns), 1, figsize=(12, 2.5 * len(columns)), sharex=True,
                             squeeze=False)
    for ax, column in zip(axes[:, 0], columns):
        ax.plot(df.index, df[column], linewidth=1)
        if burnin:
            ax.axvspan(0, burnin, color="grey", alpha=0.2)
        ax.set_ylabel(column)
        ax.grid(True, alpha=0.3)
    axes[-1, 0].set_xlabel("Sweep")

    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout()
    return fig
