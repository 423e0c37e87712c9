"""
Population
==========
Static per-individual covariates, locations and the pairwise distance
matrix shared read-only by simulation and inference
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy.spatial.distance import cdist

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Individual:
    """A single member of the population"""
    id: int
    covariates: Optional[np.ndarray] = None
    location: Optional[np.ndarray] = None


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float, copy=True)
    array.setflags(write=False)
    return array


class Population:
    """
    Ordered collection of individuals and their pairwise distances.

    Either ``distances`` or ``locations`` must be supplied. When only
    locations are given, Euclidean distances are computed from them. All
    arrays are copied and frozen, so the same population can be shared by
    any number of simulations and chains.
    """

    def __init__(self,
                 distances: Optional[np.ndarray] = None,
                 locations: Optional[np.ndarray] = None,
                 covariates: Optional[np.ndarray] = None):
        """
        Args:
            distances: n x n symmetric, non-negative matrix with zero diagonal
            locations: n x 2 array of (x, y) coordinates
            covariates: n x p array of individual-level covariates
        """
        if locations is not None:
            locations = _readonly(locations)
            if locations.ndim != 2 or locations.shape[1] != 2:
                raise ConfigurationError(
                    f"Locations must be an n x 2 array, got shape {locations.shape}"
                )

        if distances is None:
            if locations is None:
                raise ConfigurationError("Population requires distances or locations")
            distances = cdist(locations, locations, metric="euclidean")
        distances = _readonly(distances)
        self._validate_distances(distances)

        self.size = distances.shape[0]

        if locations is not None and locations.shape[0] != self.size:
            raise ConfigurationError(
                f"{locations.shape[0]} locations supplied for a population of {self.size}"
            )

        if covariates is not None:
            covariates = _readonly(covariates)
            if covariates.ndim == 1:
                covariates = _readonly(covariates.reshape(-1, 1))
            if covariates.shape[0] != self.size:
                raise ConfigurationError(
                    f"{covariates.shape[0]} covariate rows supplied for a population of {self.size}"
                )

        self.distances = distances
        self.locations = locations
        self.covariates = covariates
        logger.debug("Population of %d individuals constructed", self.size)

    @staticmethod
    def _validate_distances(distances: np.ndarray):
        if distances.ndim != 2 or distances.shape[0] != distances.shape[1]:
            raise ConfigurationError(
                f"Distance matrix must be square, got shape {distances.shape}"
            )
        if distances.shape[0] == 0:
            raise ConfigurationError("Population must contain at least one individual")
        if not np.all(np.isfinite(distances)):
            raise ConfigurationError("Distance matrix contains non-finite entries")
        if np.any(distances < 0):
            raise ConfigurationError("Distance matrix contains negative entries")
        if not np.allclose(distances, distances.T):
            raise ConfigurationError("Distance matrix must be symmetric")
        if np.any(np.diag(distances) != 0):
            raise ConfigurationError("Distance matrix must have a zero diagonal")

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, i: int) -> Individual:
        if not 0 <= i < self.size:
            raise IndexError(f"Individual {i} outside population of {self.size}")
        return Individual(
            id=i,
            covariates=None if self.covariates is None else self.covariates[i],
            location=None if self.locations is None else self.locations[i],
        )

    def __iter__(self):
        for i in range(self.size):
            yield self[i]

    def distance(self, i: int, j: int) -> float:
        return float(self.distances[i, j])

    def to_dataframe(self) -> pd.DataFrame:
        """Per-individual table of locations and covariates"""
        df = pd.DataFrame({"id": np.arange(self.size)})
        if self.locations is not None:
            df["x"] = self.locations[:, 0]
            df["y"] = self.locations[:, 1]
        if self.covariates is not None:
            for k in range(self.covariates.shape[1]):
                df[f"covariate_{k}"] = self.covariates[:, k]
        return df

    def summary(self) -> str:
        """Return population summary statistics"""
        upper = self.distances[np.triu_indices(self.size, k=1)]

        summary = "Population Summary\n"
        summary += "=" * 50 + "\n"
        summary += f"Total size: {self.size}\n"
        if upper.size:
            summary += f"Distance range: {upper.min():.3f} - {upper.max():.3f}\n"
            summary += f"Mean distance: {upper.mean():.3f}\n"
        if self.covariates is not None:
            summary += f"Covariates per individual: {self.covariates.shape[1]}\n"
        return summary
