"""
Transmission Network
====================
Who infected whom: ``internal[j, i]`` is True iff j caused i's
transmission event, ``external[i]`` is True iff i was infected by a spark
"""

from typing import Optional

import numpy as np
import pandas as pd

from .events import Events
from ..errors import ConfigurationError, InvalidRealizationError

EXTERNAL = -1
NO_SOURCE = -2


class TransmissionNetwork:
    """Indicator structure over infection causes"""

    def __init__(self, size: int):
        if size <= 0:
            raise ConfigurationError("Transmission network size must be positive")
        self.size = size
        self.external = np.zeros(size, dtype=bool)
        self.internal = np.zeros((size, size), dtype=bool)

    @classmethod
    def from_sources(cls, sources) -> "TransmissionNetwork":
        """
        Build from a source vector: ``EXTERNAL`` for sparks, ``NO_SOURCE``
        for never infected, otherwise the infector's index
        """
        sources = np.asarray(sources, dtype=int)
        network = cls(sources.size)
        for i, source in enumerate(sources):
            network.set_source(i, int(source))
        return network

    def set_source(self, i: int, source: int):
        """Replace the recorded cause of i's infection"""
        self.external[i] = False
        self.internal[:, i] = False
        if source == EXTERNAL:
            self.external[i] = True
        elif source == NO_SOURCE:
            pass
        elif 0 <= source < self.size and source != i:
            self.internal[source, i] = True
        else:
            raise ConfigurationError(f"Invalid infection source {source} for individual {i}")

    def source(self, i: int) -> int:
        if self.external[i]:
            return EXTERNAL
        infectors = np.flatnonzero(self.internal[:, i])
        if infectors.size:
            return int(infectors[0])
        return NO_SOURCE

    def sources(self) -> np.ndarray:
        return np.array([self.source(i) for i in range(self.size)], dtype=int)

    def causes(self) -> np.ndarray:
        """Number of recorded causes per individual (valid networks: 0 or 1)"""
        return self.external.astype(int) + self.internal.sum(axis=0)

    def validate(self, events: Optional[Events] = None):
        """
        Check the exactly-one-cause invariant and, given an event history,
        that every infected individual has a cause and every infector was
        infectious strictly before the infection it caused.
        """
        if np.any(np.diag(self.internal)):
            raise InvalidRealizationError("An individual is recorded as infecting itself")
        causes = self.causes()
        multiple = np.flatnonzero(causes > 1)
        if multiple.size:
            raise InvalidRealizationError(
                f"Individual {int(multiple[0])} has {int(causes[multiple[0]])} recorded causes"
            )
        if events is None:
            return
        if events.size != self.size:
            raise ConfigurationError(
                f"Network of size {self.size} does not match event history of size {events.size}"
            )

        transmitted = events.ever_transmitted()
        for i in range(self.size):
            if transmitted[i] and causes[i] == 0:
                raise InvalidRealizationError(f"Individual {i} was infected but has no cause")
            if not transmitted[i] and causes[i] != 0:
                raise InvalidRealizationError(
                    f"Individual {i} has a recorded cause but no infection event"
                )
        for j, i in np.argwhere(self.internal):
            t_j = events.infectious_time(int(j))
            t_i = events.transmission_time(int(i))
            if np.isnan(t_j) or not t_j < t_i:
                raise InvalidRealizationError(
                    f"Individual {int(j)} infects {int(i)} at {t_i} but is not infectious "
                    f"before then (infectious at {t_j})"
                )
            removed = events.removal
            if removed is not None and not np.isnan(removed[j]) and removed[j] < t_i:
                raise InvalidRealizationError(
                    f"Individual {int(j)} infects {int(i)} at {t_i} after its removal "
                    f"at {removed[j]}"
                )

    def copy(self) -> "TransmissionNetwork":
        other = TransmissionNetwork(self.size)
        other.external = self.external.copy()
        other.internal = self.internal.copy()
        return other

    def __eq__(self, other) -> bool:
        return (isinstance(other, TransmissionNetwork)
                and np.array_equal(self.external, other.external)
                and np.array_equal(self.internal, other.internal))

    def __repr__(self) -> str:
        return (f"TransmissionNetwork(n={self.size}, external={int(self.external.sum())}, "
                f"internal={int(self.internal.sum())})")

    def to_dataframe(self) -> pd.DataFrame:
        """Edge list: one row per infected individual"""
        rows = []
        for i, source in enumerate(self.sources()):
            if source == NO_SOURCE:
                continue
            rows.append({"target": i,
                         "source": None if source == EXTERNAL else int(source),
                         "external": source == EXTERNAL})
        return pd.DataFrame(rows, columns=["target", "source", "external"])
