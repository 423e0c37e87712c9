"""
Observation Model
=================
Delayed, censored observations of an event history, and the extents
within which latent true times may lie relative to those observations
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .compartments import DiseaseModel, EventKind
from .events import Events
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class EventObservations:
    """
    Observed infection (and removal) times; ``nan`` marks "never observed".

    Arrays are frozen at construction: observations are immutable input to
    inference.
    """

    def __init__(self, infection, removal=None, horizon: Optional[float] = None):
        infection = np.array(infection, dtype=float)
        if infection.ndim != 1:
            raise ConfigurationError("Infection observations must be a 1-D sequence")
        if removal is not None:
            removal = np.array(removal, dtype=float)
            if removal.shape != infection.shape:
                raise ConfigurationError(
                    f"Removal observations have shape {removal.shape}, "
                    f"expected {infection.shape}"
                )
            late = ~np.isnan(removal) & ~np.isnan(infection) & (removal <= infection)
            if np.any(late):
                raise ConfigurationError(
                    f"Individual {int(np.flatnonzero(late)[0])} has a removal observation "
                    f"that does not follow its infection observation"
                )
        for name, values in (("infection", infection), ("removal", removal)):
            if values is not None and np.any(values[~np.isnan(values)] < 0):
                raise ConfigurationError(f"Negative {name} observation")

        observed = np.concatenate([v[~np.isnan(v)] for v in (infection, removal) if v is not None])
        if horizon is None:
            horizon = float(observed.max()) if observed.size else 0.0
        elif observed.size and observed.max() > horizon:
            raise ConfigurationError(
                f"Observation at {observed.max()} falls after the horizon {horizon}"
            )

        infection.setflags(write=False)
        if removal is not None:
            removal.setflags(write=False)
        self.infection = infection
        self.removal = removal
        self.horizon = float(horizon)
        self.size = infection.size

    def observed(self, kind: EventKind) -> Optional[np.ndarray]:
        if kind is EventKind.INFECTION:
            return self.infection
        if kind is EventKind.REMOVAL:
            return self.removal
        return None

    def censored(self) -> np.ndarray:
        """Mask of individuals whose infection was never observed"""
        return np.isnan(self.infection)

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame({"id": np.arange(self.size), "infection": self.infection})
        if self.removal is not None:
            df["removal"] = self.removal
        return df

    def __repr__(self) -> str:
        return (f"EventObservations(n={self.size}, observed_infections="
                f"{int((~self.censored()).sum())}, horizon={self.horizon})")


def observe(events: Events,
            infection_delay,
            removal_delay=None,
            horizon: float = np.inf,
            rng: Optional[np.random.Generator] = None) -> EventObservations:
    """
    Produce observations from a true event history

    Args:
        events: True event history
        infection_delay: Non-negative delay distribution for infection
            observations (frozen scipy.stats distribution)
        removal_delay: Delay distribution for removal observations; defaults
            to ``infection_delay``. A removal is dropped when the same
            individual's infection goes unobserved.
        horizon: End of the study; later observations are censored
        rng: Random generator

    Returns:
        EventObservations
    """
    if rng is None:
        rng = np.random.default_rng()
    if removal_delay is None:
        removal_delay = infection_delay

    def delayed(times, delay):
        observed = np.full(events.size, np.nan)
        for i, t in enumerate(times):
            if not np.isfinite(t):
                continue
            lag = float(delay.rvs(random_state=rng))
            if not lag >= 0:
                raise ConfigurationError(f"Observation delay must be non-negative, drew {lag}")
            if t + lag <= horizon:
                observed[i] = t + lag
        return observed

    infection = delayed(events.infection, infection_delay)
    removal = None
    if events.model.has_removal:
        removal = delayed(events.removal, removal_delay)
        # delays can reorder an individual's observations; drop the removal
        unordered = ~np.isnan(removal) & ~np.isnan(infection) & (removal <= infection)
        removal[unordered] = np.nan
        # a removal is only reported for someone whose infection was
        # reported, or who was infectious from the start
        unreported = np.isnan(infection) & np.isfinite(events.infection)
        removal[unreported] = np.nan

    finite_horizon = horizon if np.isfinite(horizon) else None
    result = EventObservations(infection, removal, horizon=finite_horizon)
    logger.info("Observed %d of %d infections", int((~result.censored()).sum()), events.size)
    return result


@dataclass
class EventExtents:
    """
    Maximum distance between a latent true event time and what is known
    about it:

    - ``infection``/``removal``: true time lies in [observed - extent, observed]
    - ``exposure``: true exposure lies in (infection - extent, infection)
    - ``sparks``: a censored individual may have a latent first transition
      in (horizon - sparks, horizon)
    """
    exposure: float = 0.0
    infection: float = 0.0
    removal: float = 0.0
    sparks: float = 0.0

    def __post_init__(self):
        for name in ("exposure", "infection", "removal", "sparks"):
            value = float(getattr(self, name))
            if not (np.isfinite(value) and value >= 0):
                raise ConfigurationError(f"Event extent '{name}' must be finite and >= 0")
            setattr(self, name, value)

    def validate(self, model: DiseaseModel):
        if model.has_latency and self.exposure <= 0:
            raise ConfigurationError(
                f"{model.name} model needs a positive exposure extent (exposure is never observed)"
            )

    def extent(self, kind: EventKind) -> float:
        return getattr(self, kind.label)
