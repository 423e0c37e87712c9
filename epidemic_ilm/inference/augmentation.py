"""
Event-Time Augmentation
=======================
Latent true event times treated as extra unknowns alongside the risk
parameters. For each individual this module knows which times are latent,
the window each may occupy given the observations and EventExtents, how to
draw an initial history, and how to propose a new one.

Windows (o = observation, h = horizon):

- infection: [o - extent, o], never before 0
- exposure:  (infection - extent, infection), never before 0
- removal:   [o - extent, o], strictly after infection
- censored individuals with a positive sparks extent: either never
  infected, or first transition in (h - sparks, h)
"""

import logging
from typing import Dict, Optional, Tuple, Union

import numpy as np

from ..core.compartments import DiseaseModel, DiseaseState, EventKind
from ..core.events import Events
from ..core.observations import EventExtents, EventObservations
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

# probability of a birth/death move for censored individuals
TOGGLE_PROBABILITY = 0.5


class EventAugmentation:
    """Latent event structure for one data set"""

    def __init__(self,
                 model: DiseaseModel,
                 observations: EventObservations,
                 extents: EventExtents,
                 start_states=None,
                 step_size: Union[None, float, Dict[EventKind, float]] = None):
        """
        Args:
            model: Disease model variant
            observations: Observed event times
            extents: Event extents
            start_states: Compartments at time 0 (default: all susceptible)
            step_size: Random-walk standard deviation for latent times, either
                one value for every kind or a per-kind mapping; defaults to a
                quarter of each kind's extent
        """
        extents.validate(model)
        n = observations.size
        if start_states is None:
            start_states = np.full(n, int(DiseaseState.SUSCEPTIBLE))
        start_states = np.asarray(start_states, dtype=int)
        if start_states.shape != (n,):
            raise ConfigurationError(
                f"{start_states.size} start states supplied for {n} observed individuals"
            )
        if model.has_removal and observations.removal is None:
            raise ConfigurationError(f"{model.name} model requires removal observations")

        self.model = model
        self.observations = observations
        self.extents = extents
        self.start_states = start_states
        self.size = n
        self.horizon = observations.horizon
        self.step_sizes = self._step_sizes(step_size)

        template = Events(model, start_states)
        self._pending = {kind: ~(template.times[kind] == -np.inf) for kind in model.transitions}
        self._check_consistency()

        lo = max(0.0, self.horizon - extents.sparks)
        self.sparks_window = (lo, self.horizon)
        self.sparks_latent = (
            observations.censored()
            & (start_states == DiseaseState.SUSCEPTIBLE)
            & (self.horizon - lo > 0)
        )
        logger.debug("%d individuals with latent times, %d censored with a sparks window",
                     len(self.updatable()), int(self.sparks_latent.sum()))

    def _step_sizes(self, step_size) -> Dict[str, float]:
        kinds = ("exposure", "infection", "removal", "sparks")
        if step_size is None:
            return {k: getattr(self.extents, k) / 4.0 for k in kinds}
        if isinstance(step_size, dict):
            sizes = {k: getattr(self.extents, k) / 4.0 for k in kinds}
            for key, value in step_size.items():
                sizes[key.label if isinstance(key, EventKind) else str(key)] = float(value)
            return sizes
        return {k: float(step_size) for k in kinds}

    def _check_consistency(self):
        obs_i = self.observations.infection
        obs_r = self.observations.removal
        for i in range(self.size):
            if (self.model.has_removal and not np.isnan(obs_r[i]) and np.isnan(obs_i[i])
                    and self._pending[EventKind.INFECTION][i]):
                raise ConfigurationError(
                    f"Individual {i} has an observed removal but neither an observed "
                    f"infection nor an infectious start state"
                )
            if not np.isnan(obs_i[i]) and not self._pending[EventKind.INFECTION][i]:
                raise ConfigurationError(
                    f"Individual {i} has an observed infection but starts "
                    f"{DiseaseState(self.start_states[i]).name}"
                )
            # exposure must fall strictly inside [0, infection)
            if (self.model.has_latency and obs_i[i] == 0
                    and self._pending[EventKind.EXPOSURE][i]):
                raise ConfigurationError(
                    f"Individual {i} has an infection observed at time 0, leaving no "
                    f"time for its exposure; start it EXPOSED or INFECTIOUS instead"
                )

    def _observed(self, kind: EventKind, i: int) -> float:
        values = self.observations.observed(kind)
        return np.nan if values is None else float(values[i])

    def latent_kinds(self, i: int):
        """Transition kinds whose time for individual i moves under random walk"""
        kinds = []
        if self.sparks_latent[i]:
            return kinds
        infection_observed = not np.isnan(self._observed(EventKind.INFECTION, i))
        for kind in self.model.transitions:
            if not self._pending[kind][i]:
                continue
            if kind is EventKind.EXPOSURE:
                if infection_observed:
                    kinds.append(kind)
            elif not np.isnan(self._observed(kind, i)) and self.extents.extent(kind) > 0:
                kinds.append(kind)
        return kinds

    def updatable(self) -> np.ndarray:
        """Individuals with at least one latent time"""
        return np.array([i for i in range(self.size)
                         if self.sparks_latent[i] or self.latent_kinds(i)], dtype=int)

    def initial(self, rng: np.random.Generator) -> Events:
        """Draw an event history uniformly within every window"""
        events = Events(self.model, self.start_states)
        for i in range(self.size):
            if self.sparks_latent[i]:
                if rng.random() < 0.5:
                    lo, hi = self.sparks_window
                    events.record(i, self.model.transmission, rng.uniform(lo, hi))
                continue

            t_infection = events.infectious_time(i)
            if self._pending[EventKind.INFECTION][i]:
                obs = self._observed(EventKind.INFECTION, i)
                if not np.isnan(obs):
                    lo = max(0.0, obs - self.extents.infection)
                    t_infection = rng.uniform(lo, obs) if lo < obs else obs
                    events.record(i, EventKind.INFECTION, t_infection)

            if (self.model.has_latency and self._pending[EventKind.EXPOSURE][i]
                    and not np.isnan(t_infection)):
                lo = max(0.0, t_infection - self.extents.exposure)
                events.record(i, EventKind.EXPOSURE, rng.uniform(lo, t_infection))

            if self.model.has_removal and self._pending[EventKind.REMOVAL][i]:
                obs = self._observed(EventKind.REMOVAL, i)
                if not np.isnan(obs):
                    lo = max(0.0, obs - self.extents.removal)
                    if np.isfinite(t_infection):
                        lo = max(lo, t_infection)
                    events.record(i, EventKind.REMOVAL, rng.uniform(lo, obs) if lo < obs else obs)
        return events

    def in_support(self, events: Events, i: int) -> bool:
        """Whether individual i's times lie inside their windows"""
        if self.sparks_latent[i]:
            t = events.transmission_time(i)
            lo, hi = self.sparks_window
            later = [k for k in self.model.transitions[1:] if not np.isnan(events.times[k][i])]
            return not later and (np.isnan(t) or lo < t < hi)

        t_infection = events.infectious_time(i)
        if self._pending[EventKind.INFECTION][i]:
            obs = self._observed(EventKind.INFECTION, i)
            if not np.isnan(obs):
                if not max(0.0, obs - self.extents.infection) <= t_infection <= obs:
                    return False
        if self.model.has_latency and self._pending[EventKind.EXPOSURE][i] \
                and not np.isnan(t_infection):
            t = events.time(i, EventKind.EXPOSURE)
            if not (t_infection - self.extents.exposure < t < t_infection and t >= 0):
                return False
        if self.model.has_removal and self._pending[EventKind.REMOVAL][i]:
            obs = self._observed(EventKind.REMOVAL, i)
            if not np.isnan(obs):
                t = events.time(i, EventKind.REMOVAL)
                if not max(0.0, obs - self.extents.removal) <= t <= obs:
                    return False
                if np.isfinite(t_infection) and not t > t_infection:
                    return False
        return True

    def _propose_censored(self, events: Events, i: int,
                          rng: np.random.Generator) -> Tuple[bool, float]:
        """Birth/death/move for a censored individual; returns (changed, log Hastings ratio)"""
        kind = self.model.transmission
        lo, hi = self.sparks_window
        width = hi - lo
        current = events.time(i, kind)
        toggle = rng.random() < TOGGLE_PROBABILITY
        if np.isnan(current):
            if not toggle:
                return False, 0.0
            events.record(i, kind, rng.uniform(lo, hi))
            return True, float(np.log(width))
        if toggle:
            events.record(i, kind, np.nan)
            return True, float(-np.log(width))
        events.record(i, kind, current + rng.normal(0.0, self.step_sizes["sparks"]))
        return True, 0.0

    def propose(self, events: Events, individuals,
                rng: np.random.Generator) -> Tuple[Optional[Events], float]:
        """
        Propose new latent times for ``individuals``

        Returns:
            (proposed events, log Hastings ratio), or (None, 0.0) when the
            proposal leaves the support or changes nothing
        """
        proposal = events.copy()
        log_ratio = 0.0
        changed = False
        for i in individuals:
            i = int(i)
            if self.sparks_latent[i]:
                moved, log_q = self._propose_censored(proposal, i, rng)
                changed |= moved
                log_ratio += log_q
            else:
                for kind in self.latent_kinds(i):
                    step = self.step_sizes[kind.label]
                    if step <= 0:
                        continue
                    proposal.record(i, kind, proposal.time(i, kind) + rng.normal(0.0, step))
                    changed = True
            if not self.in_support(proposal, i):
                return None, 0.0
        if not changed:
            return None, 0.0
        return proposal, log_ratio
