"""
Event History
=============
Per-individual transition times for one realization of an epidemic.

Each transition kind the disease model has gets a float array of length n:

- ``nan``: the transition has not happened
- ``-inf``: the individual started (at time 0) beyond this transition
- finite, non-negative: the time it happened
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .compartments import DiseaseModel, DiseaseState, EventKind
from ..errors import ConfigurationError, InvalidRealizationError


@dataclass(frozen=True, order=True)
class Event:
    """A single transition. Ordering is time, then individual, then kind."""
    time: float
    individual: int
    kind: EventKind


class Events:
    """Event history for a population under a disease model"""

    def __init__(self, model: DiseaseModel, start_states):
        """
        Args:
            model: Disease model variant
            start_states: compartment of every individual at time 0
        """
        self.model = model
        start_states = np.asarray(start_states, dtype=int)
        if start_states.ndim != 1 or start_states.size == 0:
            raise ConfigurationError("start_states must be a non-empty 1-D sequence")
        allowed = {int(s) for s in model.states}
        invalid = [int(s) for s in np.unique(start_states) if int(s) not in allowed]
        if invalid:
            raise ConfigurationError(
                f"Start states {invalid} are not compartments of the {model.name} model"
            )
        self.start_states = start_states
        self.size = start_states.size
        self.times: Dict[EventKind, np.ndarray] = {
            kind: np.full(self.size, np.nan) for kind in model.transitions
        }
        for i, state in enumerate(start_states):
            for kind in model.passed(DiseaseState(state)):
                self.times[kind][i] = -np.inf

    @classmethod
    def from_times(cls,
                   model: DiseaseModel,
                   start_states=None,
                   exposure=None,
                   infection=None,
                   removal=None) -> "Events":
        """Build an event history from explicit time arrays (``nan`` = never)"""
        supplied = {EventKind.EXPOSURE: exposure, EventKind.INFECTION: infection,
                    EventKind.REMOVAL: removal}
        sizes = {np.size(v) for v in supplied.values() if v is not None}
        if start_states is None:
            if len(sizes) != 1:
                raise ConfigurationError("Cannot infer population size from event times")
            start_states = np.full(sizes.pop(), int(DiseaseState.SUSCEPTIBLE))
        events = cls(model, start_states)
        for kind, values in supplied.items():
            if values is None:
                continue
            if kind not in model.transitions:
                raise ConfigurationError(f"{model.name} model has no {kind.label} events")
            values = np.asarray(values, dtype=float)
            if values.shape != (events.size,):
                raise ConfigurationError(
                    f"{kind.label} times have shape {values.shape}, expected ({events.size},)"
                )
            passed = events.times[kind] == -np.inf
            events.times[kind] = np.where(passed, -np.inf, values)
        return events

    @property
    def exposure(self) -> Optional[np.ndarray]:
        return self.times.get(EventKind.EXPOSURE)

    @property
    def infection(self) -> Optional[np.ndarray]:
        return self.times.get(EventKind.INFECTION)

    @property
    def removal(self) -> Optional[np.ndarray]:
        return self.times.get(EventKind.REMOVAL)

    def time(self, i: int, kind: EventKind) -> float:
        return float(self.times[kind][i])

    def record(self, i: int, kind: EventKind, time: float):
        self.times[kind][i] = time

    def transmission_time(self, i: int) -> float:
        return self.time(i, self.model.transmission)

    def infectious_time(self, i: int) -> float:
        return self.time(i, EventKind.INFECTION)

    def state_at(self, i: int, t: float) -> DiseaseState:
        """Compartment of individual i just after time t"""
        state = DiseaseState(self.start_states[i])
        for kind in self.model.transitions:
            when = self.times[kind][i]
            if not np.isnan(when) and when <= t:
                state = kind.target
        return state

    def states_at(self, t: float) -> np.ndarray:
        return np.array([int(self.state_at(i, t)) for i in range(self.size)])

    def final_states(self) -> np.ndarray:
        return self.states_at(np.inf)

    def ever_transmitted(self) -> np.ndarray:
        """Mask of individuals that underwent the transmission event after time 0"""
        t = self.times[self.model.transmission]
        return np.isfinite(t)

    def validate(self):
        """Raise InvalidRealizationError if any individual's times are out of order"""
        for i in range(self.size):
            self._validate_individual(i)

    def _validate_individual(self, i: int):
        passed = self.model.passed(DiseaseState(self.start_states[i]))
        previous = None
        stopped = None
        for kind in self.model.transitions:
            when = self.times[kind][i]
            if kind in passed:
                if when != -np.inf:
                    raise InvalidRealizationError(
                        f"Individual {i} started beyond {kind.label} but has time {when}"
                    )
                continue
            if np.isnan(when):
                stopped = kind
                continue
            if stopped is not None:
                raise InvalidRealizationError(
                    f"Individual {i} has a {kind.label} time but no {stopped.label} time"
                )
            if not np.isfinite(when) or when < 0:
                raise InvalidRealizationError(
                    f"Individual {i} has invalid {kind.label} time {when}"
                )
            if previous is not None and when <= previous:
                raise InvalidRealizationError(
                    f"Individual {i}: {kind.label} at {when} does not follow the "
                    f"previous transition at {previous}"
                )
            previous = when

    def sorted_events(self) -> List[Event]:
        """All events after time 0, in the order the likelihood processes them"""
        events = []
        for kind, values in self.times.items():
            for i in np.flatnonzero(np.isfinite(values)):
                events.append(Event(float(values[i]), int(i), kind))
        events.sort()
        return events

    def last_time(self) -> float:
        events = self.sorted_events()
        return events[-1].time if events else 0.0

    def copy(self) -> "Events":
        other = Events.__new__(Events)
        other.model = self.model
        other.start_states = self.start_states.copy()
        other.size = self.size
        other.times = {kind: values.copy() for kind, values in self.times.items()}
        return other

    def __eq__(self, other) -> bool:
        if not isinstance(other, Events) or other.model is not self.model:
            return False
        return (np.array_equal(self.start_states, other.start_states)
                and all(np.array_equal(self.times[k], other.times[k], equal_nan=True)
                        for k in self.times))

    def __repr__(self) -> str:
        occurred = {k.label: int(np.isfinite(v).sum()) for k, v in self.times.items()}
        return f"Events({self.model.name}, n={self.size}, {occurred})"

    def to_dataframe(self) -> pd.DataFrame:
        """One row per individual, one column per transition kind"""
        df = pd.DataFrame({
            "id": np.arange(self.size),
            "start_state": [DiseaseState(s).name for s in self.start_states],
        })
        for kind, values in self.times.items():
            df[kind.label] = values
        return df

