"""
Transition Rates
================
Current hazards of every pending transition, updated incrementally as
individuals change compartment. Shared by the simulation engine and the
likelihood evaluator so both see exactly the same process.
"""

import numpy as np

from .compartments import DiseaseModel, DiseaseState, EventKind
from .risk import RiskEvaluation
from ..errors import InvalidRealizationError


class TransitionRates:
    """
    Hazards for a population in given compartments.

    ``internal[j, i]`` is the hazard of j infecting i, non-zero only for
    infectious j and susceptible i; ``external[i]`` is i's sparks hazard.
    ``pressure[i]`` keeps the column sums of ``internal`` so that totals
    cost O(n) per event rather than O(n^2).
    """

    def __init__(self, model: DiseaseModel, risk: RiskEvaluation, states):
        self.model = model
        self.risk = risk
        self._pairwise = risk.pressure
        self.states = np.array(states, dtype=int)
        n = self.states.size

        susceptible = self.states == DiseaseState.SUSCEPTIBLE
        infectious = self.states == DiseaseState.INFECTIOUS
        exposed = self.states == DiseaseState.EXPOSED

        self.external = np.where(susceptible, risk.sparks, 0.0)
        self.internal = np.where(infectious[:, None] & susceptible[None, :], self._pairwise, 0.0)
        self.latency = np.where(exposed, risk.latency, 0.0) if model.has_latency else np.zeros(n)
        self.removal = np.where(infectious, risk.removal, 0.0) if model.has_removal else np.zeros(n)
        self.pressure = self.internal.sum(axis=0)
        self._contributors = (self.internal > 0).sum(axis=0)

    def transmission(self) -> np.ndarray:
        """Total transmission hazard on each individual"""
        return self.external + self.pressure

    def total(self) -> float:
        return float(self.external.sum() + self.pressure.sum()
                     + self.latency.sum() + self.removal.sum())

    def rate(self, i: int, kind: EventKind) -> float:
        """Hazard of individual i undergoing ``kind`` next, summed over sources"""
        if kind is self.model.transmission:
            return float(self.external[i] + self.internal[:, i].sum())
        if kind is EventKind.INFECTION:
            return float(self.latency[i])
        if kind is EventKind.REMOVAL:
            return float(self.removal[i])
        raise InvalidRealizationError(f"{self.model.name} model has no {kind.label} events")

    def source_weights(self, i: int) -> np.ndarray:
        """Weights of [sparks, individual 0, ..., individual n-1] as i's infection source"""
        return np.concatenate(([self.external[i]], self.internal[:, i]))

    def weights(self) -> np.ndarray:
        """Per-(kind, individual) hazards, rows in ``model.transitions`` order"""
        rows = []
        for kind in self.model.transitions:
            if kind is self.model.transmission:
                rows.append(self.transmission())
            elif kind is EventKind.INFECTION:
                rows.append(self.latency)
            else:
                rows.append(self.removal)
        return np.vstack(rows)

    def apply(self, i: int, kind: EventKind):
        """Move individual i through transition ``kind`` and update hazards"""
        expected = self.model.next_state(DiseaseState(self.states[i]))
        if expected is None or expected != kind.target:
            raise InvalidRealizationError(
                f"Individual {i} cannot undergo {kind.label} from state "
                f"{DiseaseState(self.states[i]).name}"
            )
        self.states[i] = int(kind.target)

        if kind is self.model.transmission:
            self.external[i] = 0.0
            self.internal[:, i] = 0.0
            self.pressure[i] = 0.0
            self._contributors[i] = 0
        if kind is EventKind.EXPOSURE:
            self.latency[i] = self.risk.latency[i]
        elif kind is EventKind.INFECTION:
            self.latency[i] = 0.0
            susceptible = self.states == DiseaseState.SUSCEPTIBLE
            self.internal[i] = np.where(susceptible, self._pairwise[i], 0.0)
            self.pressure += self.internal[i]
            self._contributors += self.internal[i] > 0
            if self.model.has_removal:
                self.removal[i] = self.risk.removal[i]
        elif kind is EventKind.REMOVAL:
            self.removal[i] = 0.0
            self.pressure -= self.internal[i]
            self._contributors -= self.internal[i] > 0
            self.internal[i] = 0.0
            # no rounding residue once a target has no infectious neighbours
            self.pressure[self._contributors == 0] = 0.0
            np.maximum(self.pressure, 0.0, out=self.pressure)
