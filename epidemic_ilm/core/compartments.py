"""
Compartments and Disease Models
===============================
Disease states, the transitions between them, and the four supported
compartment topologies (SI, SIR, SEI, SEIR)
"""

from enum import Enum, IntEnum
from typing import Tuple

from ..errors import ConfigurationError


class DiseaseState(IntEnum):
    """Enumeration of disease states, in progression order"""
    SUSCEPTIBLE = 0
    EXPOSED = 1
    INFECTIOUS = 2
    REMOVED = 3


class EventKind(IntEnum):
    """Transition kinds, named after the compartment they lead into"""
    EXPOSURE = 1
    INFECTION = 2
    REMOVAL = 3

    @property
    def target(self) -> DiseaseState:
        return DiseaseState(int(self))

    @property
    def label(self) -> str:
        return self.name.lower()


class DiseaseModel(Enum):
    """
    Closed set of compartment topologies.

    Each member's value is its ordered compartment chain; everything
    downstream branches on the member rather than on subclasses.
    """
    SI = (DiseaseState.SUSCEPTIBLE, DiseaseState.INFECTIOUS)
    SIR = (DiseaseState.SUSCEPTIBLE, DiseaseState.INFECTIOUS, DiseaseState.REMOVED)
    SEI = (DiseaseState.SUSCEPTIBLE, DiseaseState.EXPOSED, DiseaseState.INFECTIOUS)
    SEIR = (DiseaseState.SUSCEPTIBLE, DiseaseState.EXPOSED, DiseaseState.INFECTIOUS,
            DiseaseState.REMOVED)

    @property
    def states(self) -> Tuple[DiseaseState, ...]:
        return self.value

    @property
    def transitions(self) -> Tuple[EventKind, ...]:
        """Transition kinds in compartment order"""
        return tuple(EventKind(int(s)) for s in self.value[1:])

    @property
    def has_latency(self) -> bool:
        return DiseaseState.EXPOSED in self.value

    @property
    def has_removal(self) -> bool:
        return DiseaseState.REMOVED in self.value

    @property
    def transmission(self) -> EventKind:
        """The transition caused by a transmission (sparks or an infector)"""
        return self.transitions[0]

    def next_state(self, state: DiseaseState) -> DiseaseState:
        """Compartment following ``state``, or None if ``state`` is terminal"""
        idx = self.value.index(state)
        if idx + 1 < len(self.value):
            return self.value[idx + 1]
        return None

    def passed(self, state: DiseaseState) -> Tuple[EventKind, ...]:
        """Transitions an individual starting in ``state`` has already undergone"""
        return tuple(k for k in self.transitions if k.target <= state)

    @classmethod
    def from_name(cls, name: str) -> "DiseaseModel":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ConfigurationError(
                f"Unknown disease model '{name}'; expected one of {[m.name for m in cls]}"
            )
