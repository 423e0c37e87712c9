"""Core epidemic modeling components"""

from .compartments import DiseaseState, DiseaseModel, EventKind
from .population import Population, Individual
from .risk import NO_TRANSITION, RiskFunctions, RiskParameters, RiskPriors, RiskEvaluation
from .events import Event, Events
from .network import TransmissionNetwork, EXTERNAL, NO_SOURCE
from .rates import TransitionRates
from .likelihood import loglikelihood, source_weights
from .observations import EventObservations, EventExtents, observe
from .simulation import (Simulation, SimulationConfig, SimulationResult, TerminationReason,
                         plot_epidemic_curve)

__all__ = [
    'DiseaseState',
    'DiseaseModel',
    'EventKind',
    'Population',
    'Individual',
    'NO_TRANSITION',
    'RiskFunctions',
    'RiskParameters',
    'RiskPriors',
    'RiskEvaluation',
    'Event',
    'Events',
    'TransmissionNetwork',
    'EXTERNAL',
    'NO_SOURCE',
    'TransitionRates',
    'loglikelihood',
    'source_weights',
    'EventObservations',
    'EventExtents',
    'observe',
    'Simulation',
    'SimulationConfig',
    'SimulationResult',
    'TerminationReason',
    'plot_epidemic_curve',
]
