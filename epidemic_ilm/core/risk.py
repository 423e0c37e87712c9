"""
Risk Functions, Parameters and Priors
=====================================
The six pluggable rate functions of an individual-level model, their
parameter vectors, and prior distributions over those vectors.

Slot signatures (``params`` is the slot's parameter vector):

- ``sparks(params, population, i)``: exogenous infection hazard of i
- ``susceptibility(params, population, i)``: multiplier on hazards into i
- ``infectivity(params, population, j)``: multiplier on hazards out of j
- ``transmissibility(params, population, i, j)``: pairwise term for source j
  infecting target i, typically a function of ``population.distances[j, i]``
- ``latency(params, population, i)``: E -> I hazard
- ``removal(params, population, i)``: I -> R hazard

The infection pressure from j on i is
``susceptibility(i) * infectivity(j) * transmissibility(i, j)``; the total
transmission hazard of i adds ``sparks(i)``.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Callable, Dict, Iterable, List, Union

import numpy as np

from .compartments import DiseaseModel
from .population import Population
from ..errors import ConfigurationError, HazardError


class _NoTransition:
    """Marker for a slot whose transition the disease model does not have"""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "NO_TRANSITION"

    def __reduce__(self):
        return (_NoTransition, ())


NO_TRANSITION = _NoTransition()

SLOTS = ("sparks", "susceptibility", "infectivity", "transmissibility", "latency", "removal")

RiskFunction = Union[Callable, _NoTransition]


def _required_slots(model: DiseaseModel) -> Dict[str, bool]:
    return {
        "sparks": True,
        "susceptibility": True,
        "infectivity": True,
        "transmissibility": True,
        "latency": model.has_latency,
        "removal": model.has_removal,
    }


@dataclass
class RiskFunctions:
    """Fixed-size bundle of rate functions, one per slot"""
    sparks: Callable
    susceptibility: Callable
    infectivity: Callable
    transmissibility: Callable
    latency: RiskFunction = NO_TRANSITION
    removal: RiskFunction = NO_TRANSITION

    def validate(self, model: DiseaseModel):
        """Check that exactly the slots ``model`` uses are present"""
        for slot, required in _required_slots(model).items():
            fn = getattr(self, slot)
            if required and (fn is NO_TRANSITION or not callable(fn)):
                raise ConfigurationError(
                    f"{model.name} model requires a callable '{slot}' risk function, got {fn!r}"
                )
            if not required and fn is not NO_TRANSITION:
                raise ConfigurationError(
                    f"{model.name} model has no {slot} transition; set '{slot}' to NO_TRANSITION"
                )

    def evaluate(self, params: "RiskParameters", population: Population) -> "RiskEvaluation":
        """Evaluate every slot for every individual (and pair) under ``params``"""
        return RiskEvaluation(**{slot: self._evaluate_slot(slot, params, population)
                                 for slot in SLOTS})

    def update(self, evaluation: "RiskEvaluation", params: "RiskParameters",
               population: Population, slots: Iterable[str]) -> "RiskEvaluation":
        """
        Re-evaluate only ``slots`` under ``params``; every other slot is
        carried over from ``evaluation``, which is left untouched
        """
        return replace(evaluation, **{slot: self._evaluate_slot(slot, params, population)
                                      for slot in slots})

    def _evaluate_slot(self, slot: str, params: "RiskParameters",
                       population: Population) -> np.ndarray:
        n = population.size
        fn = getattr(self, slot)
        theta = getattr(params, slot)
        if slot == "transmissibility":
            pairwise = np.zeros((n, n))
            for j in range(n):
                for i in range(n):
                    if i != j:
                        pairwise[j, i] = fn(theta, population, i, j)
            _check_rates(slot, pairwise, pairwise=True)
            return pairwise

        if fn is NO_TRANSITION:
            return np.zeros(n)
        out = np.array([fn(theta, population, i) for i in range(n)], dtype=float)
        _check_rates(slot, out)
        return out


def _check_rates(slot: str, values: np.ndarray, pairwise: bool = False):
    bad = ~np.isfinite(values) | (values < 0)
    if np.any(bad):
        first = tuple(int(k) for k in np.argwhere(bad)[0])
        value = values[first]
        if pairwise:
            # stored as [source, target]
            raise HazardError(slot, {"source": first[0], "target": first[1]}, value)
        raise HazardError(slot, first[0], value)


@dataclass
class RiskEvaluation:
    """Risk functions evaluated under one parameter set; rows of
    ``transmissibility`` are sources, columns targets"""
    sparks: np.ndarray
    susceptibility: np.ndarray
    infectivity: np.ndarray
    transmissibility: np.ndarray
    latency: np.ndarray
    removal: np.ndarray

    @property
    def pressure(self) -> np.ndarray:
        """Pairwise infection hazard [source, target] if source were infectious
        and target susceptible"""
        return (self.infectivity[:, None] * self.transmissibility
                * self.susceptibility[None, :])


def _as_vector(value) -> np.ndarray:
    return np.atleast_1d(np.asarray(value, dtype=float)).copy()


@dataclass
class RiskParameters:
    """One real-valued vector per risk-function slot"""
    sparks: np.ndarray = field(default_factory=lambda: np.zeros(0))
    susceptibility: np.ndarray = field(default_factory=lambda: np.zeros(0))
    infectivity: np.ndarray = field(default_factory=lambda: np.zeros(0))
    transmissibility: np.ndarray = field(default_factory=lambda: np.zeros(0))
    latency: np.ndarray = field(default_factory=lambda: np.zeros(0))
    removal: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            setattr(self, f.name, np.zeros(0) if value is None else _as_vector(value))

    def lengths(self) -> Dict[str, int]:
        return {slot: getattr(self, slot).size for slot in SLOTS}

    def flatten(self) -> np.ndarray:
        return np.concatenate([getattr(self, slot) for slot in SLOTS])

    def unflatten(self, vector: np.ndarray) -> "RiskParameters":
        """New parameters with this instance's layout, filled from ``vector``"""
        vector = np.asarray(vector, dtype=float)
        if vector.size != sum(self.lengths().values()):
            raise ConfigurationError(
                f"Expected {sum(self.lengths().values())} parameter values, got {vector.size}"
            )
        kwargs, start = {}, 0
        for slot, size in self.lengths().items():
            kwargs[slot] = vector[start:start + size]
            start += size
        return RiskParameters(**kwargs)

    def names(self) -> List[str]:
        return [f"{slot}[{k}]" for slot, size in self.lengths().items() for k in range(size)]

    def copy(self) -> "RiskParameters":
        return RiskParameters(**{slot: getattr(self, slot).copy() for slot in SLOTS})

    def validate(self, functions: RiskFunctions, model: DiseaseModel):
        """Check vector lengths against the bundle and the disease model"""
        for slot, required in _required_slots(model).items():
            theta = getattr(self, slot)
            if not required and theta.size:
                raise ConfigurationError(
                    f"{model.name} model has no {slot} transition but {theta.size} "
                    f"'{slot}' parameters were given"
                )
            expected = getattr(getattr(functions, slot), "n_params", None)
            if expected is not None and theta.size != expected:
                raise ConfigurationError(
                    f"Risk function '{slot}' takes {expected} parameters, got {theta.size}"
                )


@dataclass
class RiskPriors:
    """
    One prior per parameter dimension, per slot. Priors are frozen
    ``scipy.stats`` distributions (anything exposing ``logpdf``/``logpmf``
    and ``rvs``).
    """
    sparks: list = field(default_factory=list)
    susceptibility: list = field(default_factory=list)
    infectivity: list = field(default_factory=list)
    transmissibility: list = field(default_factory=list)
    latency: list = field(default_factory=list)
    removal: list = field(default_factory=list)

    def lengths(self) -> Dict[str, int]:
        return {slot: len(getattr(self, slot)) for slot in SLOTS}

    def validate(self, functions: RiskFunctions, model: DiseaseModel):
        self.template().validate(functions, model)

    def template(self) -> RiskParameters:
        """Zero-valued parameters with the layout these priors describe"""
        return RiskParameters(**{slot: np.zeros(size) for slot, size in self.lengths().items()})

    def sample(self, rng: np.random.Generator) -> RiskParameters:
        return RiskParameters(**{
            slot: np.array([prior.rvs(random_state=rng) for prior in getattr(self, slot)],
                           dtype=float)
            for slot in SLOTS
        })

    def logpdf(self, params: RiskParameters) -> float:
        return sum(self.slot_logpdf(slot, getattr(params, slot)) for slot in SLOTS)

    def slot_logpdf(self, slot: str, values: np.ndarray) -> float:
        total = 0.0
        for prior, value in zip(getattr(self, slot), values):
            density = prior.logpdf if hasattr(prior, "logpdf") else prior.logpmf
            total += float(density(value))
        return total
