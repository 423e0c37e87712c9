# PyTest configuration file.
# See pytest fixture docs: https://docs.pytest.org/en/latest/fixture.html
import numpy as np
import pytest
from scipy import stats

from epidemic_ilm.core import (
    DiseaseModel,
    EventExtents,
    EventObservations,
    NO_TRANSITION,
    Population,
    RiskFunctions,
    RiskPriors,
)
from epidemic_ilm.spatial import constant, constant_risk, parameter_risk, zero_risk


@pytest.fixture
def rng():
    return np.random.default_rng(20240917)


@pytest.fixture
def pair_population():
    return Population(distances=np.array([[0.0, 1.0], [1.0, 0.0]]))


@pytest.fixture
def line_population():
    """Eight individuals one unit apart on a line"""
    x = np.arange(8, dtype=float)
    return Population(locations=np.column_stack([x, np.zeros_like(x)]))


@pytest.fixture
def si_functions():
    """Closed SI model in which every infectious individual infects at rate k"""
    def build(k: float) -> RiskFunctions:
        return RiskFunctions(
            sparks=zero_risk,
            susceptibility=constant_risk,
            infectivity=constant_risk,
            transmissibility=constant(k),
        )
    return build


@pytest.fixture
def sir_functions():
    """Homogeneous SIR: params sparks=[a], transmissibility=[b], removal=[g]"""
    return RiskFunctions(
        sparks=parameter_risk,
        susceptibility=constant_risk,
        infectivity=constant_risk,
        transmissibility=parameter_risk,
        latency=NO_TRANSITION,
        removal=parameter_risk,
    )


@pytest.fixture
def sir_priors():
    return RiskPriors(
        sparks=[stats.uniform(0.001, 0.5)],
        transmissibility=[stats.uniform(0.001, 1.0)],
        removal=[stats.uniform(0.01, 2.0)],
    )


@pytest.fixture
def sir_observations():
    """Observed infections/removals for the eight-individual line; individual 3 is censored"""
    infection = [1.0, 2.0, 2.5, np.nan, 3.0, 4.0, np.nan, 5.5]
    removal = [4.0, 5.0, np.nan, np.nan, 6.0, np.nan, np.nan, 7.0]
    return EventObservations(infection, removal, horizon=8.0)


@pytest.fixture
def sir_extents():
    return EventExtents(infection=0.5, removal=0.5)


@pytest.fixture
def sir_model():
    return DiseaseModel.SIR
