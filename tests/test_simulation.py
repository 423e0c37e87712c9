import itertools
from types import SimpleNamespace

import numpy as np
import pytest

from epidemic_ilm.core import (
    EXTERNAL,
    DiseaseModel,
    DiseaseState,
    Population,
    RiskFunctions,
    RiskParameters,
    Simulation,
    SimulationConfig,
    TerminationReason,
)
from epidemic_ilm.errors import ConfigurationError, HazardError
from epidemic_ilm.spatial import constant, constant_risk, zero_risk

S, I, R = int(DiseaseState.SUSCEPTIBLE), int(DiseaseState.INFECTIOUS), int(DiseaseState.REMOVED)


def _sparks_only(rate: float) -> RiskFunctions:
    return RiskFunctions(sparks=constant(rate), susceptibility=constant_risk,
                         infectivity=constant_risk, transmissibility=zero_risk)


def _sir_params():
    return RiskParameters(sparks=[0.05], transmissibility=[0.4], removal=[1.0])


def test_two_individual_infection_time(pair_population, si_functions, rng):
    """
    With one infectious and one susceptible individual and a constant
    pairwise rate k, the infection time is exponential with mean 1/k.
    """
    k = 2.0
    sim = Simulation(pair_population, DiseaseModel.SI, si_functions(k), RiskParameters(), [I, S])

    times = []
    for _ in range(2000):
        result = sim.run(rng=rng)
        assert result.termination is TerminationReason.EXHAUSTED
        assert result.network.source(1) == 0
        times.append(result.events.infection[1])

    assert np.mean(times) == pytest.approx(1.0 / k, abs=0.05)


def test_single_individual_infected_by_sparks(rng):
    pop = Population(distances=np.zeros((1, 1)))
    sim = Simulation(pop, DiseaseModel.SI, _sparks_only(1.0), RiskParameters(), [S])

    result = sim.run(rng=rng)

    assert result.termination is TerminationReason.EXHAUSTED
    assert result.events.infection[0] > 0
    assert result.network.external[0]
    assert not result.network.internal.any()


def test_no_hazard_stops_immediately(rng):
    pop = Population(distances=np.zeros((1, 1)))
    result = Simulation(pop, DiseaseModel.SI, _sparks_only(0.0), RiskParameters(), [S]).run(rng=rng)

    assert result.termination is TerminationReason.EXHAUSTED
    assert result.iterations == 0
    assert result.end_time == 0.0
    assert np.isnan(result.events.infection[0])


def test_simulated_time_limit(line_population, rng):
    config = SimulationConfig(tmax=1e-9)
    sim = Simulation(line_population, DiseaseModel.SI, _sparks_only(1.0), RiskParameters(),
                     np.full(8, S), config)

    result = sim.run(rng=rng)

    assert result.termination is TerminationReason.TMAX
    assert result.end_time == 1e-9
    assert result.iterations == 0


def test_iteration_cap(line_population, rng):
    config = SimulationConfig(max_iterations=3)
    sim = Simulation(line_population, DiseaseModel.SI, _sparks_only(1.0), RiskParameters(),
                     np.full(8, S), config)

    result = sim.run(rng=rng)

    assert result.termination is TerminationReason.ITERATIONS
    assert result.iterations == 3
    assert np.isfinite(result.events.infection).sum() == 3


def test_wall_clock_budget(line_population, rng, monkeypatch):
    """
    A run that outlasts its wall-clock budget stops, whatever the other limits.
    """
    clock = itertools.count()
    monkeypatch.setattr("epidemic_ilm.core.simulation.time",
                        SimpleNamespace(monotonic=lambda: float(next(clock))))
    config = SimulationConfig(max_duration=0.5, max_iterations=1)
    sim = Simulation(line_population, DiseaseModel.SI, _sparks_only(1.0), RiskParameters(),
                     np.full(8, S), config)

    assert sim.run(rng=rng).termination is TerminationReason.DURATION


def test_sir_runs_to_exhaustion(line_population, sir_functions, rng):
    """
    Every individual has a positive sparks hazard, so the epidemic only
    stops once everyone has been removed.
    """
    sim = Simulation(line_population, DiseaseModel.SIR, sir_functions, _sir_params(), np.full(8, S))

    result = sim.run(rng=rng)

    assert result.termination is TerminationReason.EXHAUSTED
    assert list(result.events.final_states()) == [R] * 8
    assert result.iterations == 16
    result.events.validate()
    result.network.validate(result.events)
    assert np.isfinite(result.loglikelihood())

    counts = result.counts()
    assert list(counts.columns) == ["time", "S", "I", "R"]
    assert len(counts) == 17
    assert (counts[["S", "I", "R"]].sum(axis=1) == 8).all()


def test_seeded_runs_are_reproducible(line_population, sir_functions):
    config = SimulationConfig(seed=7)
    sim = Simulation(line_population, DiseaseModel.SIR, sir_functions, _sir_params(),
                     np.full(8, S), config)

    first, second = sim.run(), sim.run()

    assert first.events == second.events
    assert first.network == second.network


def test_negative_hazard_raises(line_population, sir_functions):
    params = RiskParameters(sparks=[-1.0], transmissibility=[0.4], removal=[1.0])
    sim = Simulation(line_population, DiseaseModel.SIR, sir_functions, params, np.full(8, S))

    with pytest.raises(HazardError):
        sim.run()


def test_configuration_mismatches_raise(line_population, sir_functions):
    with pytest.raises(ConfigurationError):
        Simulation(line_population, DiseaseModel.SIR, sir_functions, _sir_params(), np.full(5, S))
    with pytest.raises(ConfigurationError):
        Simulation(line_population, DiseaseModel.SI, sir_functions, _sir_params(), np.full(8, S))
    with pytest.raises(ConfigurationError):
        SimulationConfig(tmax=0.0)


def test_infector_drawn_by_share_of_hazard(pair_population, rng):
    """
    Sparks at rate a compete with one infectious neighbour at rate b, so
    a fraction a / (a + b) of infections come from outside.
    """
    a, b = 1.0, 3.0
    functions = RiskFunctions(sparks=constant(a), susceptibility=constant_risk,
                              infectivity=constant_risk, transmissibility=constant(b))
    sim = Simulation(pair_population, DiseaseModel.SI, functions, RiskParameters(), [I, S])

    runs = 4000
    external = sum(sim.run(rng=rng).network.source(1) == EXTERNAL for _ in range(runs))

    assert external / runs == pytest.approx(a / (a + b), abs=0.03)


def test_infector_drawn_by_pressure_between_sources(rng):
    """
    Two infectious individuals put pressures 1 and 3 on the only
    susceptible one, so the first is its source a quarter of the time.
    """
    pop = Population(distances=np.array([[0.0, 1.0, 1.0],
                                         [1.0, 0.0, 1.0],
                                         [1.0, 1.0, 0.0]]))

    def transmissibility(params, population, i, j):
        return 1.0 if j == 0 else 3.0

    functions = RiskFunctions(sparks=zero_risk, susceptibility=constant_risk,
                              infectivity=constant_risk, transmissibility=transmissibility)
    sim = Simulation(pop, DiseaseModel.SI, functions, RiskParameters(), [I, I, S])

    runs = 4000
    sources = np.array([sim.run(rng=rng).network.source(2) for _ in range(runs)])

    assert set(sources) <= {0, 1}
    assert np.mean(sources == 0) == pytest.approx(0.25, abs=0.03)
