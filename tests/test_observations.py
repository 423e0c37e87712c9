import numpy as np
import pytest
from scipy import stats

from epidemic_ilm.core import (
    DiseaseModel,
    DiseaseState,
    EventExtents,
    EventKind,
    EventObservations,
    Events,
    RiskParameters,
    Simulation,
    SimulationConfig,
    observe,
)
from epidemic_ilm.errors import ConfigurationError
from epidemic_ilm.inference import MCMC, ChainStatus

S, I = int(DiseaseState.SUSCEPTIBLE), int(DiseaseState.INFECTIOUS)
nan = np.nan


@pytest.fixture
def true_events():
    return Events.from_times(DiseaseModel.SIR, [S, S, S, S],
                             infection=[1.0, 2.0, 6.0, nan], removal=[3.0, 4.0, nan, nan])


def test_observations_are_delayed(true_events, rng):
    obs = observe(true_events, stats.uniform(0.0, 0.5), rng=rng)

    observed = ~np.isnan(obs.infection)
    assert list(observed) == [True, True, True, False]
    assert np.all(obs.infection[observed] >= true_events.infection[observed])
    assert np.all(obs.removal[:2] >= true_events.removal[:2])
    assert np.isnan(obs.removal[2])
    # no horizon: defaults to the last observation
    assert obs.horizon == np.nanmax(np.concatenate([obs.infection, obs.removal]))


def test_events_after_horizon_are_censored(true_events, rng):
    obs = observe(true_events, stats.uniform(0.0, 0.1), horizon=5.0, rng=rng)

    assert obs.horizon == 5.0
    assert not np.isnan(obs.infection[0])
    assert np.isnan(obs.infection[2])
    assert list(obs.censored()) == [False, False, True, True]


def test_negative_delay_rejected(true_events, rng):
    with pytest.raises(ConfigurationError):
        observe(true_events, stats.norm(-5.0, 0.1), rng=rng)


def test_si_observations_have_no_removals(rng):
    events = Events.from_times(DiseaseModel.SI, [I, S], infection=[nan, 1.0])
    obs = observe(events, stats.uniform(0.0, 0.5), rng=rng)

    assert obs.removal is None
    assert obs.observed(EventKind.REMOVAL) is None
    # the index case was infected before the study began
    assert np.isnan(obs.infection[0])


def test_observations_are_immutable():
    obs = EventObservations([1.0, nan], [2.0, nan])

    with pytest.raises(ValueError):
        obs.infection[0] = 0.5
    with pytest.raises(ValueError):
        obs.removal[0] = 0.5


@pytest.mark.parametrize("infection, removal, horizon", [
    ([2.0], [1.0], None),    # removal observed before infection
    ([-1.0], None, None),    # negative time
    ([1.0, 3.0], None, 2.0),  # observation after the horizon
])
def test_inconsistent_observations_rejected(infection, removal, horizon):
    with pytest.raises(ConfigurationError):
        EventObservations(infection, removal, horizon=horizon)


def test_removal_only_observation_allowed():
    """
    An individual infectious from the start may only have its removal observed.
    """
    obs = EventObservations([nan], [2.0], horizon=3.0)
    assert obs.horizon == 3.0


def test_extents():
    extents = EventExtents(infection=1.0, removal=0.5)

    assert extents.extent(EventKind.INFECTION) == 1.0
    assert extents.extent(EventKind.REMOVAL) == 0.5
    extents.validate(DiseaseModel.SIR)

    with pytest.raises(ConfigurationError):
        extents.validate(DiseaseModel.SEIR)
    with pytest.raises(ConfigurationError):
        EventExtents(infection=-1.0)
    with pytest.raises(ConfigurationError):
        EventExtents(sparks=np.inf)


def test_removal_dropped_when_infection_unobserved(rng):
    """
    A long infection delay past the horizon leaves the removal unreported too.
    """
    events = Events.from_times(DiseaseModel.SIR, [S, I], infection=[1.0, nan],
                               removal=[2.0, 1.5])
    obs = observe(events, stats.uniform(5.0, 0.1), removal_delay=stats.uniform(0.5, 0.1),
                  horizon=4.0, rng=rng)

    assert np.isnan(obs.infection[0])
    assert np.isnan(obs.removal[0])
    # infectious from the start: its removal is still reported
    assert 2.0 <= obs.removal[1] <= 2.1


def test_simulated_observations_feed_inference(line_population, sir_functions, sir_priors):
    """
    Whatever the delays, observations of a simulated epidemic are accepted
    by the sampler and yield a valid starting history.
    """
    params = RiskParameters(sparks=[0.1], transmissibility=[0.3], removal=[0.5])
    sim = Simulation(line_population, DiseaseModel.SIR, sir_functions, params, np.full(8, S),
                     SimulationConfig(tmax=10.0))
    extents = EventExtents(infection=3.0, removal=0.2)

    for seed in range(5):
        result = sim.run(rng=np.random.default_rng(seed))
        obs = observe(result.events, stats.uniform(0.0, 3.0),
                      removal_delay=stats.uniform(0.0, 0.2), horizon=10.0,
                      rng=np.random.default_rng(seed))

        reported = ~np.isnan(obs.removal)
        assert not np.any(np.isnan(obs.infection[reported]))

        mcmc = MCMC(line_population, DiseaseModel.SIR, sir_functions, sir_priors, obs, extents)
        chains = mcmc.start(seed=seed)
        assert chains[0].status is ChainStatus.READY
