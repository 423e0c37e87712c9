import numpy as np
import pytest
from scipy import stats

from epidemic_ilm.core import (
    DiseaseModel,
    NO_TRANSITION,
    Population,
    RiskFunctions,
    RiskParameters,
    RiskPriors,
)
from epidemic_ilm.errors import ConfigurationError, HazardError
from epidemic_ilm.spatial import (
    constant,
    constant_risk,
    parameter_risk,
    power_law_transmissibility,
    zero_risk,
)


def _functions(**overrides):
    slots = dict(sparks=zero_risk, susceptibility=constant_risk, infectivity=constant_risk,
                 transmissibility=constant(1.0))
    slots.update(overrides)
    return RiskFunctions(**slots)


def test_si_model_rejects_removal_slot():
    with pytest.raises(ConfigurationError):
        _functions(removal=parameter_risk).validate(DiseaseModel.SI)


def test_seir_model_requires_latency_and_removal():
    with pytest.raises(ConfigurationError):
        _functions(removal=parameter_risk).validate(DiseaseModel.SEIR)

    # complete bundle passes
    _functions(latency=parameter_risk, removal=parameter_risk).validate(DiseaseModel.SEIR)


def test_parameter_lengths_checked_against_functions():
    functions = _functions(transmissibility=power_law_transmissibility)

    RiskParameters(transmissibility=[1.0, 2.0]).validate(functions, DiseaseModel.SI)
    with pytest.raises(ConfigurationError):
        RiskParameters(transmissibility=[1.0]).validate(functions, DiseaseModel.SI)


def test_parameters_for_absent_transition_rejected():
    with pytest.raises(ConfigurationError):
        RiskParameters(removal=[0.5]).validate(_functions(), DiseaseModel.SI)


def test_flatten_follows_slot_order():
    params = RiskParameters(sparks=[0.1], transmissibility=[2.0, 3.0], removal=[0.5])

    assert np.array_equal(params.flatten(), [0.1, 2.0, 3.0, 0.5])
    assert params.names() == ["sparks[0]", "transmissibility[0]", "transmissibility[1]",
                              "removal[0]"]

    other = params.unflatten([1.0, 4.0, 5.0, 6.0])
    assert np.array_equal(other.transmissibility, [4.0, 5.0])
    assert np.array_equal(params.transmissibility, [2.0, 3.0])

    with pytest.raises(ConfigurationError):
        params.unflatten([1.0, 2.0])


def test_evaluate_builds_source_target_pressure():
    """
    Pressure[j, i] should be infectivity(j) * transmissibility(i, j) * susceptibility(i).
    """
    pop = Population(distances=np.array([[0.0, 1.0], [1.0, 0.0]]), covariates=[1.0, 3.0])

    def susceptibility(params, population, i):
        return population.covariates[i, 0]

    functions = _functions(susceptibility=susceptibility, infectivity=constant(2.0),
                           transmissibility=power_law_transmissibility)
    risk = functions.evaluate(RiskParameters(transmissibility=[1.0, 1.0]), pop)

    assert risk.transmissibility[0, 0] == 0.0
    assert risk.transmissibility[0, 1] == pytest.approx(0.5)
    assert risk.pressure[0, 1] == pytest.approx(2.0 * 0.5 * 3.0)
    assert risk.pressure[1, 0] == pytest.approx(2.0 * 0.5 * 1.0)
    assert np.all(risk.removal == 0)


def test_negative_rate_raises_hazard_error():
    pop = Population(distances=np.zeros((2, 2)))
    functions = _functions(sparks=parameter_risk)

    with pytest.raises(HazardError) as excinfo:
        functions.evaluate(RiskParameters(sparks=[-0.5]), pop)

    assert excinfo.value.slot == "sparks"
    assert isinstance(excinfo.value, ConfigurationError)


def test_non_finite_transmissibility_raises_hazard_error():
    pop = Population(distances=np.zeros((2, 2)))
    functions = _functions(transmissibility=constant(np.inf))

    with pytest.raises(HazardError) as excinfo:
        functions.evaluate(RiskParameters(), pop)
    assert excinfo.value.slot == "transmissibility"


def test_no_transition_is_a_singleton():
    assert type(NO_TRANSITION)() is NO_TRANSITION
    assert repr(NO_TRANSITION) == "NO_TRANSITION"


def test_priors_sample_and_density(rng):
    priors = RiskPriors(sparks=[stats.uniform(0.0, 1.0)],
                        transmissibility=[stats.gamma(2.0), stats.uniform(1.0, 2.0)])

    params = priors.sample(rng)
    assert params.lengths()["transmissibility"] == 2
    assert 0.0 <= params.sparks[0] <= 1.0
    assert np.isfinite(priors.logpdf(params))

    outside = params.copy()
    outside.sparks = np.array([2.0])
    assert priors.logpdf(outside) == -np.inf


def test_update_reevaluates_only_changed_slots():
    pop = Population(distances=np.array([[0.0, 1.0, 2.0], [1.0, 0.0, 1.0], [2.0, 1.0, 0.0]]))
    calls = []

    def transmissibility(params, population, i, j):
        calls.append((i, j))
        return 1.0 / population.distances[j, i]

    functions = _functions(transmissibility=transmissibility, removal=parameter_risk)
    params = RiskParameters(removal=[0.5])
    risk = functions.evaluate(params, pop)
    assert len(calls) == 6

    changed = params.copy()
    changed.removal = np.array([2.0])
    updated = functions.update(risk, changed, pop, ["removal"])

    assert len(calls) == 6
    assert np.all(updated.removal == 2.0)
    assert np.all(risk.removal == 0.5)
    assert updated.transmissibility is risk.transmissibility
    full = functions.evaluate(changed, pop)
    for slot in ("sparks", "susceptibility", "infectivity", "transmissibility", "latency",
                 "removal"):
        assert np.array_equal(getattr(updated, slot), getattr(full, slot))


def test_update_checks_new_rates():
    pop = Population(distances=np.zeros((2, 2)))
    functions = _functions(sparks=parameter_risk)
    risk = functions.evaluate(RiskParameters(sparks=[0.5]), pop)

    with pytest.raises(HazardError):
        functions.update(risk, RiskParameters(sparks=[-0.5]), pop, ["sparks"])
