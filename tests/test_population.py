import numpy as np
import pytest

from epidemic_ilm.core import Population
from epidemic_ilm.errors import ConfigurationError


def test_distances_computed_from_locations():
    """
    With only locations supplied, distances should be Euclidean.
    """
    pop = Population(locations=np.array([[0.0, 0.0], [3.0, 4.0], [0.0, 4.0]]))

    assert pop.size == 3
    assert pop.distance(0, 1) == pytest.approx(5.0)
    assert pop.distance(1, 2) == pytest.approx(3.0)
    assert np.all(np.diag(pop.distances) == 0)


def test_supplied_distances_take_precedence():
    distances = np.array([[0.0, 2.0], [2.0, 0.0]])
    pop = Population(distances=distances, locations=np.array([[0.0, 0.0], [10.0, 0.0]]))

    assert pop.distance(0, 1) == 2.0


def test_population_is_read_only():
    """
    The distance matrix is shared by every chain, so it must not be writable.
    """
    source = np.array([[0.0, 1.0], [1.0, 0.0]])
    pop = Population(distances=source)

    with pytest.raises(ValueError):
        pop.distances[0, 1] = 5.0

    # the caller's array is copied, not aliased
    source[0, 1] = 7.0
    assert pop.distance(0, 1) == 1.0


@pytest.mark.parametrize("distances", [
    np.array([[0.0, 1.0], [2.0, 0.0]]),            # asymmetric
    np.array([[0.0, -1.0], [-1.0, 0.0]]),          # negative
    np.array([[1.0, 1.0], [1.0, 0.0]]),            # non-zero diagonal
    np.array([[0.0, 1.0, 2.0], [1.0, 0.0, 1.0]]),  # not square
    np.array([[0.0, np.inf], [np.inf, 0.0]]),      # non-finite
])
def test_invalid_distance_matrices_raise(distances):
    with pytest.raises(ConfigurationError):
        Population(distances=distances)


def test_missing_distances_and_locations_raise():
    with pytest.raises(ConfigurationError):
        Population()


def test_covariate_rows_must_match_population():
    with pytest.raises(ConfigurationError):
        Population(distances=np.zeros((2, 2)), covariates=np.ones((3, 1)))


def test_individual_access():
    pop = Population(locations=np.array([[0.0, 0.0], [1.0, 1.0]]),
                     covariates=np.array([0.5, 2.0]))

    individual = pop[1]
    assert individual.id == 1
    assert np.array_equal(individual.location, [1.0, 1.0])
    assert individual.covariates[0] == 2.0
    assert [ind.id for ind in pop] == [0, 1]

    with pytest.raises(IndexError):
        pop[2]

    df = pop.to_dataframe()
    assert list(df.columns) == ["id", "x", "y", "covariate_0"]
