import numpy as np
import pytest
from scipy.special import zeta

from pwpldis.core import InvalidParameterError
from pwpldis.distributions import (
    normalizing_constants,
    pwpl_cdf,
    pwpl_density,
    pwpl_hazard,
    pwpl_quantile,
    pwpl_survival,
    sample_pwpl,
)

P = np.array([1.0, 3.0, 5.0])
ALPHA = np.array([1.5, 2.0, 3.0])


def test_normalizing_constants_recursion() -> None:
    constants = normalizing_constants([1, 3, 5], [1.5, 2.0, 2.5])
    c1 = zeta(1.5, 3) / zeta(1.5, 1)
    c2 = c1 * zeta(2.0, 5) / zeta(2.0, 3)
    assert constants.shape == (4,)
    assert constants[0] == 1.0
    assert constants[-1] == 0.0
    assert constants[1] == pytest.approx(c1)
    assert constants[2] == pytest.approx(c2)


def test_normalizing_constants_single_partition() -> None:
    constants = normalizing_constants([2], [2.5])
    assert np.array_equal(constants, [1.0, 0.0])


@pytest.mark.parametrize(
    "p,alpha",
    [
        ([1, 5, 3], [1.5, 2.0, 2.5]),
        ([1, 3, 3], [1.5, 2.0, 2.5]),
        ([1, 3, 5], [1.5, 1.0, 2.5]),
        ([1, 3, 5], [0.5, 2.0, 2.5]),
        ([1, 3], [1.5, 2.0, 2.5]),
    ],
)
def test_normalizing_constants_rejects_invalid_parameters(p: list, alpha: list) -> None:
    with pytest.raises(InvalidParameterError):
        normalizing_constants(p, alpha)


def test_density_matches_closed_form() -> None:
    p = [1, 10]
    alpha = [1.5, 3.5]
    c1 = zeta(1.5, 10) / zeta(1.5, 1)
    assert float(pwpl_density(1, p, alpha)) == pytest.approx(1.0 / zeta(1.5, 1))
    expected = 15 ** (-3.5) / zeta(3.5, 10) * c1
    assert float(pwpl_density(15, p, alpha)) == pytest.approx(expected)


def test_density_is_zero_below_minimum() -> None:
    values = pwpl_density([0.0, 0.5, 2.0], [2, 4], [1.8, 2.5])
    assert values[0] == 0.0
    assert values[1] == 0.0
    assert values[2] > 0


def test_density_sums_to_one() -> None:
    support = np.arange(1, 5001, dtype=float)
    total = float(np.sum(pwpl_density(support, P, ALPHA)))
    assert total == pytest.approx(1.0, abs=1e-6)


def test_cdf_is_monotone_and_complements_survival() -> None:
    support = np.arange(0, 200, dtype=float)
    cdf_values = pwpl_cdf(support, P, ALPHA)
    survival = pwpl_survival(support, P, ALPHA)
    assert np.all(np.diff(cdf_values) >= 0)
    assert cdf_values[0] == 0.0
    np.testing.assert_allclose(cdf_values, 1.0 - survival, rtol=0, atol=1e-15)


def test_cdf_equals_cumulative_density() -> None:
    support = np.arange(1, 40, dtype=float)
    cumulative = np.cumsum(pwpl_density(support, P, ALPHA))
    np.testing.assert_allclose(pwpl_cdf(support, P, ALPHA), cumulative, rtol=1e-10)


def test_hazard_definition() -> None:
    support = np.arange(1, 30, dtype=float)
    hazard = pwpl_hazard(support, P, ALPHA)
    expected = pwpl_density(support, P, ALPHA) / pwpl_survival(support - 1, P, ALPHA)
    np.testing.assert_allclose(hazard, expected)
    assert hazard[0] == pytest.approx(float(pwpl_density(1, P, ALPHA)))
    assert float(pwpl_hazard(0.5, P, ALPHA)) == 0.0


def test_scalar_inputs_keep_shape() -> None:
    assert np.shape(pwpl_density(4, P, ALPHA)) == ()
    assert np.shape(pwpl_cdf(4, P, ALPHA)) == ()
    assert np.shape(pwpl_quantile(0.5, P, ALPHA)) == ()


def test_quantile_inverts_cdf() -> None:
    support = np.arange(1, 80, dtype=float)
    probs = pwpl_cdf(support, P, ALPHA)
    quantiles = pwpl_quantile(probs, P, ALPHA)
    assert np.all(quantiles <= support)
    assert np.all(pwpl_cdf(quantiles, P, ALPHA) >= probs)
    previous = pwpl_cdf(quantiles - 1, P, ALPHA)
    assert np.all((quantiles == P[0]) | (previous < probs))


def test_quantile_bounds() -> None:
    assert float(pwpl_quantile(0.0, P, ALPHA)) == 1.0
    assert float(pwpl_quantile(0.5, P, ALPHA)) == 2.0
    with pytest.raises(InvalidParameterError):
        pwpl_quantile(1.5, P, ALPHA)
    with pytest.raises(InvalidParameterError):
        pwpl_quantile([0.2, np.nan], P, ALPHA)


def test_sample_respects_support_and_partition_counts() -> None:
    draws = sample_pwpl(50, P, ALPHA, random_state=7)
    assert draws.shape == (50,)
    assert np.all(draws >= P[0])
    assert np.all(draws == np.round(draws))
    counts = [np.sum((draws >= 1) & (draws < 3)), np.sum((draws >= 3) & (draws < 5))]
    counts.append(np.sum(draws >= 5))
    assert all(count > 2 for count in counts)


def test_sample_is_reproducible() -> None:
    first = sample_pwpl(100, P, ALPHA, random_state=11)
    second = sample_pwpl(100, P, ALPHA, random_state=11)
    assert np.array_equal(first, second)


def test_sample_empirical_cdf_converges() -> None:
    draws = sample_pwpl(20000, P, ALPHA, random_state=2025)
    support = np.arange(1, 60, dtype=float)
    empirical = np.array([np.mean(draws <= value) for value in support])
    distance = np.max(np.abs(empirical - pwpl_cdf(support, P, ALPHA)))
    assert distance < 0.02


def test_sample_gives_up_after_max_tries() -> None:
    # the tail beyond 1e6 holds well under 0.1% of the mass
    with pytest.raises(RuntimeError):
        sample_pwpl(10, [1, 1e6], [1.5, 3.0], random_state=1, max_tries=3)


@pytest.mark.parametrize("size", [0, 3, 8])
def test_sample_rejects_sizes_too_small_for_every_partition(size: int) -> None:
    with pytest.raises(InvalidParameterError):
        sample_pwpl(size, P, ALPHA, random_state=1)
