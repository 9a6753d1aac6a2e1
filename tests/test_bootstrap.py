import numpy as np
import pytest

from pwpldis import sampling
from pwpldis.core import InvalidParameterError
from pwpldis.distfit import maximize_scipy
from pwpldis.distributions import sample_pwpl
from pwpldis.sampling import bootstrap_pwpldis


@pytest.fixture(scope="module")
def observations() -> np.ndarray:
    return sample_pwpl(300, [1, 3, 5], [1.5, 2.0, 3.0], random_state=2025)


def test_bootstrap_returns_requested_rows(observations: np.ndarray) -> None:
    result = bootstrap_pwpldis(observations, n_sim=8, breakpoints=[3, 5], random_state=1)
    assert result.n_sim == 8
    assert result.table.shape == (8, 2 * 2 + 5)
    assert result.breakpoints.shape == (8, 2)
    assert result.alphas.shape == (8, 3)
    assert np.allclose(result.breakpoints, [3.0, 5.0])
    assert np.all(np.isfinite(result.alphas))
    assert not result.failed.any()
    assert result.diagnostics == {"n_failed": 0, "parallel": False, "workers": 1}


def test_first_row_is_reference_fit(observations: np.ndarray) -> None:
    result = bootstrap_pwpldis(observations, n_sim=3, breakpoints=[3, 5], random_state=4)
    np.testing.assert_allclose(
        result.table.iloc[0].to_numpy(dtype=float),
        result.reference.table.iloc[0].to_numpy(dtype=float),
    )
    assert np.allclose(result.alphas[0], result.reference.alphas)


def test_single_row_bootstrap_is_the_reference(observations: np.ndarray) -> None:
    result = bootstrap_pwpldis(observations, n_sim=1, breakpoints=[3, 5], random_state=4)
    assert result.n_sim == 1
    assert np.allclose(result.alphas[0], result.reference.alphas)


def test_bootstrap_is_reproducible(observations: np.ndarray) -> None:
    first = bootstrap_pwpldis(observations, n_sim=5, breakpoints=[3, 5], random_state=9)
    second = bootstrap_pwpldis(observations, n_sim=5, breakpoints=[3, 5], random_state=9)
    np.testing.assert_array_equal(first.alphas, second.alphas)


def test_failed_replicates_are_imputed(
    observations: np.ndarray, monkeypatch: pytest.MonkeyPatch
) -> None:
    original = sampling._replicate_row
    calls = {"count": 0}

    def flaky(*args):
        calls["count"] += 1
        if calls["count"] % 2:
            raise ValueError("boom")
        return original(*args)

    monkeypatch.setattr(sampling, "_replicate_row", flaky)
    result = bootstrap_pwpldis(observations, n_sim=9, breakpoints=[3, 5], random_state=2)

    assert result.n_sim == 9
    assert result.failed.tolist() == [False, True, False, True, False, True, False, True, False]
    assert result.diagnostics["n_failed"] == 4
    successes = result.table[~result.failed].to_numpy(dtype=float)
    imputed = result.table[result.failed].to_numpy(dtype=float)
    np.testing.assert_allclose(imputed, np.tile(successes.mean(axis=0), (4, 1)))
    assert result.to_frame()["imputed"].sum() == 4


def test_progress_callback_counts_replicates(observations: np.ndarray) -> None:
    seen: list[tuple[int, int]] = []
    bootstrap_pwpldis(
        observations,
        n_sim=4,
        breakpoints=[3, 5],
        random_state=3,
        progress=lambda done, total: seen.append((done, total)),
    )
    assert seen == [(1, 3), (2, 3), (3, 3)]


def test_parallel_matches_sequential(observations: np.ndarray) -> None:
    sequential = bootstrap_pwpldis(observations, n_sim=5, breakpoints=[3, 5], random_state=6)
    parallel = bootstrap_pwpldis(
        observations,
        n_sim=5,
        breakpoints=[3, 5],
        parallel=True,
        workers=2,
        random_state=6,
    )
    assert parallel.n_sim == 5
    assert parallel.diagnostics["parallel"] is True
    assert np.allclose(parallel.alphas[0], sequential.alphas[0])
    order = np.lexsort(sequential.alphas[1:].T)
    parallel_order = np.lexsort(parallel.alphas[1:].T)
    np.testing.assert_allclose(
        parallel.alphas[1:][parallel_order], sequential.alphas[1:][order]
    )


def test_summaries(observations: np.ndarray) -> None:
    result = bootstrap_pwpldis(observations, n_sim=10, breakpoints=[3, 5], random_state=7)
    corrected = result.bias_corrected()
    assert list(corrected.index) == ["tau_1", "tau_2", "alpha1", "alpha2", "alpha3"]
    expected = 2 * result.reference.alphas - result.alphas.mean(axis=0)
    np.testing.assert_allclose(corrected[["alpha1", "alpha2", "alpha3"]], expected)
    np.testing.assert_allclose(corrected[["tau_1", "tau_2"]], [3.0, 5.0])

    intervals = result.confidence_intervals()
    assert list(intervals.index) == ["alpha1", "alpha2", "alpha3"]
    assert np.all(intervals["lower"] <= intervals["upper"])
    with pytest.raises(ValueError):
        result.confidence_intervals(level=1.5)


def test_bootstrap_with_estimated_change_point(observations: np.ndarray) -> None:
    result = bootstrap_pwpldis(observations, n_sim=4, n_break=1, max_set=20, random_state=5)
    assert result.breakpoints.shape == (4, 1)
    assert result.alphas.shape == (4, 2)
    assert result.n_sim == 4


@pytest.mark.parametrize("kwargs", [{"n_sim": 0}, {"n_sim": 5, "workers": 0}])
def test_invalid_bootstrap_arguments(observations: np.ndarray, kwargs: dict) -> None:
    with pytest.raises(InvalidParameterError):
        bootstrap_pwpldis(observations, breakpoints=[3, 5], **kwargs)


def test_default_bootstrap_estimates_one_change_point(observations: np.ndarray) -> None:
    result = bootstrap_pwpldis(observations, n_sim=2, max_set=20, random_state=0)
    assert result.reference.params["n_break"] == 1
    assert result.breakpoints.shape == (2, 1)
    assert result.alphas.shape == (2, 2)


def test_sequential_guard_skips_unfittable_resamples(monkeypatch: pytest.MonkeyPatch) -> None:
    data = np.array([1.0] * 20 + [2.0] * 15 + [3.0] * 10 + [40.0, 41.0])
    calls = {"count": 0}
    fit = sampling.fit_pwpldis

    def counting(*args, **kwargs):
        calls["count"] += 1
        return fit(*args, **kwargs)

    monkeypatch.setattr(sampling, "fit_pwpldis", counting)
    result = bootstrap_pwpldis(data, n_sim=20, breakpoints=[40], min_pt_tail=0, random_state=0)

    skipped = 19 - (calls["count"] - 1)
    assert result.n_sim == 20
    assert not result.failed[0]
    assert skipped > 0
    assert result.failed.sum() >= skipped
    assert not result.failed.all()
    successes = result.table[~result.failed].to_numpy(dtype=float)
    imputed = result.table[result.failed].to_numpy(dtype=float)
    np.testing.assert_allclose(imputed, np.tile(successes.mean(axis=0), (len(imputed), 1)))


def test_sequential_recovers_from_any_replicate_error(
    observations: np.ndarray, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(*args):
        raise RuntimeError("refit crashed")

    monkeypatch.setattr(sampling, "_replicate_row", broken)
    result = bootstrap_pwpldis(observations, n_sim=4, breakpoints=[3, 5], random_state=2)
    assert result.failed.tolist() == [False, True, True, True]
    reference = result.reference.table.iloc[0].to_numpy(dtype=float)
    np.testing.assert_allclose(result.table.to_numpy(dtype=float), np.tile(reference, (4, 1)))


def test_parallel_drops_replicates_that_raise(observations: np.ndarray) -> None:
    # a lambda optimizer works for the reference fit but cannot reach the workers
    result = bootstrap_pwpldis(
        observations,
        n_sim=4,
        breakpoints=[3, 5],
        parallel=True,
        workers=2,
        optimizer=lambda objective, start, lower: maximize_scipy(objective, start, lower),
        random_state=3,
    )
    assert result.n_sim == 4
    assert result.failed.tolist() == [False, True, True, True]
    assert result.diagnostics["n_failed"] == 3
    reference = result.reference.table.iloc[0].to_numpy(dtype=float)
    np.testing.assert_allclose(result.table.to_numpy(dtype=float), np.tile(reference, (4, 1)))
