"""
Tests for Box–Muller sampling and correlated return generation.
"""
import math

import numpy as np
import pytest
from scipy import stats

from core.errors import DimensionMismatchError, MatrixError
from distributions import sampler as sampler_module
from distributions.sampler import (
    CorrelatedReturnSampler,
    correlated_samples,
    default_uniform_source,
    lognormal_random,
    normal_random,
)


def sequence_source(values):
    """Uniform source replaying a fixed list of draws."""
    it = iter(values)
    return lambda: next(it)


@pytest.mark.unit
class TestBoxMuller:

    def test_deterministic_draw(self):
        # u1 = 1 - 0.5, u2 = 0 -> z = sqrt(2 ln 2)
        z = normal_random(0.0, 1.0, sequence_source([0.5, 0.0]))
        assert z == pytest.approx(math.sqrt(2 * math.log(2)))

    def test_mean_and_stddev_are_applied(self):
        z = normal_random(1.0, 2.0, sequence_source([0.5, 0.0]))
        assert z == pytest.approx(1.0 + 2.0 * math.sqrt(2 * math.log(2)))

    def test_zero_uniform_does_not_hit_log_zero(self):
        assert normal_random(0.05, 0.1, lambda: 0.0) == pytest.approx(0.05)

    def test_unseeded_draws_share_no_module_generator(self):
        assert not hasattr(sampler_module, "_default_generator")
        draws = [normal_random(0.0, 1.0) for _ in range(20)]
        assert all(math.isfinite(z) for z in draws)
        assert len(set(draws)) > 1

    def test_unseeded_correlated_samples(self):
        z = correlated_samples(2, np.eye(2))
        assert z.shape == (2,)
        assert np.all(np.isfinite(z))

    def test_lognormal_is_exp_of_normal(self):
        draws = [0.3, 0.7]
        expected = math.exp(normal_random(0.0, 0.5, sequence_source(draws)))
        assert lognormal_random(0.0, 0.5, sequence_source(draws)) == pytest.approx(expected)
        assert lognormal_random(0.0, 0.5, sequence_source(draws)) > 0

    def test_same_seed_same_draws(self):
        a = default_uniform_source(11)
        b = default_uniform_source(11)
        assert [normal_random(rng=a) for _ in range(5)] == [normal_random(rng=b) for _ in range(5)]

    def test_draws_are_standard_normal(self):
        rng = default_uniform_source(123)
        draws = [normal_random(rng=rng) for _ in range(20_000)]
        assert np.mean(draws) == pytest.approx(0.0, abs=0.03)
        assert np.std(draws) == pytest.approx(1.0, abs=0.03)
        assert stats.kstest(draws, "norm").pvalue > 0.001


@pytest.mark.unit
class TestCorrelatedSamples:

    corr = np.array([[1.0, 0.6], [0.6, 1.0]])

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError) as excinfo:
            correlated_samples(3, self.corr, default_uniform_source(1))
        assert excinfo.value.expected == 2
        assert excinfo.value.actual == 3

    def test_requires_matrix_or_factor(self):
        with pytest.raises(ValueError):
            correlated_samples(2, None, default_uniform_source(1))

    def test_precomputed_factor_matches_matrix_path(self):
        factor = np.linalg.cholesky(self.corr)
        a = correlated_samples(2, self.corr, default_uniform_source(5))
        b = correlated_samples(2, None, default_uniform_source(5), factor=factor)
        np.testing.assert_allclose(a, b)

    def test_indefinite_matrix_raises(self):
        bad = np.array([[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]])
        with pytest.raises(MatrixError):
            correlated_samples(3, bad, default_uniform_source(1))


@pytest.mark.unit
class TestCorrelatedReturnSampler:

    def test_path_shape(self):
        sampler = CorrelatedReturnSampler([0.07, 0.04], [0.15, 0.05], [[1.0, 0.3], [0.3, 1.0]])
        path = sampler.sample_path(30, default_uniform_source(0))
        assert path.shape == (30, 2)

    def test_identity_when_no_matrix(self):
        sampler = CorrelatedReturnSampler([0.07], [0.15])
        np.testing.assert_array_equal(sampler.factor, np.eye(1))

    def test_empirical_moments_and_correlation(self):
        sampler = CorrelatedReturnSampler(
            [0.07, 0.04], [0.15, 0.05], [[1.0, 0.6], [0.6, 1.0]], labels=["VTI", "BND"],
        )
        path = sampler.sample_path(20_000, default_uniform_source(42))
        np.testing.assert_allclose(path.mean(axis=0), [0.07, 0.04], atol=0.005)
        np.testing.assert_allclose(path.std(axis=0), [0.15, 0.05], rtol=0.03)
        assert np.corrcoef(path.T)[0, 1] == pytest.approx(0.6, abs=0.03)

    def test_shared_arrays_are_read_only(self):
        sampler = CorrelatedReturnSampler([0.07, 0.04], [0.15, 0.05], np.eye(2))
        for array in (sampler.means, sampler.stddevs, sampler.correlation, sampler.factor):
            with pytest.raises(ValueError):
                array[0] = 0.0

    def test_mismatched_matrix(self):
        with pytest.raises(DimensionMismatchError):
            CorrelatedReturnSampler([0.07, 0.04], [0.15, 0.05], np.eye(3))

    def test_summary(self):
        sampler = CorrelatedReturnSampler([0.07], [0.15], labels=["VTI"])
        frame = sampler.summary()
        assert list(frame["Asset"]) == ["VTI"]
        assert frame.loc[0, "Mean"] == 0.07
