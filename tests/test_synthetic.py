import numpy as np
import pytest

from skydft.config import Precision, RunConfig
from skydft.errors import SkyDFTError
from skydft.utils.synthetic import bounded_normal, generate_sources, generate_visibilities


class TestGenerateSources:
    def test_counts_and_intensity(self):
        config = RunConfig(num_sources=25, cell_size=1e-4, seed=3)
        sources = generate_sources(config)

        assert len(sources) == 25
        np.testing.assert_array_equal(sources.intensities, np.ones(25))
        assert np.all(np.abs(sources.l_coords) <= 1e-4)
        assert np.all(np.abs(sources.m_coords) <= 1e-4)

    def test_seed_is_reproducible(self):
        config = RunConfig(num_sources=10, seed=42)
        first = generate_sources(config)
        second = generate_sources(config)
        np.testing.assert_array_equal(first.l_coords, second.l_coords)

    def test_precision(self):
        config = RunConfig(num_sources=3, precision=Precision.SINGLE)
        assert generate_sources(config).dtype == np.float32


class TestGenerateVisibilities:
    @pytest.fixture
    def config(self):
        return RunConfig(
            num_visibilities=500,
            min_u=-10,
            max_u=20,
            min_v=-5,
            max_v=5,
            min_w=1,
            max_w=2,
            seed=7,
        )

    @pytest.mark.parametrize("gaussian", [False, True])
    def test_within_ranges(self, config, gaussian):
        config = config.replace(gaussian_distribution_sources=gaussian)
        uvw = generate_visibilities(config).uvw

        assert uvw.shape == (500, 3)
        assert np.all((uvw[:, 0] >= -10) & (uvw[:, 0] <= 20))
        assert np.all((uvw[:, 1] >= -5) & (uvw[:, 1] <= 5))
        assert np.all((uvw[:, 2] >= 1) & (uvw[:, 2] <= 2))

    def test_uv_scale(self, config):
        scaled = generate_visibilities(config.replace(uv_scale=3.0)).uvw
        plain = generate_visibilities(config).uvw
        np.testing.assert_allclose(scaled, 3.0 * plain)

    def test_force_zero_w_term(self, config):
        uvw = generate_visibilities(config.replace(force_zero_w_term=True)).uvw
        assert np.all(uvw[:, 2] == 0)
        assert np.any(uvw[:, 0] != 0)

    def test_gaussian_centred(self, config):
        config = config.replace(num_visibilities=5000, gaussian_distribution_sources=True)
        uvw = generate_visibilities(config).uvw
        assert np.mean(uvw[:, 0]) == pytest.approx(5.0, abs=0.5)

    def test_empty(self, config):
        assert len(generate_visibilities(config.replace(num_visibilities=0))) == 0


class TestBoundedNormal:
    def test_degenerate_interval(self, rng):
        samples = bounded_normal(rng, 2.0, 2.0, 10)
        np.testing.assert_array_equal(samples, np.full(10, 2.0))

    def test_retry_cap(self):
        """Sampling gives up after a fixed number of rejection rounds"""

        class OutOfRange:
            def normal(self, mean, std, size):
                return np.full(size, 1e9)

        with pytest.raises(SkyDFTError, match="3 rejection rounds"):
            bounded_normal(OutOfRange(), 0.0, 1.0, 4, max_rounds=3)
