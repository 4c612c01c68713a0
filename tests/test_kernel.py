import numpy as np
import pytest
import torch

from skydft.config import Precision
from skydft.dft.kernel import (
    accumulate_visibility,
    direction_corrections,
    kernel_source,
    predict_group,
    predict_visibility,
)


class TestDirectionCorrections:
    def test_small_angle_approximation(self):
        """Default corrections use the second order expansion of n"""
        w_correction, image_correction = direction_corrections(0.1, 0.2)
        term = 0.5 * (0.1**2 + 0.2**2)
        assert w_correction == pytest.approx(-term)
        assert image_correction == pytest.approx(1 - term)

    def test_exact_form(self):
        """Exact corrections follow n = sqrt(1 - l^2 - m^2)"""
        n = np.sqrt(1 - 0.1**2 - 0.2**2)
        w_correction, image_correction = direction_corrections(0.1, 0.2, exact=True)
        assert w_correction == pytest.approx(n - 1)
        assert image_correction == pytest.approx(n)

    def test_approximation_differs_from_exact(self):
        """The approximation is close to, but not the same as, the exact form"""
        approx = direction_corrections(0.3, 0.3)
        exact = direction_corrections(0.3, 0.3, exact=True)
        assert approx[1] != exact[1]
        assert approx[1] == pytest.approx(exact[1], abs=1e-2)

    def test_torch_tensors(self):
        l_coords = torch.tensor([0.0, 0.1], dtype=torch.float64)
        m_coords = torch.tensor([0.0, 0.1], dtype=torch.float64)
        w_correction, image_correction = direction_corrections(
            l_coords, m_coords, exact=True
        )
        assert isinstance(image_correction, torch.Tensor)
        assert image_correction[0].item() == 1.0
        assert w_correction[0].item() == 0.0


class TestPredictVisibility:
    def test_zero_sources(self):
        """An empty sky predicts exactly zero"""
        empty = np.zeros(0)
        assert predict_visibility(120.0, -40.0, 3.0, empty, empty, empty) == 0j

    @pytest.mark.parametrize("uvw", [(0, 0, 0), (500, 0, 0), (-123.4, 56.7, 89.0)])
    def test_centred_source(self, uvw):
        """A source at the phase centre contributes its intensity, independent of uvw"""
        result = predict_visibility(*uvw, [0.0], [0.0], [3.5])
        assert result.real == 3.5
        assert result.imag == 0.0

    def test_unit_source_at_origin(self):
        result = predict_visibility(0.0, 0.0, 0.0, [0.0], [0.0], [1.0])
        assert result == complex(1.0, 0.0)

    @pytest.mark.parametrize(
        "dtype, rel", [(np.float32, 1e-5), (np.float64, 1e-10)]
    )
    def test_offset_source(self, dtype, rel):
        """One source at l=0.001 seen at u=500 gives half a turn of phase"""
        image_correction = 1 - 0.5 * 0.001**2
        theta = 2 * np.pi * 500 * 0.001
        expected_real = np.cos(theta) * 2 / image_correction
        expected_imag = -np.sin(theta) * 2 / image_correction

        result = predict_visibility(500.0, 0.0, 0.0, [0.001], [0.0], [2.0], dtype=dtype)

        assert result.real == pytest.approx(expected_real, rel=rel)
        assert result.imag == pytest.approx(expected_imag, abs=rel * 2)

    @pytest.mark.parametrize(
        "dtype, rel", [(np.float32, 1e-5), (np.float64, 1e-10)]
    )
    def test_source_order_invariance(self, rng, dtype, rel):
        """Summation order of the sources does not change the result"""
        num_sources = 50
        l_coords = rng.uniform(-1e-3, 1e-3, num_sources)
        m_coords = rng.uniform(-1e-3, 1e-3, num_sources)
        intensities = rng.uniform(0.5, 2.0, num_sources)
        order = rng.permutation(num_sources)

        forward = predict_visibility(
            800.0, -350.0, 20.0, l_coords, m_coords, intensities, dtype=dtype
        )
        shuffled = predict_visibility(
            800.0,
            -350.0,
            20.0,
            l_coords[order],
            m_coords[order],
            intensities[order],
            dtype=dtype,
        )

        scale = intensities.sum()
        assert abs(forward.real - shuffled.real) <= rel * scale
        assert abs(forward.imag - shuffled.imag) <= rel * scale

    def test_matches_closed_form(self, rng):
        """Loop result equals the vectorised complex exponential sum"""
        l_coords = rng.uniform(-0.01, 0.01, 20)
        m_coords = rng.uniform(-0.01, 0.01, 20)
        intensities = rng.uniform(0.1, 1.0, 20)
        u, v, w = 250.0, -75.0, 12.0

        term = 0.5 * (l_coords**2 + m_coords**2)
        phase = 2 * np.pi * (u * l_coords + v * m_coords - w * term)
        expected = np.sum(np.exp(-1j * phase) * intensities / (1 - term))

        result = predict_visibility(u, v, w, l_coords, m_coords, intensities)
        assert result == pytest.approx(expected, rel=1e-10)


class TestAccumulateVisibility:
    def test_writes_own_slot(self):
        uvw = np.array([[0.0, 0.0, 0.0], [500.0, 0.0, 0.0]])
        out = np.full(2, np.nan + 0j, dtype=np.complex128)

        accumulate_visibility(1, 2, uvw, [0.0], [0.0], [4.0], out)

        assert np.isnan(out[0])
        assert out[1] == 4.0

    def test_out_of_range_index_is_noop(self):
        """Workers scheduled past the last visibility do nothing"""
        uvw = np.zeros((3, 3))
        out = np.zeros(3, dtype=np.complex128)

        for index in range(3, 8):
            accumulate_visibility(index, 3, uvw, [0.0], [0.0], [1.0], out)

        assert np.all(out == 0)


class TestPredictGroup:
    @pytest.mark.parametrize(
        "precision, rel",
        [(Precision.SINGLE, 1e-5), (Precision.DOUBLE, 1e-10)],
    )
    def test_matches_reference(self, rng, precision, rel, device):
        """Vectorised group evaluation agrees with the scalar reference"""
        dtype = precision.dtype
        sources = rng.uniform(-1e-3, 1e-3, (30, 2)).astype(dtype)
        intensities = rng.uniform(0.5, 1.5, 30).astype(dtype)
        uvw = rng.uniform(-1000, 1000, (17, 3)).astype(dtype)

        real, imag = predict_group(
            torch.from_numpy(uvw).to(device),
            torch.from_numpy(sources[:, 0]).to(device),
            torch.from_numpy(sources[:, 1]).to(device),
            torch.from_numpy(intensities).to(device),
        )
        assert real.dtype == precision.torch_dtype

        scale = intensities.sum()
        for k, (u, v, w) in enumerate(uvw):
            expected = predict_visibility(
                u, v, w, sources[:, 0], sources[:, 1], intensities, dtype=dtype
            )
            assert abs(real[k].item() - expected.real) <= rel * scale
            assert abs(imag[k].item() - expected.imag) <= rel * scale

    def test_zero_sources(self):
        uvw = torch.ones((4, 3), dtype=torch.float64)
        empty = torch.zeros(0, dtype=torch.float64)
        real, imag = predict_group(uvw, empty, empty, empty)
        assert torch.equal(real, torch.zeros(4, dtype=torch.float64))
        assert torch.equal(imag, torch.zeros(4, dtype=torch.float64))


class TestKernelSource:
    @pytest.mark.parametrize(
        "precision, c_type", [(Precision.SINGLE, "float"), (Precision.DOUBLE, "double")]
    )
    def test_scalar_type(self, precision, c_type):
        source = kernel_source(precision)
        assert f"const {c_type}* sources" in source
        assert "%(" not in source

    def test_index_guard(self):
        assert "if (idx >= num_visibilities) return;" in kernel_source()

    def test_correction_variants(self):
        assert "sqrt" not in kernel_source(exact=False)
        assert "sqrt" in kernel_source(exact=True)

    def test_accepts_precision_names(self):
        assert kernel_source("single") == kernel_source(Precision.SINGLE)
