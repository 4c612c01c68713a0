"""
Per-visibility transform kernel.

Each visibility ``(u, v, w)`` is predicted independently as

    V(u, v, w) = sum_s I_s / c_s * exp(-2j * pi * (u l_s + v m_s + w d_s))

with ``d_s`` the w-correction and ``c_s`` the image correction of source
``s``. By default both come from the small-angle expansion of
``n = sqrt(1 - l^2 - m^2)``:

    d_s = -(l_s^2 + m_s^2) / 2
    c_s = 1 - (l_s^2 + m_s^2) / 2

The exact form (``d_s = n - 1``, ``c_s = n``) is available through
``exact=True``.

The same sum is provided three ways: a scalar reference for a single
visibility, a vectorised PyTorch evaluation of one work group, and CUDA C
source compiled at run time by the CuPy backend.
"""

import numpy as np
import torch

from skydft.config import Precision


def direction_corrections(l_coords, m_coords, exact=False):
    """
    Compute the w-correction and image correction for source positions.

    Works on numpy arrays, torch tensors and scalars alike.

    Returns
    -------
    w_correction, image_correction
    """
    if exact:
        lib = torch if isinstance(l_coords, torch.Tensor) else np
        n = lib.sqrt(1 - l_coords * l_coords - m_coords * m_coords)
        return n - 1, n

    term = 0.5 * (l_coords * l_coords + m_coords * m_coords)
    return -term, 1 - term


def predict_visibility(u, v, w, l_coords, m_coords, intensities, dtype=np.float64, exact=False):
    """
    Reference evaluation for a single visibility.

    Loops over the sources in order, accumulating in ``dtype``. Does not
    touch any device and has no side effects.

    Parameters
    ----------
    u, v, w :
        Visibility coordinate in wavelengths
    l_coords, m_coords :
        Source direction cosines [num_sources]
    intensities :
        Source intensities [num_sources]
    dtype :
        numpy floating type used for all arithmetic
    exact :
        Use the exact direction-cosine correction

    Returns
    -------
    complex
    """
    two_pi = dtype(2.0 * np.pi)
    u, v, w = dtype(u), dtype(v), dtype(w)
    real = dtype(0.0)
    imag = dtype(0.0)

    for l, m, intensity in zip(l_coords, m_coords, intensities):
        l, m, intensity = dtype(l), dtype(m), dtype(intensity)
        w_correction, image_correction = direction_corrections(l, m, exact=exact)

        theta = two_pi * (u * l + v * m + w * dtype(w_correction))
        scaled = intensity / dtype(image_correction)

        real += np.cos(theta) * scaled
        imag += -np.sin(theta) * scaled

    return complex(real, imag)


def accumulate_visibility(
    index, num_visibilities, uvw, l_coords, m_coords, intensities, out, exact=False
):
    """
    Body of one worker: predict visibility ``index`` into ``out[index]``.

    Indices at or beyond ``num_visibilities`` are ignored so that launch
    geometries larger than the data never write out of range.
    """
    if index >= num_visibilities:
        return

    u, v, w = uvw[index]
    out[index] = predict_visibility(
        u, v, w, l_coords, m_coords, intensities, dtype=uvw.dtype.type, exact=exact
    )


def predict_group(uvw, l_coords, m_coords, intensities, exact=False):
    """
    Vectorised prediction of a block of visibilities with PyTorch.

    Parameters
    ----------
    uvw :
        Visibility coordinates [group_size, 3]
    l_coords, m_coords, intensities :
        Source arrays [num_sources]

    Returns
    -------
    real, imag :
        Tensors [group_size] on the device and in the dtype of ``uvw``
    """
    w_correction, image_correction = direction_corrections(
        l_coords, m_coords, exact=exact
    )
    scaled = intensities / image_correction

    # Shape: [group_size, num_sources]
    u_term = torch.outer(uvw[:, 0], l_coords)
    v_term = torch.outer(uvw[:, 1], m_coords)
    w_term = torch.outer(uvw[:, 2], w_correction)
    theta = 2.0 * torch.pi * (u_term + v_term + w_term)

    real = torch.cos(theta) @ scaled
    imag = -(torch.sin(theta) @ scaled)
    return real, imag


_KERNEL_TEMPLATE = r"""
extern "C" __global__
void predict_visibilities(
    const %(real_t)s* sources,        // (num_sources, 3): l, m, intensity
    const %(real_t)s* visibilities,   // (num_visibilities, 3): u, v, w
    %(real_t)s* intensities,          // (num_visibilities, 2): real, imag
    const int num_sources,
    const int num_visibilities
) {
    const int idx = blockIdx.x * blockDim.x + threadIdx.x;

    if (idx >= num_visibilities) return;

    const %(real_t)s two_pi = (%(real_t)s) 6.283185307179586;
    const %(real_t)s u = visibilities[3 * idx];
    const %(real_t)s v = visibilities[3 * idx + 1];
    const %(real_t)s w = visibilities[3 * idx + 2];

    %(real_t)s real = 0;
    %(real_t)s imag = 0;

    for (int s = 0; s < num_sources; ++s) {
        const %(real_t)s l = sources[3 * s];
        const %(real_t)s m = sources[3 * s + 1];
        const %(real_t)s intensity = sources[3 * s + 2];

%(corrections)s
        const %(real_t)s theta = two_pi * (u * l + v * m + w * w_correction);
        const %(real_t)s scaled = intensity / image_correction;

        real += cos(theta) * scaled;
        imag += -sin(theta) * scaled;
    }

    intensities[2 * idx] = real;
    intensities[2 * idx + 1] = imag;
}
"""

_APPROX_CORRECTIONS = """\
        const %(real_t)s term = (%(real_t)s) 0.5 * (l * l + m * m);
        const %(real_t)s w_correction = -term;
        const %(real_t)s image_correction = (%(real_t)s) 1.0 - term;
"""

_EXACT_CORRECTIONS = """\
        const %(real_t)s n = sqrt((%(real_t)s) 1.0 - l * l - m * m);
        const %(real_t)s w_correction = n - (%(real_t)s) 1.0;
        const %(real_t)s image_correction = n;
"""

KERNEL_NAME = "predict_visibilities"


def kernel_source(precision=Precision.DOUBLE, exact=False):
    """Return CUDA C source for the transform kernel at ``precision``."""
    precision = Precision.parse(precision)
    params = {"real_t": precision.c_type}
    corrections = (_EXACT_CORRECTIONS if exact else _APPROX_CORRECTIONS) % params
    return _KERNEL_TEMPLATE % dict(params, corrections=corrections)
