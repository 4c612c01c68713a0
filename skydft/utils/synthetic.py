"""
Synthetic sky models and visibility coordinates for testing and benchmarking.
"""

import logging

import numpy as np

from skydft.errors import SkyDFTError
from skydft.io.sources import Sources
from skydft.io.visibilities import Visibilities

logger = logging.getLogger(__name__)

MAX_REJECTION_ROUNDS = 100


def bounded_normal(rng, low, high, size, max_rounds=MAX_REJECTION_ROUNDS):
    """
    Draw normal samples restricted to ``[low, high]`` by rejection.

    The distribution is centred on the interval with the interval spanning
    six standard deviations. Rejected samples are redrawn at most
    ``max_rounds`` times.
    """
    mean = 0.5 * (low + high)
    std = (high - low) / 6.0
    out = np.empty(size, dtype=np.float64)
    pending = np.arange(size)

    for _ in range(max_rounds):
        if len(pending) == 0:
            return out
        samples = rng.normal(mean, std, len(pending))
        accepted = (samples >= low) & (samples <= high)
        out[pending[accepted]] = samples[accepted]
        pending = pending[~accepted]

    if len(pending):
        raise SkyDFTError(
            f"{len(pending)} samples still outside [{low}, {high}] "
            f"after {max_rounds} rejection rounds"
        )
    return out


def generate_sources(config, rng=None):
    """
    Random sources with unit intensity.

    Positions are drawn uniformly from ``[-1, 1)`` cells and scaled by
    ``config.cell_size``.
    """
    rng = np.random.default_rng(config.seed) if rng is None else rng
    n = config.num_sources
    dtype = config.dtype

    positions = rng.uniform(-1.0, 1.0, size=(n, 2)) * config.cell_size
    sources = Sources(
        positions[:, 0].astype(dtype),
        positions[:, 1].astype(dtype),
        np.ones(n, dtype=dtype),
    )
    logger.info("Generated %d synthetic sources", n)
    return sources


def generate_visibilities(config, rng=None):
    """
    Random visibility coordinates within the configured u, v, w ranges.

    Samples are uniform, or normal when
    ``config.gaussian_distribution_sources`` is set, and are multiplied by
    ``config.uv_scale``.
    """
    rng = np.random.default_rng(config.seed) if rng is None else rng
    n = config.num_visibilities
    ranges = [
        (config.min_u, config.max_u),
        (config.min_v, config.max_v),
        (config.min_w, config.max_w),
    ]

    if config.gaussian_distribution_sources:
        columns = [bounded_normal(rng, low, high, n) for low, high in ranges]
    else:
        columns = [rng.uniform(low, high, n) for low, high in ranges]

    uvw = np.column_stack(columns).reshape(n, 3) * config.uv_scale
    if config.force_zero_w_term:
        uvw[:, 2] = 0

    logger.info(
        "Generated %d synthetic visibilities (%s sampling)",
        n,
        "gaussian" if config.gaussian_distribution_sources else "uniform",
    )
    return Visibilities(uvw.astype(config.dtype))
