import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from skydft.errors import DataLoadError
from skydft.utils.coordinates import meters_to_wavelengths, wavelengths_to_meters

from ._text import read_counted_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Visibilities:
    """
    Visibility sample coordinates with the values carried alongside them.

    Attributes
    ----------
    uvw :
        Coordinates in wavelengths [num_vis, 3]
    brightness :
        Measured or previously predicted complex values [num_vis]
    weights :
        Per-sample weights [num_vis]
    """

    uvw: np.ndarray
    brightness: np.ndarray = field(default=None)
    weights: np.ndarray = field(default=None)

    def __post_init__(self):
        uvw = np.ascontiguousarray(np.asarray(self.uvw).reshape(-1, 3))
        object.__setattr__(self, "uvw", uvw)
        complex_dtype = np.result_type(uvw.dtype, np.complex64)
        if self.brightness is None:
            object.__setattr__(self, "brightness", np.zeros(len(uvw), dtype=complex_dtype))
        if self.weights is None:
            object.__setattr__(self, "weights", np.ones(len(uvw), dtype=uvw.dtype))

    def __len__(self):
        return len(self.uvw)

    @property
    def dtype(self):
        return self.uvw.dtype

    def with_zero_w(self):
        """Copy with the w component of every sample set to zero."""
        uvw = self.uvw.copy()
        uvw[:, 2] = 0
        return Visibilities(uvw, self.brightness, self.weights)

    def astype(self, dtype):
        complex_dtype = np.result_type(dtype, np.complex64)
        return Visibilities(
            self.uvw.astype(dtype),
            self.brightness.astype(complex_dtype),
            self.weights.astype(dtype),
        )


def load_visibilities(path, config):
    """
    Read visibilities from a text file.

    The first line holds the number of visibilities, followed by one
    ``u v w real imag weight`` line per visibility, coordinates in metres.
    Coordinates are converted to wavelengths at ``config.frequency_hz``, u
    and w are negated when ``config.right_ascension`` is set and w is zeroed
    when ``config.force_zero_w_term`` is set.

    Raises
    ------
    DataLoadError
        If the file is missing, unreadable or malformed
    """
    rows = read_counted_table(path, 6, config.dtype)

    uvw = meters_to_wavelengths(
        rows[:, :3], config.frequency_hz, right_ascension=config.right_ascension
    )
    if config.force_zero_w_term:
        uvw[:, 2] = 0

    visibilities = Visibilities(
        uvw,
        (rows[:, 3] + 1j * rows[:, 4]).astype(config.precision.complex_dtype),
        rows[:, 5].copy(),
    )
    logger.info("Loaded %d visibilities from %s", len(visibilities), path)
    return visibilities


def save_visibilities(path, visibilities, intensities, config):
    """
    Write predicted intensities next to their coordinates.

    Uses the layout read by :func:`load_visibilities`, undoing the unit
    scaling and right ascension sign flip. Numbers are formatted according
    to ``config.precision``.
    """
    intensities = np.asarray(intensities)
    if len(intensities) != len(visibilities):
        raise ValueError(
            f"Got {len(intensities)} intensities for {len(visibilities)} visibilities"
        )

    uvw = wavelengths_to_meters(
        visibilities.uvw, config.frequency_hz, right_ascension=config.right_ascension
    )
    rows = np.column_stack(
        [uvw, intensities.real, intensities.imag, visibilities.weights]
    ).astype(config.dtype)

    path = Path(path)
    try:
        np.savetxt(
            path,
            rows,
            fmt=config.precision.text_format,
            header=str(len(rows)),
            comments="",
        )
    except OSError as exc:
        raise DataLoadError(f"Unable to write {path}: {exc}") from exc

    logger.info("Wrote %d visibilities to %s", len(rows), path)
