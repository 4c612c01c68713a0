import logging
from dataclasses import dataclass

import numpy as np

from skydft.utils.coordinates import scale_cells_to_radians

from ._text import read_counted_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sources:
    """
    Point sources of a sky model.

    Attributes
    ----------
    l_coords, m_coords :
        Direction cosines in radians [num_sources]
    intensities :
        Apparent brightness [num_sources]
    """

    l_coords: np.ndarray
    m_coords: np.ndarray
    intensities: np.ndarray

    def __len__(self):
        return len(self.intensities)

    @property
    def dtype(self):
        return self.intensities.dtype

    def as_array(self):
        """Interleaved ``(l, m, intensity)`` rows [num_sources, 3]."""
        return np.ascontiguousarray(
            np.stack([self.l_coords, self.m_coords, self.intensities], axis=-1)
        )

    def astype(self, dtype):
        return Sources(
            self.l_coords.astype(dtype),
            self.m_coords.astype(dtype),
            self.intensities.astype(dtype),
        )

    @classmethod
    def from_array(cls, rows, dtype=None):
        rows = np.asarray(rows, dtype=dtype).reshape(-1, 3)
        return cls(rows[:, 0].copy(), rows[:, 1].copy(), rows[:, 2].copy())


def load_sources(path, config):
    """
    Read sources from a text file.

    The first line holds the number of sources, followed by one
    ``l m intensity`` line per source. Positions are given in image cells
    and are scaled by ``config.cell_size``.

    Raises
    ------
    DataLoadError
        If the file is missing, unreadable or malformed
    """
    rows = read_counted_table(path, 3, config.dtype)

    sources = Sources(
        scale_cells_to_radians(rows[:, 0], config.cell_size),
        scale_cells_to_radians(rows[:, 1], config.cell_size),
        rows[:, 2].copy(),
    )
    logger.info("Loaded %d sources from %s", len(sources), path)
    return sources
