import numpy as np
from astropy.constants import c


def wavelength_scale(frequency_hz):
    """Factor converting metres to wavelengths at ``frequency_hz``."""
    return frequency_hz / c.value


def meters_to_wavelengths(uvw, frequency_hz, right_ascension=False):
    """
    Convert baseline coordinates in metres to wavelengths.

    Parameters
    ----------
    uvw :
        Coordinates in metres [num_vis, 3]
    frequency_hz :
        Observation frequency
    right_ascension :
        Negate u and w to follow the right ascension sign convention

    Returns
    -------
    uvw :
        New array in wavelengths, same dtype as the input
    """
    uvw = np.array(uvw, copy=True)
    uvw *= uvw.dtype.type(wavelength_scale(frequency_hz))
    if right_ascension:
        uvw[:, 0] *= -1
        uvw[:, 2] *= -1
    return uvw


def wavelengths_to_meters(uvw, frequency_hz, right_ascension=False):
    """Inverse of :func:`meters_to_wavelengths`."""
    uvw = np.array(uvw, copy=True)
    if right_ascension:
        uvw[:, 0] *= -1
        uvw[:, 2] *= -1
    uvw /= uvw.dtype.type(wavelength_scale(frequency_hz))
    return uvw


def scale_cells_to_radians(coords, cell_size):
    """Scale positions given in image cells to direction cosines."""
    coords = np.asarray(coords)
    return coords * coords.dtype.type(cell_size)
