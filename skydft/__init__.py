"""
skydft - direct Fourier transform of point source sky models into visibilities.
"""

from . import cuda, dft, io, utils
from .config import Precision, RunConfig, load_config
from .dft import extract_visibilities
from .errors import AcceleratorFailure, ConfigurationError, DataLoadError, SkyDFTError
from .version import __version__


def has_cuda_extension():
    """Check if the CuPy kernel can be used."""
    return cuda.is_available()


__all__ = [
    "AcceleratorFailure",
    "ConfigurationError",
    "DataLoadError",
    "Precision",
    "RunConfig",
    "SkyDFTError",
    "__version__",
    "cuda",
    "dft",
    "extract_visibilities",
    "io",
    "load_config",
    "utils",
]
