"""
Exception types raised by skydft.
"""


class SkyDFTError(Exception):
    """Base class for all skydft errors."""


class AcceleratorFailure(SkyDFTError):
    """
    Device memory allocation, transfer or kernel launch failed.

    No partial result is usable when this is raised. Device buffers
    acquired before the failure have already been released.
    """


class DataLoadError(SkyDFTError, IOError):
    """A source or visibility file could not be read, parsed or written."""


class ConfigurationError(SkyDFTError, ValueError):
    """Invalid run configuration value."""
