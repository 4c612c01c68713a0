"""
Readers and writers for source and visibility text files.
"""

from .sources import Sources, load_sources
from .visibilities import Visibilities, load_visibilities, save_visibilities

__all__ = [
    "Sources",
    "Visibilities",
    "load_sources",
    "load_visibilities",
    "save_visibilities",
]
