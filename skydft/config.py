"""
Run configuration for the direct Fourier transform.

A :class:`RunConfig` is built once, before a run, and passed explicitly to
every entry point. It is frozen; use :meth:`RunConfig.replace` to derive a
modified copy.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import numpy as np
import torch
import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEVICES = ("auto", "cupy", "cuda", "cpu")


class Precision(enum.Enum):
    """Floating point width used for all kernel arithmetic and file output."""

    SINGLE = "single"
    DOUBLE = "double"

    @property
    def dtype(self):
        return np.float32 if self is Precision.SINGLE else np.float64

    @property
    def complex_dtype(self):
        return np.complex64 if self is Precision.SINGLE else np.complex128

    @property
    def torch_dtype(self):
        return torch.float32 if self is Precision.SINGLE else torch.float64

    @property
    def c_type(self):
        """Scalar type name used when compiling the CUDA kernel."""
        return "float" if self is Precision.SINGLE else "double"

    @property
    def text_format(self):
        """printf-style format for one numeric field in output files."""
        return "%.6f" if self is Precision.SINGLE else "%.12f"

    @classmethod
    def parse(cls, value) -> "Precision":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown precision {value!r}, expected 'single' or 'double'"
            ) from exc


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable bundle of settings for one transform run.

    Attributes
    ----------
    num_sources, num_visibilities :
        Record counts. Overwritten by the loaders when data is read from file.
    force_zero_w_term :
        Zero the w component of every visibility before the transform.
    right_ascension :
        Negate u and w when reading (and again when writing) visibilities.
    precision :
        Single or double precision for the kernel and file output.
    max_threads_per_block :
        Upper bound on the number of workers in one launch group.
    enable_messages :
        Log progress at INFO level instead of DEBUG.
    exact_w_correction :
        Use ``n = sqrt(1 - l^2 - m^2)`` instead of the small-angle
        approximation. Off by default.
    device :
        One of ``"auto"``, ``"cupy"``, ``"cuda"`` or ``"cpu"``.
    """

    num_sources: int = 1
    num_visibilities: int = 1
    force_zero_w_term: bool = False
    right_ascension: bool = True
    precision: Precision = Precision.DOUBLE
    max_threads_per_block: int = 256
    enable_messages: bool = True

    # Collaborator settings
    cell_size: float = 6.39708380288950e-6
    frequency_hz: float = 100e6
    uv_scale: float = 1.0
    min_u: float = -1000.0
    max_u: float = 1000.0
    min_v: float = -1000.0
    max_v: float = 1000.0
    min_w: float = -100.0
    max_w: float = 100.0
    gaussian_distribution_sources: bool = False
    synthetic_sources: bool = True
    synthetic_visibilities: bool = True
    source_file: Optional[str] = None
    visibility_source_file: Optional[str] = None
    visibility_dest_file: Optional[str] = None
    exact_w_correction: bool = False
    seed: Optional[int] = None
    device: str = "auto"

    def __post_init__(self):
        # Frozen, so normalise through object.__setattr__
        object.__setattr__(self, "precision", Precision.parse(self.precision))

        if self.max_threads_per_block < 1:
            raise ConfigurationError(
                f"max_threads_per_block must be positive, got {self.max_threads_per_block}"
            )
        if self.num_sources < 0 or self.num_visibilities < 0:
            raise ConfigurationError("Source and visibility counts must be >= 0")
        if self.device not in DEVICES:
            raise ConfigurationError(
                f"Unknown device {self.device!r}, expected one of {DEVICES}"
            )
        if self.frequency_hz <= 0:
            raise ConfigurationError("frequency_hz must be positive")

    @property
    def dtype(self):
        return self.precision.dtype

    def replace(self, **changes) -> "RunConfig":
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "RunConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(mapping))


def load_config(path, **overrides) -> RunConfig:
    """
    Read a YAML configuration file.

    Keys must match :class:`RunConfig` fields. ``overrides`` are applied on
    top of the file contents; ``None`` values in ``overrides`` are ignored.
    """
    path = Path(path)
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to load configuration {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {path} did not parse to a mapping")

    data.update({k: v for k, v in overrides.items() if v is not None})
    logger.debug("Loaded configuration from %s", path)
    return RunConfig.from_mapping(data)
