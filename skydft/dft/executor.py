"""
Batch execution of the transform kernel on an accelerator.

One call to :func:`extract_visibilities` owns its device memory from
allocation to release:

    allocate -> upload -> launch -> synchronise -> download -> release

Release happens in a ``finally`` block, so device buffers never outlive the
call, including when a step fails.
"""

import logging
import time
import traceback
from dataclasses import dataclass

import numpy as np
import torch

from skydft import cuda
from skydft.errors import AcceleratorFailure, ConfigurationError
from skydft.utils.sizes import LaunchGeometry, get_launch_geometry

from .kernel import predict_group

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Outcome of one batch invocation."""

    intensities: np.ndarray
    geometry: LaunchGeometry
    elapsed_ms: float
    backend: str


class TorchBackend:
    """
    Runs the kernel with PyTorch on a CUDA device or on the CPU.

    Each launch block is evaluated as one vectorised group of
    ``threads_per_block`` visibilities.
    """

    errors = (RuntimeError,)

    def __init__(self, device="cpu"):
        self.device = torch.device(device)
        if self.device.type == "cuda" and not torch.cuda.is_available():
            raise AcceleratorFailure("CUDA requested but torch reports no CUDA device")

    @property
    def name(self):
        return f"torch:{self.device}"

    def to_device(self, array):
        return torch.from_numpy(np.ascontiguousarray(array)).to(self.device)

    def empty(self, shape, precision):
        return torch.zeros(shape, dtype=precision.torch_dtype, device=self.device)

    def to_host(self, buffer):
        # On the CPU .numpy() shares storage with the tensor, so copy
        return buffer.cpu().numpy().copy()

    def synchronize(self):
        if self.device.type == "cuda":
            torch.cuda.synchronize(self.device)

    def launch(self, geometry, sources, visibilities, intensities, precision, exact=False):
        """Evaluate every block in turn; returns elapsed milliseconds."""
        if self.device.type == "cuda":
            start = torch.cuda.Event(enable_timing=True)
            end = torch.cuda.Event(enable_timing=True)
            start.record()
        else:
            t0 = time.perf_counter()

        l_coords = sources[:, 0]
        m_coords = sources[:, 1]
        source_intensities = sources[:, 2]
        n = geometry.num_visibilities

        for block in range(geometry.num_blocks):
            indices = geometry.block_indices(block)
            block_start = indices.start
            # Workers at index >= n have nothing to do
            block_end = min(indices.stop, n)
            if block_start >= block_end:
                continue

            real, imag = predict_group(
                visibilities[block_start:block_end],
                l_coords,
                m_coords,
                source_intensities,
                exact=exact,
            )
            intensities[block_start:block_end, 0] = real
            intensities[block_start:block_end, 1] = imag

        if self.device.type == "cuda":
            end.record()
            end.synchronize()
            return start.elapsed_time(end)
        return (time.perf_counter() - t0) * 1e3

    def release(self):
        if self.device.type == "cuda":
            torch.cuda.empty_cache()


class CupyBackend:
    """Runs the CUDA C kernel compiled through CuPy ``RawKernel``."""

    name = "cupy"

    def __init__(self, device_id=0):
        if not cuda.is_available():
            raise AcceleratorFailure("CuPy backend requested but no CUDA device is available")
        cp = cuda.cp
        self.device = cp.cuda.Device(device_id)
        # Private pool so release only frees blocks allocated by this backend
        self.pool = cp.cuda.MemoryPool()
        self.errors = (
            cp.cuda.memory.OutOfMemoryError,
            cp.cuda.runtime.CUDARuntimeError,
            cp.cuda.driver.CUDADriverError,
            cp.cuda.compiler.CompileException,
        )

    def to_device(self, array):
        with self.device, cuda.cp.cuda.using_allocator(self.pool.malloc):
            return cuda.cp.asarray(np.ascontiguousarray(array))

    def empty(self, shape, precision):
        with self.device, cuda.cp.cuda.using_allocator(self.pool.malloc):
            return cuda.cp.zeros(shape, dtype=precision.dtype)

    def to_host(self, buffer):
        return cuda.cp.asnumpy(buffer)

    def synchronize(self):
        self.device.synchronize()

    def launch(self, geometry, sources, visibilities, intensities, precision, exact=False):
        """Single kernel launch over the full geometry; returns elapsed milliseconds."""
        cp = cuda.cp
        kernel = cuda.get_kernel(precision, exact)

        with self.device:
            start = cp.cuda.Event()
            end = cp.cuda.Event()
            start.record()
            kernel(
                (geometry.num_blocks,),
                (geometry.threads_per_block,),
                (
                    sources,
                    visibilities,
                    intensities,
                    np.int32(len(sources)),
                    np.int32(geometry.num_visibilities),
                ),
            )
            end.record()
            end.synchronize()
            return cp.cuda.get_elapsed_time(start, end)

    def release(self):
        self.pool.free_all_blocks()


def select_backend(device="auto"):
    """
    Pick the execution backend for ``device``.

    ``"auto"`` prefers the CuPy kernel, then PyTorch on CUDA, then the CPU.
    """
    if device == "cupy":
        return CupyBackend()
    if device == "cuda":
        return TorchBackend("cuda")
    if device == "cpu":
        return TorchBackend("cpu")
    if device == "auto":
        if cuda.is_available():
            return CupyBackend()
        if torch.cuda.is_available():
            return TorchBackend("cuda")
        return TorchBackend("cpu")
    raise ConfigurationError(f"Unknown device {device!r}")


class DeviceBuffers:
    """Device allocations owned by a single invocation."""

    def __init__(self, backend):
        self.backend = backend
        self._buffers = {}

    def __getitem__(self, name):
        return self._buffers[name]

    def __len__(self):
        return len(self._buffers)

    def upload(self, name, host_array):
        """Copy ``host_array`` to the device; blocks until the copy is done."""
        self._buffers[name] = self.backend.to_device(host_array)
        return self._buffers[name]

    def allocate(self, name, shape, precision):
        self._buffers[name] = self.backend.empty(shape, precision)
        return self._buffers[name]

    def download(self, name):
        return self.backend.to_host(self._buffers[name])

    def release(self):
        self._buffers.clear()
        self.backend.release()


class VisibilityPredictor:
    """
    Predict visibilities for a fixed configuration.

    Parameters
    ----------
    config : RunConfig
        Run configuration, read but never modified
    backend : optional
        Execution backend. Chosen from ``config.device`` when not given.
    """

    def __init__(self, config, backend=None):
        self.config = config
        self.backend = select_backend(config.device) if backend is None else backend

    def _log(self, msg, *args):
        level = logging.INFO if self.config.enable_messages else logging.DEBUG
        logger.log(level, msg, *args)

    def run(self, sources, visibilities, n=None):
        config = self.config
        precision = config.precision

        if len(sources) != config.num_sources:
            raise ConfigurationError(
                f"Configured for {config.num_sources} sources, got {len(sources)}"
            )
        n = len(visibilities) if n is None else n
        if not 0 <= n <= len(visibilities):
            raise ValueError(f"n must be in [0, {len(visibilities)}], got {n}")

        sources = sources.astype(precision.dtype)
        visibilities = visibilities.astype(precision.dtype)
        if config.force_zero_w_term:
            visibilities = visibilities.with_zero_w()

        geometry = get_launch_geometry(n, config.max_threads_per_block)
        if n == 0:
            return ExtractionResult(
                np.zeros(0, dtype=precision.complex_dtype), geometry, 0.0, self.backend.name
            )

        self._log(
            "Predicting %d visibilities from %d sources on %s (%s precision)",
            n,
            len(sources),
            self.backend.name,
            precision.value,
        )
        self._log(
            "Launch geometry: %d blocks of %d threads",
            geometry.num_blocks,
            geometry.threads_per_block,
        )

        # Device buffers are only referenced through ``buffers`` so that
        # release() drops the last reference to each of them
        buffers = DeviceBuffers(self.backend)
        try:
            buffers.upload("sources", sources.as_array())
            buffers.upload("visibilities", visibilities.uvw[:n])
            buffers.allocate("intensities", (n, 2), precision)
            self.backend.synchronize()

            elapsed_ms = self.backend.launch(
                geometry,
                buffers["sources"],
                buffers["visibilities"],
                buffers["intensities"],
                precision,
                exact=config.exact_w_correction,
            )
            self.backend.synchronize()

            host = buffers.download("intensities")
        except self.backend.errors as exc:
            # Frames in the traceback still hold device buffers as locals
            traceback.clear_frames(exc.__traceback__)
            raise AcceleratorFailure(
                f"Visibility prediction failed on {self.backend.name}: {exc}"
            ) from exc
        finally:
            buffers.release()

        self._log("Kernel finished in %.3f ms", elapsed_ms)

        intensities = (host[:, 0] + 1j * host[:, 1]).astype(precision.complex_dtype)
        return ExtractionResult(intensities, geometry, elapsed_ms, self.backend.name)


def extract_visibilities(config, sources, visibilities, out=None, n=None, backend=None):
    """
    Predict complex intensities for the first ``n`` visibilities.

    Parameters
    ----------
    config : RunConfig
        ``config.num_sources`` must equal ``len(sources)``
    sources : Sources
        Sky model
    visibilities : Visibilities
        Sample coordinates in wavelengths
    out : np.ndarray, optional
        Complex array of length ``n`` receiving the result
    n : int, optional
        Number of visibilities to predict; defaults to all of them

    Returns
    -------
    intensities :
        Complex array [n], complex64 for single and complex128 for double
        precision

    Raises
    ------
    AcceleratorFailure
        If device allocation, transfer or launch fails
    """
    result = VisibilityPredictor(config, backend=backend).run(sources, visibilities, n=n)
    if out is None:
        return result.intensities
    out[:] = result.intensities
    return out
