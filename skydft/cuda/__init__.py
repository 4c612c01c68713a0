"""
CuPy run-time compiled kernels for the skydft package.
"""

from functools import lru_cache

from skydft.config import Precision

try:
    import cupy as cp
except ImportError:
    cp = None


def is_available():
    """Check if CuPy is installed and can see at least one CUDA device."""
    if cp is None:
        return False
    try:
        return cp.cuda.runtime.getDeviceCount() > 0
    except cp.cuda.runtime.CUDARuntimeError:
        return False


@lru_cache(maxsize=None)
def get_kernel(precision=Precision.DOUBLE, exact=False):
    """Compile (once per precision) the visibility prediction kernel."""
    if cp is None:
        raise ImportError("CuPy is required for the CUDA kernels")
    from skydft.dft.kernel import KERNEL_NAME, kernel_source

    return cp.RawKernel(kernel_source(precision, exact=exact), KERNEL_NAME)
