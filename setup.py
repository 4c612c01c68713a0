import re
from pathlib import Path

from setuptools import find_packages, setup

# Read the version without importing the package (torch/cupy may be missing)
version = re.search(
    r'^__version__ = "([^"]+)"', Path("skydft/version.py").read_text(), re.M
).group(1)

setup(
    name="skydft",
    version=version,
    description="Direct Fourier transform of point source sky models into visibilities",
    packages=find_packages(include=["skydft", "skydft.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "torch",
        "astropy",
        "pyyaml",
    ],
    extras_require={
        # CUDA kernels are compiled at run time through CuPy. Pick the wheel
        # matching the local toolkit, e.g. cupy-cuda11x.
        "cuda": ["cupy-cuda12x"],
        "tests": ["pytest"],
    },
    entry_points={
        "console_scripts": ["skydft=skydft.cli:main"],
    },
)
