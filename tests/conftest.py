import numpy as np
import pytest
import torch

from skydft.config import RunConfig


def pytest_addoption(parser):
    parser.addoption(
        "--run-large", action="store_true", default=False, help="run large workload tests"
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "large: mark test as a large workload")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--run-large"):
        skip_large = pytest.mark.skip(reason="need --run-large option to run")
        for item in items:
            if "large" in item.keywords:
                item.add_marker(skip_large)


@pytest.fixture(scope="session")
def device():
    """Return the torch device to use for tests"""
    if torch.cuda.is_available():
        return "cuda"
    else:
        return "cpu"


@pytest.fixture
def cpu_config():
    """Double precision configuration running on the CPU backend"""
    return RunConfig(device="cpu", enable_messages=False)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
