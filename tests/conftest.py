"""Shared test fixtures and configuration."""

import numpy as np
import pytest
import torch

from neurovec.config import CollectionConfig


@pytest.fixture(autouse=True)
def set_random_seed():
    """Ensure reproducible tests by setting all random seeds.

    This fixture runs automatically for every test to ensure deterministic behavior.
    """
    torch.manual_seed(42)
    np.random.seed(42)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(42)


@pytest.fixture
def host_mirror_config():
    """Collection config whose accelerator is a separate set of CPU tensors.

    Exercises every host/device transfer path on machines without a GPU.
    """
    return CollectionConfig(accelerator_device="cpu")


@pytest.fixture
def cuda_config():
    """Collection config for a real CUDA accelerator (skips without one)."""
    if not torch.cuda.is_available():
        pytest.skip("CUDA not available")
    return CollectionConfig(accelerator_device="cuda")


@pytest.fixture
def thread_pool_config():
    """Collection config with a small fixed number of worker threads."""
    return CollectionConfig(thread_pool_workers=3)
