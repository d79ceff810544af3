"""
Base Configuration Classes.

This module provides the configuration dataclasses shared by collections and
networks. Collections read tensor and device settings from a
``CollectionConfig``; a network reads its clock and execution-strategy
thresholds from a ``NetworkConfig``.

Author: Neurovec Project
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

import torch

from neurovec.config.global_config import GlobalConfig
from neurovec.errors import ConfigurationError

if TYPE_CHECKING:
    from neurovec.core.execution import ExecutionMode


_DTYPE_MAP = {
    "float32": torch.float32,
    "float64": torch.float64,
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
}


@dataclass
class BaseConfig:
    """Base configuration with common fields for collections and networks.

    This provides standard fields used throughout the engine:
    - dtype: Tensor data type for component state
    - accelerator_device: Device used by the accelerator strategy
    - seed: Random seed for reproducibility
    """

    dtype: str = GlobalConfig.DEFAULT_DTYPE
    """Data type for state tensors: 'float32', 'float64', 'float16', 'bfloat16'."""

    accelerator_device: Optional[str] = None
    """Device for the accelerator strategy: 'cuda', 'cuda:1', 'mps', 'cpu', ...

    None selects CUDA when it is available and otherwise leaves the
    accelerator strategy unavailable (collections fall back to sequential).
    'cpu' keeps separate device mirrors on the host, which exercises the
    transfer logic without an accelerator.
    """

    seed: Optional[int] = None
    """Random seed for reproducibility. None = no seeding."""

    def __post_init__(self) -> None:
        if self.dtype not in _DTYPE_MAP:
            raise ConfigurationError(
                f"Unknown dtype '{self.dtype}'. "
                f"Choose from: {list(_DTYPE_MAP.keys())}"
            )
        if self.accelerator_device is not None:
            try:
                torch.device(self.accelerator_device)
            except RuntimeError as e:
                raise ConfigurationError(
                    f"Invalid accelerator_device '{self.accelerator_device}': {e}"
                ) from e

    def get_torch_dtype(self) -> torch.dtype:
        """Get PyTorch dtype object."""
        return _DTYPE_MAP[self.dtype]

    def get_accelerator_device(self) -> Optional[torch.device]:
        """Resolve the accelerator device, or None if none is usable here."""
        if self.accelerator_device is None:
            return torch.device("cuda") if torch.cuda.is_available() else None

        device = torch.device(self.accelerator_device)
        if device.type == "cuda" and not torch.cuda.is_available():
            return None
        if device.type == "mps" and not torch.backends.mps.is_available():
            return None
        return device


@dataclass
class CollectionConfig(BaseConfig):
    """Configuration for a component collection."""

    thread_pool_workers: Optional[int] = None
    """Worker threads for the thread-pool strategy. None = os.cpu_count()."""

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.thread_pool_workers is not None and self.thread_pool_workers < 1:
            raise ConfigurationError(
                f"thread_pool_workers must be >= 1, got {self.thread_pool_workers}"
            )


@dataclass
class NetworkConfig(BaseConfig):
    """Configuration for a network: clock and strategy selection thresholds."""

    time_resolution: int = GlobalConfig.DEFAULT_TIME_RESOLUTION
    """Simulation steps per simulated second (1000 = 1 ms per step)."""

    minimum_size_for_thread_pool: float = GlobalConfig.DEFAULT_MINIMUM_SIZE_FOR_THREAD_POOL
    """Smallest collection size automatically run on the thread pool."""

    minimum_size_for_accelerator: float = GlobalConfig.DEFAULT_MINIMUM_SIZE_FOR_ACCELERATOR
    """Smallest collection size automatically run on the accelerator."""

    preferred_execution_mode: Optional[Union["ExecutionMode", str]] = None
    """Strategy forced on both collections. None = automatic selection."""

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.time_resolution <= 0:
            raise ConfigurationError(
                f"time_resolution must be positive, got {self.time_resolution}"
            )
        for name in ("minimum_size_for_thread_pool", "minimum_size_for_accelerator"):
            value = getattr(self, name)
            if math.isnan(value) or value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")
        if self.preferred_execution_mode is not None:
            from neurovec.core.execution import ExecutionMode

            self.preferred_execution_mode = ExecutionMode.coerce(self.preferred_execution_mode)

    @property
    def step_period(self) -> float:
        """Duration of one simulation step in seconds."""
        return 1.0 / self.time_resolution


__all__ = ["BaseConfig", "CollectionConfig", "NetworkConfig"]
