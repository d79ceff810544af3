"""Global configuration constants for Neurovec."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class GlobalConfig:
    """Global configuration constants for Neurovec.

    This module centralizes the defaults shared by every network and
    collection: clock resolution, execution-strategy size thresholds and the
    tensor dtype used for component state.
    """

    DEFAULT_TIME_RESOLUTION: int = 1000
    """Default number of simulation steps per simulated second (1 ms steps)."""

    DEFAULT_MINIMUM_SIZE_FOR_THREAD_POOL: float = math.inf  # inf: automatic selection always picks sequential
    """Collection size at which automatic selection picks the thread pool."""

    DEFAULT_MINIMUM_SIZE_FOR_ACCELERATOR: int = 8192
    """Collection size at which automatic selection picks the accelerator."""

    DEFAULT_DTYPE: str = "float64"
    """Tensor dtype for outputs, inputs, efficacies and model state."""

    INDEX_DTYPE: str = "int64"
    """Tensor dtype for connectivity and configuration index arrays."""
