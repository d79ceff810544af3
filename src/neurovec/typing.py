"""
Type Aliases for Neurovec

This module defines type aliases used throughout the Neurovec codebase for
clearer type hints and better IDE support.

Example:
    from neurovec.typing import ArrayLike, StateDict

Author: Neurovec Project
"""

from typing import Dict, Sequence, Union

import numpy as np
import torch

# ============================================================================
# Values
# ============================================================================

ArrayLike = Union[Sequence[float], np.ndarray, torch.Tensor]
"""Values accepted by bulk setters (``set_outputs``, ``set_efficacies``, ...).

Example:
    neurons.set_outputs(np.linspace(0.0, 1.0, 9))
    synapses.set_efficacies([1.0, 0.9, 1.0])
"""

IndexLike = Union[Sequence[int], np.ndarray, torch.Tensor]
"""Integer index values accepted by bulk connectivity setters."""

# ============================================================================
# State
# ============================================================================

StateDict = Dict[str, torch.Tensor]
"""Host snapshot of a collection's per-component buffers.

Example:
    state: StateDict = synapses.state_dict()
    synapses.load_state_dict(state)
"""


def as_tensor(values: ArrayLike, dtype: torch.dtype) -> torch.Tensor:
    """Convert array-like values to a 1D CPU tensor of ``dtype``."""
    if isinstance(values, torch.Tensor):
        return values.detach().to(device="cpu", dtype=dtype).reshape(-1)
    return torch.as_tensor(np.asarray(values), dtype=dtype).reshape(-1)


__all__ = ["ArrayLike", "IndexLike", "StateDict", "as_tensor"]
