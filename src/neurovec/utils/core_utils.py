"""
Core Utilities for Neurovec.

This module provides small tensor helpers shared by collections and models.

Author: Neurovec Project
"""

from __future__ import annotations

from typing import Union

import torch


def next_power_of_two(n: int) -> int:
    """Return the smallest power of two >= ``n`` (1 for n <= 1).

    Used to pad accelerator dispatch grids; update functions never see the
    padding because dispatch stops at the populated size.

    Example:
        >>> next_power_of_two(9)
        16
        >>> next_power_of_two(8)
        8
    """
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def clamp_weights(
    weights: torch.Tensor,
    w_min: Union[torch.Tensor, float] = 0.0,
    w_max: Union[torch.Tensor, float] = 1.0,
    inplace: bool = True,
) -> torch.Tensor:
    """Clamp weight tensor to valid range.

    Standard pattern for enforcing efficacy bounds after plasticity updates.
    Bounds may be scalars or tensors broadcastable to ``weights`` (for
    per-synapse bounds gathered through the configuration index table).

    Args:
        weights: Weight tensor to clamp
        w_min: Minimum weight value (default: 0.0)
        w_max: Maximum weight value (default: 1.0)
        inplace: If True, modify weights in place (default: True)

    Returns:
        Clamped weight tensor

    Example:
        >>> clamp_weights(buf.efficacy[start:stop], min_eff, max_eff)
    """
    if isinstance(w_min, torch.Tensor) or isinstance(w_max, torch.Tensor):
        w_min = torch.as_tensor(w_min, dtype=weights.dtype, device=weights.device)
        w_max = torch.as_tensor(w_max, dtype=weights.dtype, device=weights.device)
    if inplace:
        return weights.clamp_(w_min, w_max)
    return weights.clamp(w_min, w_max)


def swap_entries(tensor: torch.Tensor, i: int, j: int) -> None:
    """Swap elements ``i`` and ``j`` of a 1D tensor in place."""
    if i == j:
        return
    tmp = tensor[i].clone()
    tensor[i] = tensor[j]
    tensor[j] = tmp
