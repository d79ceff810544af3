"""
Custom exception classes and validation utilities for Neurovec.

This module provides:
1. Hierarchical exception classes for different error categories
2. Validation utilities for component, configuration and neuron indices
3. Consistent error message formatting across collections

Exception Hierarchy:
====================
NeurovecError (base)
├── InvalidArgumentError - Out-of-range sizes and indices (also a ValueError)
├── ConfigurationError - Invalid configuration values or parameter names
├── InconsistentExecutionStrategyError - Neuron/synapse strategies split
└── ComponentError - Misuse of a collection at runtime

Usage Examples:
===============
    # Raise component error
    raise ComponentError("FixedSynapseCollection", "no associated neuron collection")

    # Validate an index
    check_index(synapse_index, synapses.size, "synapse index")

Author: Neurovec Project
"""

from __future__ import annotations

from typing import Dict, Union

import torch


# =============================================================================
# Exception Hierarchy
# =============================================================================


class NeurovecError(Exception):
    """Base exception for all Neurovec-specific errors.

    All custom exceptions in Neurovec inherit from this class, enabling
    code to catch engine errors specifically:

        try:
            network.run(1000)
        except NeurovecError as e:
            logger.error(f"Simulation error: {e}")
    """


class InvalidArgumentError(NeurovecError, ValueError):
    """An argument lies outside its valid range.

    Raised immediately for out-of-range populated sizes, configuration
    indices, component indices and neuron indices. Never recovered silently.

    Example:
        raise InvalidArgumentError("populated size must be in [0, 10], got 11")
    """


class ConfigurationError(NeurovecError):
    """Invalid configuration parameters.

    Raised when configuration values are out of valid range, when an unknown
    parameter name is used, or when a model that needs a configuration is
    stepped without one.

    Example:
        raise ConfigurationError("time_resolution must be positive, got 0")
    """


class InconsistentExecutionStrategyError(NeurovecError):
    """Neuron and synapse collections ended up on incompatible strategies.

    Raised when an accelerator strategy was requested but the runtime honored
    it for only one of the two collections of a network. The synapse
    collection borrows the neuron buffers without copying them, so the two
    collections must agree on where those buffers live.

    Example:
        raise InconsistentExecutionStrategyError(
            "neurons run ACCELERATOR but synapses fell back to SEQUENTIAL"
        )
    """


class ComponentError(NeurovecError):
    """Error in a component collection.

    Args:
        component_name: Name of the collection (usually its class name)
        message: Description of the error

    Example:
        raise ComponentError("PfisterSynapseCollection", "no neuron collection associated")
    """

    def __init__(self, component_name: str, message: str):
        super().__init__(f"[{component_name}] {message}")
        self.component_name = component_name


# =============================================================================
# Validation Utilities
# =============================================================================


def check_index(index: int, length: int, name: str = "index") -> None:
    """Validate that ``index`` addresses an element of a sequence of ``length``.

    Raises:
        InvalidArgumentError: If index is outside [0, length)
    """
    if index < 0 or index >= length:
        raise InvalidArgumentError(
            f"{name} must be in the range [0, {length}), got {index}"
        )


def check_range(
    value: Union[int, float],
    low: Union[int, float],
    high: Union[int, float],
    name: str,
) -> None:
    """Validate that ``low <= value <= high``.

    Raises:
        InvalidArgumentError: If value is outside [low, high]
    """
    if value < low or value > high:
        raise InvalidArgumentError(
            f"{name} must be in the range [{low}, {high}], got {value}"
        )


def check_index_tensor(indices: torch.Tensor, length: int, name: str = "indices") -> None:
    """Validate that every entry of an integer tensor lies in [0, length).

    Raises:
        InvalidArgumentError: If any entry is out of range
    """
    if indices.numel() == 0:
        return
    low = int(indices.min())
    high = int(indices.max())
    if low < 0 or high >= length:
        raise InvalidArgumentError(
            f"{name} must all be in the range [0, {length}), found values in [{low}, {high}]"
        )


def validate_device_consistency(
    tensors: Dict[str, torch.Tensor],
    expected_device: torch.device,
) -> None:
    """Validate that all tensors are on the expected device.

    Args:
        tensors: Dictionary of tensor_name → tensor
        expected_device: Expected device for all tensors

    Raises:
        InconsistentExecutionStrategyError: If any tensor is on another device
    """
    mismatches = []
    for name, tensor in tensors.items():
        if tensor.device != expected_device:
            mismatches.append(f"{name}: {tensor.device}")

    if mismatches:
        raise InconsistentExecutionStrategyError(
            f"Device mismatch. Expected {expected_device}, but found:\n" +
            "\n".join(f"  - {m}" for m in mismatches)
        )


__all__ = [
    "NeurovecError",
    "InvalidArgumentError",
    "ConfigurationError",
    "InconsistentExecutionStrategyError",
    "ComponentError",
    "check_index",
    "check_range",
    "check_index_tensor",
    "validate_device_consistency",
]
