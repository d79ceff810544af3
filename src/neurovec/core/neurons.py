"""
Neuron Collections.

A neuron collection holds, per neuron:
- ``outputs``: output value produced by the last step
- ``spiking``: whether the output exceeded the spike threshold
- ``inputs``: input accumulated by synapses since the last neuron step

Models compute outputs from inputs and delegate to :meth:`NeuronCollection.update`,
which consumes the inputs (back to the rest value) and derives spike flags.

Author: Neurovec Project
"""

from __future__ import annotations

from typing import ClassVar, Optional

import torch

from neurovec.config.base import CollectionConfig
from neurovec.core.buffers import BufferKind, KernelBuffers
from neurovec.core.configurable import C, ConfigurableComponentCollection
from neurovec.errors import check_index
from neurovec.typing import ArrayLike, as_tensor


class NeuronCollection(ConfigurableComponentCollection[C]):
    """Base class for neuron collections.

    Class attributes:
        spike_threshold: A neuron spikes when its output exceeds this value
        input_rest_value: Value inputs return to after each step
    """

    spike_threshold: ClassVar[float] = 0.0
    input_rest_value: ClassVar[float] = 0.0

    def __init__(self, size: int, config: Optional[CollectionConfig] = None):
        super().__init__(size, config)

    def init(self) -> None:
        super().init()
        self.allocate("spiking", BufferKind.OUTPUT, dtype=torch.bool, fill=False)
        self.allocate("inputs", BufferKind.INPUT, fill=self.input_rest_value)

    def reset(self) -> None:
        super().reset()
        self._buffers.host("spiking").fill_(False)
        self._buffers.host("inputs").fill_(self.input_rest_value)
        self._buffers.mark_host_modified("spiking", "inputs")

    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        """Consume inputs and derive spike flags for ``[start, stop)``.

        Models write ``outputs`` first, then call this.
        """
        buf.inputs[start:stop] = self.input_rest_value
        buf.spiking[start:stop] = buf.outputs[start:stop] > self.spike_threshold

    # =========================================================================
    # Inputs
    # =========================================================================

    def get_input(self, index: int) -> float:
        check_index(index, self._size, "neuron index")
        self.ensure_inputs_are_fresh()
        return float(self._buffers.host("inputs")[index])

    def get_inputs(self) -> torch.Tensor:
        """Live host tensor of accumulated inputs."""
        self.ensure_inputs_are_fresh()
        return self._buffers.host("inputs")

    def add_input(self, index: int, value: float) -> None:
        """Add to a neuron's input; consumed by the next neuron step."""
        check_index(index, self._size, "neuron index")
        self.ensure_inputs_are_fresh()
        self._buffers.host("inputs")[index] += value
        self._buffers.mark_host_modified("inputs")

    def add_inputs(self, values: ArrayLike, start: int = 0) -> None:
        tensor = as_tensor(values, self.dtype)
        self._check_span(start, tensor.numel())
        self.ensure_inputs_are_fresh()
        self._buffers.host("inputs")[start:start + tensor.numel()] += tensor
        self._buffers.mark_host_modified("inputs")

    # =========================================================================
    # Spikes
    # =========================================================================

    def ensure_outputs_are_fresh(self) -> None:
        self._buffers.ensure_host_fresh("outputs", "spiking")

    def spiked(self, index: int) -> bool:
        """Whether neuron ``index`` spiked in the last step."""
        check_index(index, self._size, "neuron index")
        self.ensure_outputs_are_fresh()
        return bool(self._buffers.host("spiking")[index])

    def get_spikings(self) -> torch.Tensor:
        self.ensure_outputs_are_fresh()
        return self._buffers.host("spiking")


class NeuronCollectionWithBias(NeuronCollection[C]):
    """Neuron collection with a per-neuron bias added to the input."""

    def init(self) -> None:
        super().init()
        self.allocate("bias", BufferKind.PARAMETER)

    def get_bias(self, index: int) -> float:
        check_index(index, self._size, "neuron index")
        return float(self._buffers.host("bias")[index])

    def set_bias(self, index: int, bias: float) -> None:
        """Set a neuron's bias; pushed before the next step."""
        check_index(index, self._size, "neuron index")
        self._buffers.host("bias")[index] = bias
        self._buffers.mark_host_modified("bias")

    def get_biases(self) -> torch.Tensor:
        return self._buffers.host("bias")

    def set_biases(self, values: ArrayLike, start: int = 0) -> None:
        tensor = as_tensor(values, self.dtype)
        self._check_span(start, tensor.numel())
        self._buffers.host("bias")[start:start + tensor.numel()] = tensor
        self._buffers.mark_host_modified("bias")


__all__ = ["NeuronCollection", "NeuronCollectionWithBias"]
