"""
Linear Neuron Models.

- LinearNeuronCollection: output = input + bias
- ClampedLinearNeuronCollection: output = clamp(input + bias, 0, 1)

Neither model has configuration parameters.

Author: Neurovec Project
"""

from __future__ import annotations

from neurovec.core.buffers import KernelBuffers
from neurovec.core.configuration import NeuronConfiguration
from neurovec.core.neurons import NeuronCollectionWithBias


class LinearNeuronCollection(NeuronCollectionWithBias[NeuronConfiguration]):
    """Pass-through neurons: output is the summed input plus bias."""

    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        buf.outputs[start:stop] = buf.inputs[start:stop] + buf.bias[start:stop]
        super().update(buf, start, stop)


class ClampedLinearNeuronCollection(NeuronCollectionWithBias[NeuronConfiguration]):
    """Linear neurons whose output is clamped to [0, 1]."""

    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        summed = buf.inputs[start:stop] + buf.bias[start:stop]
        buf.outputs[start:stop] = summed.clamp(
            min=self.minimum_possible_output_value, max=self.maximum_possible_output_value
        )
        super().update(buf, start, stop)


__all__ = ["LinearNeuronCollection", "ClampedLinearNeuronCollection"]
