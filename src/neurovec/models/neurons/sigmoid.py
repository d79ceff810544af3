"""
Bipolar Sigmoid Neurons.

output = 2 / (1 + exp(-(input + bias) * slope)) - 1, in (-1, 1).

The slope comes from each neuron's :class:`SigmoidNeuronConfiguration`, so
the collection needs at least one configuration before it can step.

Author: Neurovec Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, Sequence

import torch

from neurovec.core.buffers import KernelBuffers
from neurovec.core.configuration import NeuronConfiguration, parameter
from neurovec.core.neurons import NeuronCollectionWithBias


@dataclass(eq=False)
class SigmoidNeuronConfiguration(NeuronConfiguration):
    """Configuration for sigmoid neurons."""

    PRESETS: ClassVar[Dict[str, Dict[str, float]]] = {"default": {"slope": 1.0}}

    slope: float = parameter(1.0, "Slope of the sigmoid at zero input")


class SigmoidBipolarNeuronCollection(NeuronCollectionWithBias[SigmoidNeuronConfiguration]):
    """Rate neurons with a bipolar sigmoid transfer function."""

    configuration_type = SigmoidNeuronConfiguration
    requires_configuration = True
    minimum_possible_output_value = -1.0
    maximum_possible_output_value = 1.0

    def _config_arrays(self) -> Dict[str, Sequence[float]]:
        return {"config_slope": [c.slope for c in self._configs]}

    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        slope = buf.config_slope[buf.config_index[start:stop]]
        net_input = buf.inputs[start:stop] + buf.bias[start:stop]
        buf.outputs[start:stop] = 2.0 / (1.0 + torch.exp(-(net_input * slope))) - 1.0
        super().update(buf, start, stop)


__all__ = ["SigmoidNeuronConfiguration", "SigmoidBipolarNeuronCollection"]
