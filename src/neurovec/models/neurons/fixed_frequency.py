"""
Fixed Frequency Neurons.

Neurons that ignore their inputs and emit the spike potential once every
``spiking_period`` seconds (on steps where ``step_count % period == 0``) and
the rest potential otherwise. Useful as clock-driven stimulus sources.

Author: Neurovec Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence

from neurovec.core.buffers import KernelBuffers
from neurovec.core.configuration import NeuronConfiguration, parameter
from neurovec.core.neurons import NeuronCollection
from neurovec.errors import ConfigurationError


@dataclass(eq=False)
class FixedFrequencyNeuronConfiguration(NeuronConfiguration):
    """Configuration for fixed frequency neurons."""

    spiking_period: float = parameter(0.1, "Seconds between spikes")
    spike_potential: float = parameter(0.0304, "Output on spiking steps")
    rest_potential: float = parameter(-0.0706, "Output on all other steps")

    def validate(self) -> None:
        super().validate()
        if self.spiking_period <= 0:
            raise ConfigurationError(
                f"spiking_period must be positive, got {self.spiking_period}"
            )


class FixedFrequencyNeuronCollection(NeuronCollection[FixedFrequencyNeuronConfiguration]):
    """Clock-driven neurons spiking at a fixed period."""

    configuration_type = FixedFrequencyNeuronConfiguration
    requires_configuration = True
    minimum_possible_output_value = -0.0706
    maximum_possible_output_value = 0.0304

    def _config_arrays(self) -> Dict[str, Sequence[float]]:
        resolution = self._time_resolution()
        return {
            # Periods shorter than one step spike every step
            "config_spiking_period": [
                max(1, round(c.spiking_period * resolution)) for c in self._configs
            ],
            "config_spike_potential": [c.spike_potential for c in self._configs],
            "config_rest_potential": [c.rest_potential for c in self._configs],
        }

    def _extra_kernel_buffers(self) -> Dict[str, Any]:
        step = self._network.step_count if self._network is not None else 0
        return {"sim_step": step}

    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        config = buf.config_index[start:stop]
        fire = (buf.sim_step % buf.config_spiking_period[config]) == 0
        buf.outputs[start:stop] = buf.config_rest_potential[config].where(
            ~fire, buf.config_spike_potential[config]
        )
        super().update(buf, start, stop)


__all__ = ["FixedFrequencyNeuronConfiguration", "FixedFrequencyNeuronCollection"]
