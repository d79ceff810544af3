"""
Pfister 2006 Triplet STDP Synapses.

Triplet spike-timing dependent plasticity (Pfister & Gerstner, 2006, J.
Neurosci. 26(38):9673-9682). Each synapse keeps two pre-synaptic traces
(r1, r2) and two post-synaptic traces (o1, o2), which decay every step and
jump to 1 on a spike of their neuron:

    pre spike:  efficacy -= o1 * (a2_minus + a3_minus * r2)
    post spike: efficacy += r1 * (a2_plus + a3_plus * o2)

where r2 and o2 are taken before the spike updates them. Efficacy is kept
within the configuration's [minimum_efficacy, maximum_efficacy].

Time constants are given in milliseconds and converted to per-step decay
factors with the network's time resolution.

Author: Neurovec Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, Sequence

from neurovec.core.buffers import BufferKind, KernelBuffers
from neurovec.core.configuration import SynapseConfiguration, parameter
from neurovec.core.synapses import SynapseCollection
from neurovec.errors import ConfigurationError
from neurovec.utils.core_utils import clamp_weights

TRACES = ("r1", "r2", "o1", "o2")


@dataclass(eq=False)
class Pfister2006SynapseConfiguration(SynapseConfiguration):
    """Parameters of the triplet rule; defaults are the minimal hippocampal fit."""

    PRESETS: ClassVar[Dict[str, Dict[str, float]]] = {
        "Hippocampal culture data set - Nearest spike - Min": {
            "tau_plus": 16.8,
            "tau_x": 1.0,
            "tau_minus": 33.7,
            "tau_y": 48.0,
            "a2_minus": 0.003,
            "a2_plus": 0.0046,
            "a3_minus": 0.0,
            "a3_plus": 0.0091,
        },
    }

    tau_plus: float = parameter(16.8, "Decay time constant of r1 (ms)")
    tau_x: float = parameter(1.0, "Decay time constant of r2 (ms)")
    tau_minus: float = parameter(33.7, "Decay time constant of o1 (ms)")
    tau_y: float = parameter(48.0, "Decay time constant of o2 (ms)")
    a2_minus: float = parameter(0.003, "Pair depression amplitude")
    a2_plus: float = parameter(0.0046, "Pair potentiation amplitude")
    a3_minus: float = parameter(0.0, "Triplet depression amplitude")
    a3_plus: float = parameter(0.0091, "Triplet potentiation amplitude")

    def validate(self) -> None:
        super().validate()
        for name in ("tau_plus", "tau_x", "tau_minus", "tau_y"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

    @property
    def learning_disabled(self) -> bool:
        return self.a2_minus == 0 and self.a2_plus == 0 and self.a3_minus == 0 and self.a3_plus == 0


class Pfister2006SynapseCollection(SynapseCollection[Pfister2006SynapseConfiguration]):
    """Triplet STDP synapses."""

    configuration_type = Pfister2006SynapseConfiguration
    requires_configuration = True

    def init(self) -> None:
        super().init()
        for trace in TRACES:
            self.allocate(trace, BufferKind.STATE)

    def _config_arrays(self) -> Dict[str, Sequence[float]]:
        resolution = self._time_resolution()
        configs = self._configs
        return {
            "tau_plus_decay": [(1000.0 / c.tau_plus) / resolution for c in configs],
            "tau_x_decay": [(1000.0 / c.tau_x) / resolution for c in configs],
            "tau_minus_decay": [(1000.0 / c.tau_minus) / resolution for c in configs],
            "tau_y_decay": [(1000.0 / c.tau_y) / resolution for c in configs],
            "a2_minus": [c.a2_minus for c in configs],
            "a2_plus": [c.a2_plus for c in configs],
            "a3_minus": [c.a3_minus for c in configs],
            "a3_plus": [c.a3_plus for c in configs],
            "minimum_efficacy": [c.minimum_efficacy for c in configs],
            "maximum_efficacy": [c.maximum_efficacy for c in configs],
        }

    def reset(self) -> None:
        super().reset()
        for trace in TRACES:
            self._buffers.host(trace).zero_()
        self._buffers.mark_host_modified(*TRACES)

    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        config = buf.config_index[start:stop]
        pre_spiked = buf.neuron_spiking[buf.pre_index[start:stop]]
        post_spiked = buf.neuron_spiking[buf.post_index[start:stop]]

        r1 = buf.r1[start:stop]
        r2 = buf.r2[start:stop]
        o1 = buf.o1[start:stop]
        o2 = buf.o2[start:stop]

        # Trace decay
        r1 -= r1 * buf.tau_plus_decay[config]
        r2 -= r2 * buf.tau_x_decay[config]
        o1 -= o1 * buf.tau_minus_decay[config]
        o2 -= o2 * buf.tau_y_decay[config]

        r2_prev = r2.clone()
        o2_prev = o2.clone()

        r1.masked_fill_(pre_spiked, 1.0)
        r2.masked_fill_(pre_spiked, 1.0)
        o1.masked_fill_(post_spiked, 1.0)
        o2.masked_fill_(post_spiked, 1.0)

        efficacy = buf.efficacy[start:stop]
        efficacy -= pre_spiked * o1 * (buf.a2_minus[config] + buf.a3_minus[config] * r2_prev)
        efficacy += post_spiked * r1 * (buf.a2_plus[config] + buf.a3_plus[config] * o2_prev)
        clamp_weights(efficacy, buf.minimum_efficacy[config], buf.maximum_efficacy[config])

        super().update(buf, start, stop)

    def is_not_used(self, index: int) -> bool:
        """Unused only if silent and unable to learn."""
        if not super().is_not_used(index):
            return False
        if not self._configs:
            return True
        return self.get_component_configuration(index).learning_disabled


__all__ = ["Pfister2006SynapseConfiguration", "Pfister2006SynapseCollection"]
