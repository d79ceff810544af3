"""
Fixed Synapses.

Synapses whose efficacy never changes during simulation: each step they
transmit ``pre-synaptic output * efficacy`` to the post-synaptic input.

Author: Neurovec Project
"""

from __future__ import annotations

from neurovec.core.configuration import SynapseConfiguration
from neurovec.core.synapses import SynapseCollection


class FixedSynapseCollection(SynapseCollection[SynapseConfiguration]):
    """Non-plastic synapses; the base update is the whole model."""

    plastic = False


__all__ = ["FixedSynapseCollection"]
